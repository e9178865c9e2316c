"""LiteGapps Google apps suite."""

from pathlib import Path
from typing import ClassVar

from reddock.core.addons.base import VendorAddon
from reddock.exceptions import StagingError
from reddock.models.addon import AddonCategory, AddonDescriptor, SourceManifest
from reddock.utils.archive import copy_tree, extract_tar, reset_dir
from reddock.utils.progress import ProgressSink

_SF = "https://sourceforge.net/projects/litegapps/files/litegapps"
_SF_MASTER = "https://master.dl.sourceforge.net/project/litegapps/litegapps"

_X86_64_15 = (
    f"{_SF}/x86_64/35/lite/2024-10-27/LiteGapps-x86_64-15.0-20241027-official.zip",
    "ff6d94d6a0344320644b66fa9f662eda",
)
_X86_15 = (
    f"{_SF}/x86/35/lite/2024-10-27/LiteGapps-x86-15.0-20241027-official.zip",
    "9fcc749616bf362d5152c94ec73c2534",
)
_ARM64_15 = (
    f"{_SF}/arm64/35/lite/2024-10-23/LiteGapps-arm64-15.0-20241023-official.zip",
    "fdf6ab112e1cb1125b5b926669e40e6d",
)
_ARM_15 = (
    f"{_SF}/arm/35/lite/2024-10-26/LiteGapps-arm-15.0-20241026-official.zip",
    "4b08efae685ddd4846acfffc40dd0062",
)
_X86_64_14 = (
    f"{_SF}/x86_64/34/lite/v3.0/AUTO_LiteGapps_x86_64_14.0_v3.0_official.zip",
    "51cbdb561f9c9162e4fdcbffe691c4bc",
)
_ARM64_14 = (
    f"{_SF}/arm64/34/lite/2024-10-22/LiteGapps-arm64-14.0-20241022-official.zip",
    "30be139a5f9c52b78e3f852877ad2f0b",
)
_X86_64_13 = (
    f"{_SF_MASTER}/x86_64/33/lite/2024-02-22/AUTO-LiteGapps-x86_64-13.0-20240222-official.zip",
    "d91a18a28cc2718c18726a59aedcb8da",
)
_ARM64_13 = (
    f"{_SF}/arm64/33/lite/2024-10-22/LiteGapps-arm64-13.0-20241022-official.zip",
    "a8b1181291fe70d1e838a8579218a47c",
)
_ARM64_12 = (
    f"{_SF}/arm64/31/lite/2024-10-10/AUTO-LiteGapps-arm64-12.0-20241010-official.zip",
    "ed3196b7d6048ef4adca6388a771cd84",
)

LITEGAPPS_SOURCES: dict[str, dict[str, tuple[str, str]]] = {
    "8.1.0": {
        "x86_64": (
            f"{_SF}/x86_64/27/lite/v2.6/%5BAUTO%5DLiteGapps_x86_64_8.1_v2.6_official.zip",
            "eee0ebdea5eb7580cab9dec307b46f56",
        ),
        "x86": (
            f"{_SF}/x86/27/lite/v2.6/%5BAUTO%5DLiteGapps_x86_8.1_v2.6_official.zip",
            "5739feb54fdf85dc1d870998aeeee43a",
        ),
        "arm64": (
            f"{_SF}/arm64/27/lite/2024-02-22/AUTO-LiteGapps-arm64-8.1-20240222-official.zip",
            "35d4195595961dc229f617c30c5460bb",
        ),
        "arm": (
            f"{_SF}/arm/27/lite/%5BAUTO%5DLiteGapps_arm_8.1_v2.5_official.zip",
            "b0f7f5ba418b1696005f4e3f5abe924f",
        ),
    },
    "9.0.0": {
        "x86_64": (
            f"{_SF}/x86_64/28/lite/v2.6/%5BAUTO%5DLiteGapps_x86_64_9.0_v2.6_official.zip",
            "fc17a35518af188015baf1a682eb9fc7",
        ),
        "x86": (
            f"{_SF}/x86/28/lite/v2.6/%5BAUTO%5DLiteGapps_x86_9.0_v2.6_official.zip",
            "31981cd14199d6b3610064b09d96e278",
        ),
        "arm64": (
            f"{_SF}/arm64/28/lite/2024-02-23/AUTO-LiteGapps-arm64-9.0-20240223-official.zip",
            "b8ccfbedbf003803af19346c610988c0",
        ),
        "arm": (
            f"{_SF}/arm/28/lite/%5BAUTO%5DLiteGapps_arm_9.0_v2.5_official.zip",
            "8034245b695b6b31cd6a5d2ed5b2b670",
        ),
    },
    "10.0.0": {
        "x86_64": (
            f"{_SF}/x86_64/29/lite/v2.6/%5BAUTO%5DLiteGapps_x86_64_10.0_v2.6_official.zip",
            "d2d70e3e59149e23bdc8975dd6fa49e1",
        ),
        "x86": (
            f"{_SF}/x86/29/lite/v2.6/%5BAUTO%5DLiteGapps_x86_10.0_v2.6_official.zip",
            "14e20a4628dc3198bbe79774cb1c33dc",
        ),
        "arm64": (
            f"{_SF}/arm64/29/lite/2024-10-22/LiteGapps-arm64-10.0-20241022-official.zip",
            "0d079569cb5e2687939993776abb538c",
        ),
        "arm": (
            f"{_SF}/arm/29/lite/2024-08-18/AUTO-LiteGapps-arm-10.0-20240818-official.zip",
            "a467f73d2b5a1ff9882d070989db0f0e",
        ),
    },
    "11.0.0": {
        "x86_64": (
            f"{_SF}/x86_64/30/lite/2024-10-12/AUTO-LiteGapps-x86_64-11.0-20241012-official.zip",
            "5c2a6c354b6faa6973dd3f399bbe162d",
        ),
        "x86": (
            f"{_SF}/x86/30/lite/2024-10-12/AUTO-LiteGapps-x86-11.0-20241012-official.zip",
            "7252ea97a1d66ae420f114bfe7089070",
        ),
        "arm64": (
            f"{_SF}/arm64/30/lite/2024-10-21/LiteGapps-arm64-11.0-20241021-official.zip",
            "901fd830fe4968b6979f38169fe49ceb",
        ),
        "arm": (
            f"{_SF}/arm/30/lite/2024-08-18/AUTO-LiteGapps-arm-11.0-20240818-official.zip",
            "d4b2471d94facc13c9e7a026f2dff80d",
        ),
    },
    "12.0.0": {
        "arm64": _ARM64_12,
        "arm": (
            f"{_SF}/arm/31/lite/v2.5/%5BAUTO%5DLiteGapps_arm_12.0_v2.5_official.zip",
            "35e1f98dd136114fc1ca74e3a0539cfa",
        ),
    },
    "12.0.0_64only": {"arm64": _ARM64_12},
    "13.0.0": {
        "x86_64": _X86_64_13,
        "arm64": _ARM64_13,
        "arm": (
            f"{_SF}/arm/33/lite/2024-08-15/AUTO-LiteGapps-arm-13.0-20240815-official.zip",
            "5a1d192a42ef97693f63d166dea89849",
        ),
    },
    "13.0.0_64only": {"x86_64": _X86_64_13, "arm64": _ARM64_13},
    "14.0.0": {
        "x86_64": _X86_64_14,
        "x86": _X86_15,
        "arm64": _ARM64_14,
        "arm": (
            f"{_SF}/arm/34/lite/2024-10-28/LiteGapps-arm-14.0-20241028-official.zip",
            "94669d92feec6724bc521ece19754fb0",
        ),
    },
    "14.0.0_64only": {"x86_64": _X86_64_14, "arm64": _ARM64_14},
    "15.0.0": {
        "x86_64": _X86_64_15,
        "x86": _X86_15,
        "arm64": _ARM64_15,
        "arm": _ARM_15,
    },
    "15.0.0_64only": {"x86_64": _X86_64_15, "arm64": _ARM64_15},
    "16.0.0": {
        "x86_64": _X86_64_15,
        "x86": _X86_15,
        "arm64": _ARM64_15,
        "arm": _ARM_15,
    },
}

# Directory inside files.tar.xz holding each release. Keyed by the same
# version tokens as LITEGAPPS_SOURCES; both tables must list the same keys.
LITEGAPPS_API_LEVELS: dict[str, str] = {
    "8.1.0": "27",
    "9.0.0": "28",
    "10.0.0": "29",
    "11.0.0": "30",
    "12.0.0": "31",
    "12.0.0_64only": "31",
    "13.0.0": "33",
    "13.0.0_64only": "33",
    "14.0.0": "34",
    "14.0.0_64only": "34",
    "15.0.0": "35",
    "15.0.0_64only": "35",
    "16.0.0": "35",
}


class LiteGappsAddon(VendorAddon):
    """LiteGapps: a zip wrapping ``files/files.tar.xz`` with per-arch/API trees."""

    descriptor: ClassVar[AddonDescriptor] = AddonDescriptor(
        key="litegapps",
        name="LiteGapps",
        category=AddonCategory.GOOGLE_APPS,
        versions=tuple(LITEGAPPS_SOURCES),
        description="LiteGapps (Google Apps)",
    )
    manifest: ClassVar[SourceManifest] = SourceManifest.per_arch(
        "LiteGapps", LITEGAPPS_SOURCES
    )
    archive_name: ClassVar[str] = "litegapps.zip"

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        api_level = LITEGAPPS_API_LEVELS.get(version)
        if api_level is None:
            raise StagingError(f"No LiteGapps API level known for Android {version}")

        nested = self.extract_dir / "files" / "files.tar.xz"
        if not nested.is_file():
            raise StagingError(f"LiteGapps archive has no files/files.tar.xz: {nested}")

        progress.emit("Extracting files.tar.xz...")
        unpack = extract_tar(nested, reset_dir(self.scratch_dir), "xz")

        source = unpack / arch / api_level / "system"
        if not source.is_dir():
            raise StagingError(
                f"LiteGapps payload missing {arch}/{api_level}/system for Android {version}"
            )
        copy_tree(source, target / "system")
