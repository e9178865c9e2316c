"""MindTheGapps Google apps suite."""

from pathlib import Path
from typing import ClassVar

from reddock.core.addons.base import VendorAddon
from reddock.exceptions import StagingError
from reddock.models.addon import AddonCategory, AddonDescriptor, SourceManifest
from reddock.utils.archive import copy_tree
from reddock.utils.progress import ProgressSink

_RELEASES = "https://github.com/s1204IT/MindTheGappsBuilder/releases/download"


def _release(tag: str, android: str, arch: str, md5: str) -> tuple[str, str]:
    return f"{_RELEASES}/{tag}/MindTheGapps-{android}-{arch}-{tag}.zip", md5


_V15 = {
    "x86_64": _release("20250330", "15.0.0", "x86_64", "e54694828bd74e9066b2534a9675c31e"),
    "arm64": _release("20250330", "15.0.0", "arm64", "79acb62f0f7c66b0f0bcadae5624f3d1"),
    "arm": _release("20250330", "15.0.0", "arm", "4ced6a404a714e61831e16068c3642b3"),
}
_V13_X86_64 = _release("20240226", "13.0.0", "x86_64", "eee87a540b6e778f3a114fff29e133aa")
_V13_ARM64 = _release("20240226", "13.0.0", "arm64", "ebdf35e17bc1c22337762fcf15cd6e97")
_V12_X86_64 = _release("20240619", "12.1.0", "x86_64", "05d6e99b6e6567e66d43774559b15fbd")
_V12_ARM64 = _release("20240619", "12.1.0", "arm64", "94dd174ff16c2f0006b66b25025efd04")

MINDTHEGAPPS_SOURCES: dict[str, dict[str, tuple[str, str]]] = {
    "12.0.0": {
        "x86_64": _V12_X86_64,
        "x86": _release("20240619", "12.1.0", "x86", "ff2421a75afbdda8a003e4fd25e95050"),
        "arm64": _V12_ARM64,
        "arm": _release("20240619", "12.1.0", "arm", "5af756b3b5776c2f6ee024a9f7f42a2f"),
    },
    "12.0.0_64only": {"x86_64": _V12_X86_64, "arm64": _V12_ARM64},
    "13.0.0": {
        "x86_64": _V13_X86_64,
        "x86": _release("20240226", "13.0.0", "x86", "d928c5eabb4394a97f2d7a5c663e7c2e"),
        "arm64": _V13_ARM64,
        "arm": _release("20240619", "13.0.0", "arm", "ec7aa5efc9e449b101bc2ee7448a49bf"),
    },
    "13.0.0_64only": {"x86_64": _V13_X86_64, "arm64": _V13_ARM64},
    "14.0.0": {
        "x86_64": _release("20240226", "14.0.0", "x86_64", "a827a84ccb0cf5914756e8561257ed13"),
        "x86": _release("20240226", "14.0.0", "x86", "45736b21475464e4a45196b9aa9d3b7f"),
        "arm64": _release("20240226", "14.0.0", "arm64", "a0905cc7bf3f4f4f2e3f59a4e1fc789b"),
        "arm": _release("20240226", "14.0.0", "arm", "fa167a3b7a10c4d3e688a59cd794f75b"),
    },
    "15.0.0": dict(_V15),
    "16.0.0": dict(_V15),
}


class MindTheGappsAddon(VendorAddon):
    """MindTheGapps: a flashable zip whose ``system/`` is copied as-is."""

    descriptor: ClassVar[AddonDescriptor] = AddonDescriptor(
        key="mindthegapps",
        name="MindTheGapps",
        category=AddonCategory.GOOGLE_APPS,
        versions=tuple(MINDTHEGAPPS_SOURCES),
        description="MindTheGapps (Google Apps)",
    )
    manifest: ClassVar[SourceManifest] = SourceManifest.per_arch(
        "MindTheGapps", MINDTHEGAPPS_SOURCES
    )
    archive_name: ClassVar[str] = "mindthegapps.zip"

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        source = self.extract_dir / "system"
        if not source.is_dir():
            raise StagingError(f"MindTheGapps archive has no system/ directory: {source}")
        copy_tree(source, target / "system")

    def boot_args(self, version: str, arch: str) -> list[str]:
        return ["ro.setupwizard.mode=DISABLED"]
