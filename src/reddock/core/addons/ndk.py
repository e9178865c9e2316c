"""Google NDK translation layer (x86/x86_64 hosts only)."""

from pathlib import Path
from typing import ClassVar

from reddock.core.addons.base import VendorAddon
from reddock.models.addon import AddonCategory, AddonDescriptor, SourceManifest
from reddock.utils.archive import copy_tree
from reddock.utils.progress import ProgressSink

NDK_COMMIT = "9324a8914b649b885dad6f2bfd14a67e5d1520bf"
NDK_URL = (
    "https://github.com/supremegamers/vendor_google_proprietary_ndk_translation-prebuilt"
    f"/archive/{NDK_COMMIT}.zip"
)
NDK_MD5 = "c9572672d1045594448068079b34c350"

NDK_VERSIONS = (
    "8.1.0",
    "9.0.0",
    "10.0.0",
    "11.0.0",
    "12.0.0",
    "12.0.0_64only",
    "13.0.0",
    "14.0.0",
    "15.0.0",
    "16.0.0",
)


class NdkAddon(VendorAddon):
    """libndk_translation prebuilts, one archive for every Android version."""

    descriptor: ClassVar[AddonDescriptor] = AddonDescriptor(
        key="ndk",
        name="NDK Translation",
        category=AddonCategory.CPU_TRANSLATION_B,
        versions=NDK_VERSIONS,
        description="NDK ARM translation (x86/x86_64 only)",
    )
    manifest: ClassVar[SourceManifest] = SourceManifest.arch_restricted(
        "NDK Translation",
        {version: (NDK_URL, NDK_MD5) for version in NDK_VERSIONS},
        frozenset({"x86", "x86_64"}),
    )
    archive_name: ClassVar[str] = "libndktranslation.zip"

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        prebuilts = (
            self.extract_dir
            / f"vendor_google_proprietary_ndk_translation-prebuilt-{NDK_COMMIT}"
            / "prebuilts"
        )
        system = target / "system"
        copy_tree(prebuilts, system)
        (system / "etc" / "init" / "ndk_translation.rc").chmod(0o644)
