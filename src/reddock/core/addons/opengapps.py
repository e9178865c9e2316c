"""OpenGApps pico for Android 11."""

from pathlib import Path
from typing import ClassVar

from reddock.core.addons.base import VendorAddon
from reddock.exceptions import StagingError
from reddock.models.addon import AddonCategory, AddonDescriptor, SourceManifest
from reddock.utils.archive import copy_tree, extract_tar, reset_dir, sorted_children
from reddock.utils.progress import ProgressSink

_SF = "https://sourceforge.net/projects/opengapps/files"

OPENGAPPS_VERSION = "11.0.0"

OPENGAPPS_SOURCES: dict[str, tuple[str, str]] = {
    "x86_64": (
        f"{_SF}/x86_64/20220503/open_gapps-x86_64-11.0-pico-20220503.zip",
        "5a6d242be34ad1acf92899c7732afa1b",
    ),
    "x86": (
        f"{_SF}/x86/20220503/open_gapps-x86-11.0-pico-20220503.zip",
        "efda4943076016d00b40e0874b12ddd3",
    ),
    "arm64": (
        f"{_SF}/arm64/20220503/open_gapps-arm64-11.0-pico-20220503.zip",
        "67e927e4943757f418e4f934825cf987",
    ),
    "arm": (
        f"{_SF}/arm/20220215/open_gapps-arm-11.0-pico-20220215.zip",
        "8719519fa32ae83a62621c6056d32814",
    ),
}

# Core packages that carry framework/config files rather than an APK.
COMMON_PACKAGES = frozenset(
    {
        "defaultetc-common.tar.lz",
        "defaultframework-common.tar.lz",
        "googlepixelconfig-common.tar.lz",
        "vending-common.tar.lz",
    }
)

# Substrings of Core packages that break redroid's first boot.
SKIP_PACKAGES = (
    "setupwizarddefault-",
    "setupwizardtablet-",
)


class OpenGappsAddon(VendorAddon):
    """OpenGApps: a zip of lzip tarballs, one per package, under ``Core/``."""

    descriptor: ClassVar[AddonDescriptor] = AddonDescriptor(
        key="opengapps",
        name="OpenGapps",
        category=AddonCategory.GOOGLE_APPS,
        versions=(OPENGAPPS_VERSION,),
        description="OpenGapps (Google Apps, Android 11 only)",
    )
    manifest: ClassVar[SourceManifest] = SourceManifest.per_arch(
        "OpenGapps", {OPENGAPPS_VERSION: OPENGAPPS_SOURCES}
    )
    archive_name: ClassVar[str] = "open_gapps.zip"

    @staticmethod
    def should_skip(package: str) -> bool:
        return any(pattern in package for pattern in SKIP_PACKAGES)

    @staticmethod
    def is_common(package: str) -> bool:
        return package in COMMON_PACKAGES

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        core = self.extract_dir / "Core"
        if not core.is_dir():
            raise StagingError(f"OpenGapps archive has no Core directory: {core}")

        system = target / "system"
        for package in sorted_children(core):
            if self.should_skip(package.name):
                progress.emit(f"Skipping {package.name}")
                continue

            # Fresh scratch per package so trees never mix
            unpack = reset_dir(self.scratch_dir)
            extract_tar(package, unpack, "lzip")
            package_root = self._first_dir(unpack, package.name)

            if self.is_common(package.name):
                progress.emit(f"Processing extra package: {package.name}")
                common = package_root / "common"
                if not common.is_dir():
                    raise StagingError(f"{package.name} has no common/ directory")
                for entry in sorted_children(common):
                    copy_tree(entry, system / entry.name)
            else:
                progress.emit(f"Processing app package: {package.name}")
                # <app>/<dpi>/<priv-app|app>/<AppName>
                dpi = self._first_dir(package_root, package.name)
                app_dir = self._first_dir(dpi, package.name)
                for app in sorted_children(app_dir):
                    copy_tree(app, system / "priv-app" / app.name)

    @staticmethod
    def _first_dir(path: Path, package: str) -> Path:
        for child in sorted_children(path):
            if child.is_dir():
                return child
        raise StagingError(f"Unexpected layout in {package}: nothing under {path.name}")
