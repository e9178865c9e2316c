"""Add-on implementations and the default registry."""

from pathlib import Path

from reddock.core.addons.base import Addon, Downloader, VendorAddon
from reddock.core.addons.houdini import HoudiniAddon
from reddock.core.addons.litegapps import LiteGappsAddon
from reddock.core.addons.mindthegapps import MindTheGappsAddon
from reddock.core.addons.ndk import NdkAddon
from reddock.core.addons.opengapps import OpenGappsAddon
from reddock.utils.archive import download

ADDON_TYPES: tuple[type[VendorAddon], ...] = (
    HoudiniAddon,
    NdkAddon,
    LiteGappsAddon,
    MindTheGappsAddon,
    OpenGappsAddon,
)


def create_addons(
    staging_root: Path,
    *,
    downloader: Downloader = download,
    verify_checksums: bool = False,
) -> dict[str, Addon]:
    """Instantiate every known add-on, keyed by catalog name."""
    return {
        addon_type.descriptor.key: addon_type(
            staging_root,
            downloader=downloader,
            verify_checksums=verify_checksums,
        )
        for addon_type in ADDON_TYPES
    }


__all__ = [
    "ADDON_TYPES",
    "Addon",
    "Downloader",
    "HoudiniAddon",
    "LiteGappsAddon",
    "MindTheGappsAddon",
    "NdkAddon",
    "OpenGappsAddon",
    "VendorAddon",
    "create_addons",
]
