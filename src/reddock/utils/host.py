"""Host platform detection."""

import platform

# platform.machine() values -> add-on architecture names
_MACHINE_ARCH: dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv8l": "arm",
    "arm": "arm",
}

DEFAULT_ARCH = "x86_64"


def get_host_arch() -> str:
    """Map the host machine to one of x86, x86_64, arm, arm64.

    Unknown machines fall back to x86_64, the architecture most redroid
    images target.
    """
    return _MACHINE_ARCH.get(platform.machine().lower(), DEFAULT_ARCH)


def is_64only(version: str) -> bool:
    """Check whether a version token names a 64-bit-only image."""
    return version.endswith("_64only")
