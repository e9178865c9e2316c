"""Intel Houdini ARM translation layer (x86/x86_64 hosts only)."""

import re
from pathlib import Path
from typing import ClassVar

from reddock.core.addons.base import VendorAddon
from reddock.exceptions import StagingError
from reddock.models.addon import AddonCategory, AddonDescriptor, SourceEntry, SourceManifest
from reddock.utils.archive import copy_tree, extract_zip, reset_dir, single_root
from reddock.utils.host import is_64only
from reddock.utils.progress import ProgressSink

X86_ARCHES = frozenset({"x86", "x86_64"})

_HOUDINI_REPO = "https://github.com/rote66/vendor_intel_proprietary_houdini/archive"
_HOUDINI_PIE = (
    f"{_HOUDINI_REPO}/46682f423b8497db3f96222f2669d770eff764c3.zip",
    "cd4dd2891aa18e7699d33dcc3fe3ffd4",
)
_HOUDINI_Q = (
    f"{_HOUDINI_REPO}/debc3dc91cf12b5c5b8a1c546a5b0b7bf7f838a8.zip",
    "cb7ffac26d47ec7c89df43818e126b47",
)

HOUDINI_SOURCES: dict[str, tuple[str, str]] = {
    "8.1.0": _HOUDINI_PIE,
    "9.0.0": _HOUDINI_PIE,
    "10.0.0": _HOUDINI_Q,
    "11.0.0": _HOUDINI_Q,
    "12.0.0": _HOUDINI_Q,
    "13.0.0": _HOUDINI_Q,
    "14.0.0": _HOUDINI_Q,
    "15.0.0": _HOUDINI_Q,
    "16.0.0": _HOUDINI_Q,
}

# Per-version compatibility overlay applied on top of the prebuilts.
_HACK_REPO = "https://github.com/rote66/redroid_libhoudini_hack/archive/refs/heads"
HOUDINI_PATCHES: dict[str, SourceEntry] = {
    version: SourceEntry(url=f"{_HACK_REPO}/{branch}.zip")
    for version, branch in {
        "9.0.0": "pie",
        "10.0.0": "q",
        "11.0.0": "r",
        "12.0.0": "s",
        "13.0.0": "t",
        "14.0.0": "u",
        "15.0.0": "v",
        "16.0.0": "v",
    }.items()
}

# Oldest supported release: the prebuilts already work, no overlay exists.
NO_PATCH_VERSION = "8.1.0"
# The Pie overlay ships its own init file with the right mode.
NO_CHMOD_VERSION = "9.0.0"

INIT_RC = r"""
on early-init
    mount binfmt_misc binfmt_misc /proc/sys/fs/binfmt_misc

on property:ro.enable.native.bridge.exec=1
    copy /system/etc/binfmt_misc/arm_exe /proc/sys/fs/binfmt_misc/register
    copy /system/etc/binfmt_misc/arm_dyn /proc/sys/fs/binfmt_misc/register

on property:ro.enable.native.bridge.exec64=1
    copy /system/etc/binfmt_misc/arm64_exe /proc/sys/fs/binfmt_misc/register
    copy /system/etc/binfmt_misc/arm64_dyn /proc/sys/fs/binfmt_misc/register

on property:sys.boot_completed=1
    exec -- /system/bin/sh -c "echo ':arm_exe:M::\\\\x7f\\\\x45\\\\x4c\\\\x46\\\\x01\\\\x01\\\\x01\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x02\\\\x00\\\\x28::/system/bin/houdini:P' >> /proc/sys/fs/binfmt_misc/register"
    exec -- /system/bin/sh -c "echo ':arm_dyn:M::\\\\x7f\\\\x45\\\\x4c\\\\x46\\\\x01\\\\x01\\\\x01\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x03\\\\x00\\\\x28::/system/bin/houdini:P' >> /proc/sys/fs/binfmt_misc/register"
    exec -- /system/bin/sh -c "echo ':arm64_exe:M::\\\\x7f\\\\x45\\\\x4c\\\\x46\\\\x02\\\\x01\\\\x01\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x02\\\\x00\\\\xb7::/system/bin/houdini64:P' >> /proc/sys/fs/binfmt_misc/register"
    exec -- /system/bin/sh -c "echo ':arm64_dyn:M::\\\\x7f\\\\x45\\\\x4c\\\\x46\\\\x02\\\\x01\\\\x01\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x00\\\\x03\\\\x00\\\\xb7::/system/bin/houdini64:P' >> /proc/sys/fs/binfmt_misc/register"

"""

BOOT_ARGS_64ONLY = [
    "androidboot.use_memfd=1",
    "ro.product.cpu.abilist=x86_64,arm64-v8a",
    "ro.product.cpu.abilist64=x86_64,arm64-v8a",
    "ro.dalvik.vm.isa.arm64=x86_64",
    "ro.enable.native.bridge.exec=1",
    "ro.dalvik.vm.native.bridge=libhoudini.so",
]

BOOT_ARGS = [
    "ro.product.cpu.abilist=x86_64,arm64-v8a,x86,armeabi-v7a,armeabi",
    "ro.product.cpu.abilist64=x86_64,arm64-v8a",
    "ro.product.cpu.abilist32=x86,armeabi-v7a,armeabi",
    "ro.dalvik.vm.isa.arm=x86",
    "ro.dalvik.vm.isa.arm64=x86_64",
    "ro.enable.native.bridge.exec=1",
    "ro.vendor.enable.native.bridge.exec=1",
    "ro.vendor.enable.native.bridge.exec64=1",
    "ro.dalvik.vm.native.bridge=libhoudini.so",
]

_COMMIT_RE = re.compile(r"([a-zA-Z0-9]+)\.zip$")


class HoudiniAddon(VendorAddon):
    """libhoudini prebuilts plus a per-version compatibility overlay."""

    descriptor: ClassVar[AddonDescriptor] = AddonDescriptor(
        key="houdini",
        name="Houdini",
        category=AddonCategory.CPU_TRANSLATION_A,
        versions=tuple(HOUDINI_SOURCES),
        description="Intel Houdini ARM translation (x86/x86_64 only)",
    )
    manifest: ClassVar[SourceManifest] = SourceManifest.arch_restricted(
        "Houdini", HOUDINI_SOURCES, X86_ARCHES
    )
    archive_name: ClassVar[str] = "libhoudini.zip"
    patch_name: ClassVar[str] = "houdini_patch.zip"

    def _prebuilts_dir(self, version: str, arch: str) -> Path:
        url = self.manifest.resolve(version, arch).url
        match = _COMMIT_RE.search(url)
        if not match:
            raise StagingError(f"Failed to extract archive name from URL: {url}")
        return (
            self.extract_dir
            / f"vendor_intel_proprietary_houdini-{match.group(1)}"
            / "prebuilts"
        )

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        system = target / "system"
        copy_tree(self._prebuilts_dir(version, arch), system)

        init_rc = system / "etc" / "init" / "houdini.rc"
        init_rc.parent.mkdir(parents=True, exist_ok=True)
        init_rc.write_text(INIT_RC)

        if version != NO_PATCH_VERSION:
            self._apply_patch(version, system, progress)

        if version != NO_CHMOD_VERSION:
            init_rc.chmod(0o644)

    def _apply_patch(self, version: str, system: Path, progress: ProgressSink) -> None:
        entry = HOUDINI_PATCHES.get(version)
        if entry is None:
            raise StagingError(f"No Houdini compatibility patch for Android {version}")

        progress.emit(f"Downloading Houdini compatibility patch for Android {version}...")
        archive = self.fetch(entry, self.download_dir / self.patch_name, progress)

        progress.emit("Applying Houdini compatibility patch...")
        unpacked = extract_zip(archive, reset_dir(self.scratch_dir))
        root = single_root(unpacked)
        source = root / "system" if (root / "system").is_dir() else root
        copy_tree(source, system)

    def boot_args(self, version: str, arch: str) -> list[str]:
        if is_64only(version):
            return list(BOOT_ARGS_64ONLY)
        return list(BOOT_ARGS)
