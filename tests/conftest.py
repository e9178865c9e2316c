"""Shared fixtures: offline downloader, fake container engine, vendor archives."""

from __future__ import annotations

import shutil
import stat
import tarfile
import zipfile
from pathlib import Path

import pytest

from reddock.core.addons.houdini import HOUDINI_SOURCES
from reddock.core.addons.ndk import NDK_COMMIT
from reddock.core.catalog import AddonCatalog
from reddock.core.store import ConfigStore
from reddock.exceptions import ContainerRuntimeError, DownloadError
from reddock.models.config import ContainerRecord, ReddockConfig
from reddock.utils import config as settings
from reddock.utils.process import ProcessResult
from reddock.utils.progress import NULL_PROGRESS

CONTAINER = "redroid13"


def make_zip(
    path: Path,
    files: dict[str, str | bytes],
    *,
    modes: dict[str, int] | None = None,
    symlinks: dict[str, str] | None = None,
) -> Path:
    """Write a zip whose members carry unix modes (and optional symlinks)."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFREG | (modes or {}).get(name, 0o644)) << 16
            zf.writestr(info, data)
        for name, target in (symlinks or {}).items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, target)
    return path


class RecordingDownloader:
    """Serves local fixture archives by URL substring and records every call."""

    def __init__(self, routes: dict[str, Path], failing: tuple[str, ...] = ()):
        self.routes = routes
        self.failing = failing
        self.calls: list[str] = []

    def __call__(self, url: str, dest: Path, *, progress=NULL_PROGRESS) -> Path:
        self.calls.append(url)
        if any(marker in url for marker in self.failing):
            raise DownloadError(f"Bad status downloading {url}: 404 Not Found")
        for marker, source in self.routes.items():
            if marker in url:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, dest)
                return dest
        raise DownloadError(f"No fixture archive for {url}")


class FakeRuntime:
    """In-memory stand-in for ContainerRuntime."""

    name = "docker"

    def __init__(self, status: str | None = "running"):
        self.container_status = status
        self.exec_returncode = 0
        self.exec_stdout = ""
        self.fail_copy = False
        self.build_returncode = 0
        self.build_output = ""
        self.push_returncode = 0

        self.pulled: list[str] = []
        self.copied: list[tuple[str, Path, str]] = []
        self.execs: list[tuple[str, list[str]]] = []
        self.built: list[tuple[str, str]] = []
        self.pushed: list[str] = []

    def status(self, container: str) -> str | None:
        return self.container_status

    def is_running(self, container: str) -> bool:
        return self.container_status == "running"

    def pull_image(self, reference: str) -> None:
        self.pulled.append(reference)

    def exec(self, container: str, argv: list[str]) -> ProcessResult:
        self.execs.append((container, argv))
        return ProcessResult(
            command=["docker", "exec", container, *argv],
            returncode=self.exec_returncode,
            stdout=self.exec_stdout,
            stderr="" if self.exec_returncode == 0 else "Permission denied",
        )

    def copy_into(self, container: str, host_path: str, dest: str = "/") -> None:
        if self.fail_copy:
            raise ContainerRuntimeError("docker cp failed (exit 1):\nno space left")
        self.copied.append((container, Path(host_path), dest))

    def build(self, tag: str, context: str) -> ProcessResult:
        self.built.append((tag, context))
        return ProcessResult(
            command=["docker", "build", "-t", tag, context],
            returncode=self.build_returncode,
            stdout=self.build_output,
            stderr="",
        )

    def push(self, image: str) -> ProcessResult:
        self.pushed.append(image)
        return ProcessResult(
            command=["docker", "push", image],
            returncode=self.push_returncode,
            stdout="",
            stderr="",
        )


def _houdini_zip(root: Path) -> Path:
    files: dict[str, str] = {}
    modes: dict[str, int] = {}
    for url, _ in set(HOUDINI_SOURCES.values()):
        commit = url.rsplit("/", 1)[-1].removesuffix(".zip")
        prefix = f"vendor_intel_proprietary_houdini-{commit}/prebuilts"
        files[f"{prefix}/bin/houdini"] = "#!houdini"
        files[f"{prefix}/lib/libhoudini.so"] = "original"
        modes[f"{prefix}/bin/houdini"] = 0o755
    return make_zip(root / "houdini.zip", files, modes=modes)


def _houdini_patch_zip(root: Path) -> Path:
    return make_zip(
        root / "houdini_patch.zip",
        {"redroid_libhoudini_hack-branch/system/lib/libhoudini.so": "patched"},
    )


def _ndk_zip(root: Path) -> Path:
    prefix = f"vendor_google_proprietary_ndk_translation-prebuilt-{NDK_COMMIT}/prebuilts"
    return make_zip(
        root / "ndk.zip",
        {
            f"{prefix}/etc/init/ndk_translation.rc": "service ndk",
            f"{prefix}/lib64/libndk_translation.so": "ndk",
        },
        modes={f"{prefix}/etc/init/ndk_translation.rc": 0o600},
    )


def _mindthegapps_zip(root: Path) -> Path:
    return make_zip(
        root / "mindthegapps.zip",
        {
            "system/priv-app/Phonesky/Phonesky.apk": "apk",
            "system/etc/permissions/privapp-permissions-google.xml": "<xml/>",
            "META-INF/com/google/android/update-binary": "#!/sbin/sh",
        },
    )


def _litegapps_zip(root: Path) -> Path:
    payload = root / "litegapps-payload"
    for arch, api in (("x86_64", "30"), ("x86_64", "33"), ("arm64", "30")):
        app = payload / arch / api / "system" / "priv-app" / "GmsCore"
        app.mkdir(parents=True)
        (app / "GmsCore.apk").write_text(f"{arch}-{api}")

    tarball = root / "files.tar.xz"
    with tarfile.open(tarball, "w:xz") as tf:
        for arch_dir in sorted(payload.iterdir()):
            tf.add(arch_dir, arcname=arch_dir.name)

    return make_zip(
        root / "litegapps.zip",
        {"files/files.tar.xz": tarball.read_bytes(), "module.prop": "id=litegapps"},
    )


def _opengapps_zip(root: Path) -> Path:
    return make_zip(
        root / "open_gapps.zip",
        {
            "Core/defaultetc-common.tar.lz": "lz",
            "Core/gsfcore-all.tar.lz": "lz",
            "Core/setupwizarddefault-x86_64.tar.lz": "lz",
            "installer.sh": "#!/sbin/sh",
        },
    )


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Keep the user's settings, config and env out of every test."""

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for var in (settings.STAGING_ROOT_ENV, settings.RUNTIME_ENV, settings.VERIFY_ENV):
        monkeypatch.delenv(var, raising=False)
    settings.reload_settings()
    yield
    settings.reload_settings()


@pytest.fixture
def staging_root(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture(scope="session")
def archives(tmp_path_factory) -> dict[str, Path]:
    """URL substring -> local vendor archive."""

    root = tmp_path_factory.mktemp("archives")
    return {
        "vendor_intel_proprietary_houdini": _houdini_zip(root),
        "redroid_libhoudini_hack": _houdini_patch_zip(root),
        "ndk_translation-prebuilt": _ndk_zip(root),
        "MindTheGapps": _mindthegapps_zip(root),
        "litegapps": _litegapps_zip(root),
        "open_gapps": _opengapps_zip(root),
    }


@pytest.fixture
def downloader(archives) -> RecordingDownloader:
    return RecordingDownloader(archives)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def catalog(staging_root, downloader, fake_runtime) -> AddonCatalog:
    return AddonCatalog(
        staging_root,
        runtime=fake_runtime,
        downloader=downloader,
        verify_checksums=False,
    )


@pytest.fixture
def store(tmp_path) -> ConfigStore:
    """Config store that already manages ``CONTAINER``."""

    store = ConfigStore(tmp_path / "config" / "config.json")
    config = ReddockConfig()
    config.add_container(ContainerRecord(name=CONTAINER, image_url="redroid/redroid:13.0.0-latest"))
    store.save(config)
    return store


@pytest.fixture
def container() -> str:
    return CONTAINER


@pytest.fixture
def failing_downloader(archives):
    """Factory for a downloader that returns 404 for URLs containing a marker."""

    def factory(*markers: str) -> RecordingDownloader:
        return RecordingDownloader(archives, failing=markers)

    return factory


@pytest.fixture
def zip_factory():
    return make_zip
