"""Add-on capability contract and the shared download/extract/stage pipeline."""

import contextlib
import fcntl
import shutil
from collections.abc import Iterator
from pathlib import Path
from typing import ClassVar, Protocol

from reddock.exceptions import (
    ExtractError,
    StagingError,
    VersionUnsupportedError,
)
from reddock.models.addon import (
    AddonCategory,
    AddonDescriptor,
    PrepareStage,
    SourceEntry,
    SourceManifest,
)
from reddock.utils.archive import download, extract_zip, reset_dir, verify_md5
from reddock.utils.progress import NULL_PROGRESS, ProgressSink


class Downloader(Protocol):
    """Callable that fetches ``url`` into ``dest``."""

    def __call__(
        self, url: str, dest: Path, *, progress: ProgressSink = ...
    ) -> Path: ...


class Addon(Protocol):
    """Capability set every add-on implements."""

    descriptor: AddonDescriptor

    @property
    def key(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def category(self) -> AddonCategory: ...

    def supported_versions(self) -> tuple[str, ...]: ...

    def is_supported(self, version: str) -> bool: ...

    def resolve(self, version: str, arch: str) -> SourceEntry: ...

    def download(
        self, version: str, arch: str, progress: ProgressSink = ...
    ) -> None: ...

    def extract(
        self, version: str, arch: str, progress: ProgressSink = ...
    ) -> None: ...

    def stage(
        self, version: str, arch: str, output_dir: Path, progress: ProgressSink = ...
    ) -> Path: ...

    def install(
        self, version: str, arch: str, output_dir: Path, progress: ProgressSink = ...
    ) -> Path: ...

    def build_layer_instructions(self) -> str: ...

    def boot_args(self, version: str, arch: str) -> list[str]: ...


@contextlib.contextmanager
def staging_lock(lock_dir: Path, key: str) -> Iterator[None]:
    """Hold an exclusive lock on one add-on's staging subtree.

    Two processes installing the same add-on into the same staging root
    serialize here instead of deleting each other's files.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    with (lock_dir / f"{key}.lock").open("w") as handle:
        fcntl.flock(handle, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)


class VendorAddon:
    """Pipeline shared by the vendor packages.

    Subclasses provide ``descriptor``, ``manifest`` and ``_populate``; the
    default stages download one zip, unpack it, and hand the unpacked tree
    to ``_populate`` to arrange under ``<output>/<key>/system``.

    Scratch layout below the staging root::

        .work/<key>/download/   raw archives
        .work/<key>/extract/    unpacked vendor tree
        .work/<key>/scratch/    nested archives, re-created per use
        .locks/<key>.lock
    """

    descriptor: ClassVar[AddonDescriptor]
    manifest: ClassVar[SourceManifest]
    archive_name: ClassVar[str] = "archive.zip"

    def __init__(
        self,
        staging_root: Path,
        *,
        downloader: Downloader = download,
        verify_checksums: bool = False,
    ):
        """Initialize the add-on.

        Args:
            staging_root: Root of the shared staging tree.
            downloader: Fetch function, replaceable for offline use.
            verify_checksums: Check archives against recorded MD5 sums.
        """
        self.staging_root = staging_root
        self.downloader = downloader
        self.verify_checksums = verify_checksums

    # Descriptor

    @property
    def key(self) -> str:
        return self.descriptor.key

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def category(self) -> AddonCategory:
        return self.descriptor.category

    def supported_versions(self) -> tuple[str, ...]:
        return self.descriptor.versions

    def is_supported(self, version: str) -> bool:
        return self.descriptor.is_supported(version)

    # Paths

    @property
    def work_dir(self) -> Path:
        return self.staging_root / ".work" / self.key

    @property
    def download_dir(self) -> Path:
        return self.work_dir / "download"

    @property
    def extract_dir(self) -> Path:
        return self.work_dir / "extract"

    @property
    def scratch_dir(self) -> Path:
        return self.work_dir / "scratch"

    @property
    def archive_path(self) -> Path:
        return self.download_dir / self.archive_name

    # Pipeline

    def resolve(self, version: str, arch: str) -> SourceEntry:
        """Validate ``version``/``arch`` and return the primary archive.

        Raises:
            VersionUnsupportedError: Version not in the supported list.
            ArchitectureUnsupportedError: No archive for this architecture.
        """
        if not self.is_supported(version):
            raise VersionUnsupportedError(self.name, version)
        return self.manifest.resolve(version, arch)

    def fetch(
        self, entry: SourceEntry, dest: Path, progress: ProgressSink = NULL_PROGRESS
    ) -> Path:
        """Download one archive and optionally check its recorded checksum."""
        self.downloader(entry.url, dest, progress=progress)
        if self.verify_checksums and entry.md5:
            verify_md5(dest, entry.md5)
        return dest

    def download(
        self, version: str, arch: str, progress: ProgressSink = NULL_PROGRESS
    ) -> None:
        entry = self.resolve(version, arch)
        progress.emit(f"Downloading {self.name} for Android {version} ({arch})...")
        self.fetch(entry, self.archive_path, progress)

    def extract(
        self, version: str, arch: str, progress: ProgressSink = NULL_PROGRESS
    ) -> None:
        self.resolve(version, arch)
        if not self.archive_path.is_file():
            raise ExtractError(f"{self.name} archive not downloaded: {self.archive_path}")
        progress.emit(f"Extracting {self.name} archive...")
        try:
            reset_dir(self.extract_dir)
        except OSError as e:
            raise ExtractError(f"Cannot reset {self.extract_dir}: {e}") from e
        extract_zip(self.archive_path, self.extract_dir)

    def stage(
        self,
        version: str,
        arch: str,
        output_dir: Path,
        progress: ProgressSink = NULL_PROGRESS,
    ) -> Path:
        """Arrange extracted files under ``output_dir/<key>``.

        Returns:
            The add-on's staged directory.
        """
        self.resolve(version, arch)
        target = output_dir / self.key
        try:
            reset_dir(target)
        except OSError as e:
            raise StagingError(f"Cannot reset {target}: {e}") from e

        progress.emit(f"Copying {self.name} files...")
        try:
            self._populate(version, arch, target, progress)
        except OSError as e:
            raise StagingError(f"Failed to stage {self.name}: {e}") from e
        return target

    def install(
        self,
        version: str,
        arch: str,
        output_dir: Path,
        progress: ProgressSink = NULL_PROGRESS,
    ) -> Path:
        """Download, extract and stage, stopping at the first failure.

        The unsupported check runs before any file or network access. The
        add-on's scratch tree is wiped first so no state survives from a
        previous run.
        """
        self.resolve(version, arch)

        try:
            with staging_lock(self.staging_root / ".locks", self.key):
                if self.work_dir.exists():
                    shutil.rmtree(self.work_dir)

                progress.enter(PrepareStage.DOWNLOADING)
                self.download(version, arch, progress)
                progress.enter(PrepareStage.EXTRACTING)
                self.extract(version, arch, progress)
                progress.enter(PrepareStage.STAGING)
                staged = self.stage(version, arch, output_dir, progress)
        except OSError as e:
            raise StagingError(f"Failed to prepare {self.name}: {e}") from e

        progress.enter(PrepareStage.DONE)
        return staged

    def _populate(
        self, version: str, arch: str, target: Path, progress: ProgressSink
    ) -> None:
        raise NotImplementedError

    # Build-time integration

    def build_layer_instructions(self) -> str:
        """Recipe line copying the staged subtree into an image layer."""
        return f"COPY {self.key} /\n"

    def boot_args(self, version: str, arch: str) -> list[str]:
        """Android boot properties this add-on needs (none by default)."""
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(staging_root={str(self.staging_root)!r})"
