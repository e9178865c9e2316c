"""Pydantic models describing add-ons and their download manifests."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from reddock.exceptions import ArchitectureUnsupportedError, VersionUnsupportedError

ARCHITECTURES: frozenset[str] = frozenset({"x86", "x86_64", "arm", "arm64"})

# Manifest key for an entry that serves every allowed architecture.
ANY_ARCH = "*"


class AddonCategory(StrEnum):
    """Add-on family, used for filtering and display only."""

    CPU_TRANSLATION_A = "cpu-translation-a"
    CPU_TRANSLATION_B = "cpu-translation-b"
    GOOGLE_APPS = "google-apps"
    ROOT_TOOL = "root-tool"
    DRM_TOOL = "drm-tool"


class PrepareStage(StrEnum):
    """Stages an add-on passes through while being prepared."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    STAGING = "staging"
    DONE = "done"
    FAILED = "failed"


class SourceEntry(BaseModel):
    """A remote archive and its recorded checksum."""

    model_config = ConfigDict(frozen=True)

    url: str
    """Download URL."""

    md5: str | None = None
    """Recorded MD5 of the archive (verified only on request)."""

    @property
    def filename(self) -> str:
        """Last path component of the URL."""
        return self.url.rstrip("/").rsplit("/", 1)[-1]


class SourceManifest(BaseModel):
    """Android version -> architecture -> archive table."""

    model_config = ConfigDict(frozen=True)

    addon: str
    """Display name used in error messages."""

    entries: dict[str, dict[str, SourceEntry]]
    """Per-version archives. ``ANY_ARCH`` keys serve every allowed arch."""

    architectures: frozenset[str] | None = None
    """Coarse allow-list checked before the per-arch lookup, if set."""

    @classmethod
    def per_arch(
        cls, addon: str, table: dict[str, dict[str, tuple[str, str]]]
    ) -> "SourceManifest":
        """Build a manifest from ``{version: {arch: (url, md5)}}``."""
        return cls(
            addon=addon,
            entries={
                version: {
                    arch: SourceEntry(url=url, md5=md5)
                    for arch, (url, md5) in archs.items()
                }
                for version, archs in table.items()
            },
        )

    @classmethod
    def arch_restricted(
        cls,
        addon: str,
        table: dict[str, tuple[str, str | None]],
        architectures: frozenset[str],
    ) -> "SourceManifest":
        """Build a manifest whose entries are shared by a set of architectures."""
        return cls(
            addon=addon,
            entries={
                version: {ANY_ARCH: SourceEntry(url=url, md5=md5)}
                for version, (url, md5) in table.items()
            },
            architectures=architectures,
        )

    def check_arch(self, arch: str) -> None:
        """Raise if ``arch`` is outside the coarse allow-list."""
        if self.architectures is not None and arch not in self.architectures:
            raise ArchitectureUnsupportedError(self.addon, arch)

    def resolve(self, version: str, arch: str) -> SourceEntry:
        """Look up the archive for ``version`` on ``arch``.

        Raises:
            VersionUnsupportedError: If the version has no entries.
            ArchitectureUnsupportedError: If the architecture is not served.
        """
        self.check_arch(arch)

        archs = self.entries.get(version)
        if archs is None:
            raise VersionUnsupportedError(self.addon, version)

        entry = archs.get(arch) or archs.get(ANY_ARCH)
        if entry is None:
            raise ArchitectureUnsupportedError(self.addon, arch, version)
        return entry


class AddonDescriptor(BaseModel):
    """Static facts shared by every add-on implementation."""

    model_config = ConfigDict(frozen=True)

    key: str
    """Catalog name, also the staged subdirectory name (e.g. 'houdini')."""

    name: str
    """Display name (e.g. 'Houdini')."""

    category: AddonCategory

    versions: tuple[str, ...]
    """Supported Android versions, exact-match tokens such as '13.0.0_64only'."""

    description: str = ""

    def is_supported(self, version: str) -> bool:
        """Check exact membership in the supported version list."""
        return version in self.versions
