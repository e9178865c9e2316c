"""Install add-ons into a running container without rebuilding its image."""

from pathlib import Path

from reddock.core.catalog import AddonCatalog
from reddock.core.runtime import ContainerRuntime
from reddock.core.store import ConfigStore
from reddock.exceptions import (
    ConfigError,
    ContainerNotRunningError,
    ContainerRuntimeError,
    ReddockError,
    StagingError,
    TransferError,
)
from reddock.models.inject import InjectReport, InjectRequest, InjectResult
from reddock.utils.archive import sorted_children
from reddock.utils.deps import check_archive_tools
from reddock.utils.progress import NULL_PROGRESS, ProgressSink

_GAPPS_PERMISSIONS = [
    "chmod -R 755 /system/priv-app",
    "chmod -R 644 /system/etc/permissions",
    "chmod -R 644 /system/framework",
]

# Shell commands run inside the container after ``cp``; globs need sh.
PERMISSION_FIXES: dict[str, list[str]] = {
    "houdini": [
        "chmod 644 /system/etc/init/houdini.rc",
        "chmod -R 755 /system/bin/houdini*",
        "chmod -R 644 /system/lib*/libhoudini*",
    ],
    "ndk": [
        "chmod 644 /system/etc/init/ndk_translation.rc",
        "chmod -R 644 /system/lib*/libndk*",
    ],
    "litegapps": _GAPPS_PERMISSIONS,
    "mindthegapps": _GAPPS_PERMISSIONS,
    "opengapps": _GAPPS_PERMISSIONS,
}


class AddonInjector:
    """Runs the add-on pipeline against a live container.

    Failure policy:

    - ``inject_to_container``: strict up to and including the file transfer;
      any error aborts and nothing is recorded. Permission repair afterwards
      is best-effort: failures become warnings.
    - ``inject_multiple``: report-and-continue. Each request gets its own
      ``InjectResult``; a failed one does not stop the rest.
    """

    def __init__(
        self,
        catalog: AddonCatalog | None = None,
        *,
        runtime: ContainerRuntime | None = None,
        store: ConfigStore | None = None,
    ):
        self.catalog = catalog or AddonCatalog(runtime=runtime)
        self.runtime = runtime or self.catalog.runtime
        self.store = store or ConfigStore()

    @property
    def staging_root(self) -> Path:
        return self.catalog.staging_root

    @staticmethod
    def missing_tools() -> list[str]:
        """Archive tools (tar, lzip, xz) that are not installed."""
        return check_archive_tools()

    def ensure_running(self, container: str) -> None:
        """Raise unless ``container`` exists and is running."""
        status = self.runtime.status(container)
        if status != "running":
            raise ContainerNotRunningError(container, status or "not found")

    def inject_to_container(
        self,
        container: str,
        addon_name: str,
        version: str,
        arch: str,
        progress: ProgressSink = NULL_PROGRESS,
        *,
        check_running: bool = True,
    ) -> InjectResult:
        """Stage one add-on and copy it into ``container``.

        Raises:
            AddonNotFoundError, VersionUnsupportedError,
            ArchitectureUnsupportedError: Before anything else happens.
            ContainerNotRunningError: Before any staging.
            DownloadError, ExtractError, StagingError: From the pipeline.
            TransferError: If copying into the container fails.
        """
        addon = self.catalog.validate(addon_name, version, arch)
        if check_running:
            self.ensure_running(container)

        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Cannot create {self.staging_root}: {e}") from e
        staged = addon.install(version, arch, self.staging_root, progress)

        progress.emit(f"Injecting {addon.name} into {container}...")
        copied = self._transfer(container, staged, progress)

        progress.emit("Setting permissions...")
        warnings = self._repair_permissions(container, addon_name, progress)

        recorded = False
        try:
            recorded = self.store.record_addon(container, addon_name)
        except ConfigError as e:
            progress.warn(f"Injected {addon_name} but could not update config: {e}")

        return InjectResult(
            name=addon_name,
            success=True,
            copied=copied,
            warnings=warnings,
            recorded=recorded,
        )

    def _transfer(self, container: str, staged: Path, progress: ProgressSink) -> list[str]:
        if not staged.is_dir():
            raise TransferError(f"Staged directory not found: {staged}")

        copied: list[str] = []
        for entry in sorted_children(staged):
            try:
                self.runtime.copy_into(container, str(entry), "/")
            except ContainerRuntimeError as e:
                raise TransferError(f"Failed to copy {entry.name}: {e}") from e
            copied.append(entry.name)
            progress.emit(f"Copied {entry.name}")
        return copied

    def _repair_permissions(
        self, container: str, addon_name: str, progress: ProgressSink
    ) -> list[str]:
        warnings: list[str] = []
        for command in PERMISSION_FIXES.get(addon_name, []):
            result = self.runtime.exec(container, ["sh", "-c", command])
            if not result.success:
                message = f"{command!r} failed in {container}: {result.combined.strip()}"
                warnings.append(message)
                progress.warn(message)
        return warnings

    def inject_multiple(
        self,
        container: str,
        requests: list[InjectRequest],
        progress: ProgressSink = NULL_PROGRESS,
    ) -> InjectReport:
        """Inject several add-ons in order, continuing past failures.

        Raises:
            ContainerNotRunningError: Checked once, before the first request.
        """
        self.ensure_running(container)

        report = InjectReport(container=container)
        for i, request in enumerate(requests, 1):
            progress.emit(f"[{i}/{len(requests)}] Processing {request.name}...")
            try:
                result = self.inject_to_container(
                    container,
                    request.name,
                    request.version,
                    request.arch,
                    progress,
                    check_running=False,
                )
            except ReddockError as e:
                progress.warn(f"Failed to inject {request.name}: {e}")
                result = InjectResult(name=request.name, success=False, error=str(e))
            report.results.append(result)
        return report

    def cleanup(self) -> None:
        self.catalog.cleanup()
