"""Add-on registry and build-time image assembly."""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from reddock.core.addons import Addon, Downloader, create_addons
from reddock.core.runtime import ContainerRuntime
from reddock.exceptions import (
    AddonNotFoundError,
    ImageBuildError,
    PreparationError,
    ReddockError,
    VersionUnsupportedError,
)
from reddock.models.addon import PrepareStage
from reddock.models.inject import BuildResult
from reddock.utils.archive import download
from reddock.utils.config import get_staging_root, verify_checksums_enabled
from reddock.utils.progress import NULL_PROGRESS, ProgressSink

# Always the first boot argument of a generated image
BASE_BOOT_ARGS: tuple[str, ...] = ("androidboot.redroid_gpu_mode=auto",)

DOCKERFILE_NAME = "Dockerfile"

# NAMESPACE/REPOSITORY[:TAG], no registry host:port
IMAGE_NAME_RE = re.compile(
    r"^[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*"
    r"(?::[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})?$"
)


def validate_image_name(image: str) -> None:
    """Reject names docker would refuse or read as a registry host.

    Raises:
        ImageBuildError: If the name is not NAMESPACE/REPOSITORY[:TAG].
    """
    if not IMAGE_NAME_RE.match(image):
        raise ImageBuildError(
            f"Invalid image name '{image}'. Use NAMESPACE/REPOSITORY[:TAG] "
            "(lowercase, no HOST[:PORT]/ prefix)"
        )


def default_base_image(version: str) -> str:
    """Official redroid image for an Android version token."""
    return f"redroid/redroid:{version}-latest"


@dataclass
class _StageTracker:
    """Forwards events and remembers the last stage per add-on."""

    states: dict[str, PrepareStage]
    name: str
    forward: ProgressSink

    def enter(self, stage: PrepareStage) -> None:
        self.states[self.name] = stage
        self.forward.enter(stage)

    def emit(self, message: str) -> None:
        self.forward.emit(message)

    def warn(self, message: str) -> None:
        self.forward.warn(message)


class AddonCatalog:
    """Registry of add-ons and the build-time preparation pipeline.

    Failure policy:

    - ``prepare``: strict. Any stage failure aborts and is re-raised as
      ``PreparationError`` with the original error as its cause.
    - ``prepare_build_context``: lenient. An add-on that fails to prepare is
      reported as a warning, recorded in ``BuildResult.skipped`` and left out
      of the image; the build goes on with the rest.
    """

    def __init__(
        self,
        staging_root: Path | None = None,
        *,
        runtime: ContainerRuntime | None = None,
        downloader: Downloader = download,
        verify_checksums: bool | None = None,
    ):
        """Initialize the catalog.

        Args:
            staging_root: Shared scratch tree. Defaults to settings/env.
            runtime: Container engine wrapper, created on first use if None.
            downloader: Fetch function handed to every add-on.
            verify_checksums: Check archive MD5s. Defaults to settings/env.
        """
        self.staging_root = staging_root or get_staging_root()
        if verify_checksums is None:
            verify_checksums = verify_checksums_enabled()
        self._runtime = runtime
        self._addons = create_addons(
            self.staging_root,
            downloader=downloader,
            verify_checksums=verify_checksums,
        )
        self.states: dict[str, PrepareStage] = {}

    @property
    def runtime(self) -> ContainerRuntime:
        if self._runtime is None:
            self._runtime = ContainerRuntime()
        return self._runtime

    # Registry

    def get(self, name: str) -> Addon:
        """Look up an add-on by catalog name.

        Raises:
            AddonNotFoundError: If the name is unknown.
        """
        addon = self._addons.get(name)
        if addon is None:
            raise AddonNotFoundError(name)
        return addon

    def list(self) -> list[str]:
        """Catalog names in registration order."""
        return list(self._addons)

    def supported_versions(self, name: str) -> tuple[str, ...]:
        return self.get(name).supported_versions()

    def validate(self, name: str, version: str, arch: str) -> Addon:
        """Resolve an add-on and check version and architecture up front.

        Raises:
            AddonNotFoundError, VersionUnsupportedError,
            ArchitectureUnsupportedError
        """
        addon = self.get(name)
        if not addon.is_supported(version):
            raise VersionUnsupportedError(addon.name, version)
        addon.resolve(version, arch)
        return addon

    def state(self, name: str) -> PrepareStage:
        """Last preparation stage reached by ``name`` in this catalog."""
        return self.states.get(name, PrepareStage.IDLE)

    # Preparation

    def prepare(
        self,
        name: str,
        version: str,
        arch: str,
        progress: ProgressSink = NULL_PROGRESS,
    ) -> Path:
        """Download, extract and stage one add-on under the staging root.

        Returns:
            The staged ``<staging_root>/<name>`` directory.

        Raises:
            AddonNotFoundError, VersionUnsupportedError,
            ArchitectureUnsupportedError: Before any download.
            PreparationError: If any pipeline stage fails.
        """
        addon = self.validate(name, version, arch)
        self.states[name] = PrepareStage.IDLE
        tracker = _StageTracker(self.states, name, progress)

        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
            return addon.install(version, arch, self.staging_root, tracker)
        except (ReddockError, OSError) as e:
            tracker.enter(PrepareStage.FAILED)
            raise PreparationError(addon.name, e) from e

    # Recipes

    def build_dockerfile(self, base_image: str, addon_names: list[str]) -> str:
        """Base-image directive plus one COPY per add-on, in the given order.

        Raises:
            AddonNotFoundError: Before any text is produced.
        """
        addons = [self.get(name) for name in addon_names]

        lines = [f"FROM {base_image}\n"]
        for addon in addons:
            instructions = addon.build_layer_instructions()
            if instructions:
                lines.append(instructions)
        return "".join(lines)

    def boot_directive(self, version: str, arch: str, addon_names: list[str]) -> str:
        """``CMD`` line with the fixed boot argument and add-on properties."""
        args: list[str] = list(BASE_BOOT_ARGS)
        for name in addon_names:
            for arg in self.get(name).boot_args(version, arch):
                if arg not in args:
                    args.append(arg)
        return f"CMD {json.dumps(args)}\n"

    # Image build

    def prepare_build_context(
        self,
        base_image: str,
        target_image: str,
        version: str,
        arch: str,
        addon_names: list[str],
        progress: ProgressSink = NULL_PROGRESS,
    ) -> BuildResult:
        """Pull the base image, stage add-ons, and write the recipe.

        Add-ons that fail to prepare are skipped with a warning.
        """
        validate_image_name(target_image)
        for name in addon_names:
            self.get(name)

        self.staging_root.mkdir(parents=True, exist_ok=True)

        progress.emit(f"Pulling base image {base_image}...")
        self.runtime.pull_image(base_image)

        result = BuildResult(image=target_image, dockerfile="")
        for name in addon_names:
            try:
                self.prepare(name, version, arch, progress)
            except ReddockError as e:
                progress.warn(f"{e}. Continuing without {name}")
                result.skipped[name] = str(e)
            else:
                result.prepared.append(name)

        result.dockerfile = self.build_dockerfile(
            base_image, result.prepared
        ) + self.boot_directive(version, arch, result.prepared)

        (self.staging_root / DOCKERFILE_NAME).write_text(result.dockerfile)
        (self.staging_root / ".dockerignore").write_text(".work\n.locks\n")
        return result

    def build_image(self, result: BuildResult, *, push: bool = False) -> BuildResult:
        """Run the engine build on the staging root, optionally pushing.

        Raises:
            ImageBuildError: With the engine's combined output on failure.
        """
        build = self.runtime.build(result.image, str(self.staging_root))
        if not build.success:
            raise ImageBuildError(
                f"Failed to build image {result.image} (exit {build.returncode})",
                output=build.combined,
            )

        if push:
            self.push_image(result.image)
            result.pushed = True
        return result

    def push_image(self, image: str) -> None:
        """Push a built image to its registry.

        Raises:
            ImageBuildError: If the name lacks a namespace or the push fails.
        """
        if "/" not in image:
            raise ImageBuildError(
                "The image name must include username/repository format "
                "(e.g., username/image:tag)"
            )
        pushed = self.runtime.push(image)
        if not pushed.success:
            raise ImageBuildError(f"Failed to push {image}", output=pushed.combined)

    def build_custom_image(
        self,
        base_image: str,
        target_image: str,
        version: str,
        arch: str,
        addon_names: list[str],
        *,
        push: bool = False,
        progress: ProgressSink = NULL_PROGRESS,
    ) -> BuildResult:
        """Stage add-ons into a build context and build ``target_image``."""
        result = self.prepare_build_context(
            base_image, target_image, version, arch, addon_names, progress
        )
        progress.emit(f"Building {target_image}...")
        return self.build_image(result, push=push)

    def cleanup(self) -> None:
        """Remove the whole staging root."""
        if self.staging_root.exists():
            shutil.rmtree(self.staging_root)
