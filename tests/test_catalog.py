from __future__ import annotations

import json

import pytest

from reddock.core.catalog import AddonCatalog, default_base_image, validate_image_name
from reddock.exceptions import (
    AddonNotFoundError,
    ArchitectureUnsupportedError,
    DownloadError,
    ImageBuildError,
    PreparationError,
    VersionUnsupportedError,
)
from reddock.models.addon import PrepareStage
from reddock.utils.progress import ProgressLog

BASE = "redroid/redroid:13.0.0-latest"


class TestRegistry:
    def test_list_in_registration_order(self, catalog):
        assert catalog.list() == ["houdini", "ndk", "litegapps", "mindthegapps", "opengapps"]

    def test_get_unknown(self, catalog):
        with pytest.raises(AddonNotFoundError, match="Add-on 'magisk' not found"):
            catalog.get("magisk")

    def test_supported_versions(self, catalog):
        assert catalog.supported_versions("opengapps") == ("11.0.0",)
        assert "13.0.0_64only" in catalog.supported_versions("mindthegapps")

    def test_staging_root_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REDDOCK_STAGING_ROOT", str(tmp_path / "from-env"))

        assert AddonCatalog().staging_root == tmp_path / "from-env"


class TestPrepare:
    def test_prepare_stages_and_tracks_state(self, catalog, staging_root):
        progress = ProgressLog()

        staged = catalog.prepare("mindthegapps", "13.0.0", "x86_64", progress)

        assert staged == staging_root / "mindthegapps"
        assert (staged / "system" / "priv-app" / "Phonesky" / "Phonesky.apk").is_file()
        assert catalog.state("mindthegapps") is PrepareStage.DONE
        assert progress.stages[-1] is PrepareStage.DONE

    def test_unsupported_version_rejected_before_download(self, catalog, downloader, staging_root):
        with pytest.raises(VersionUnsupportedError):
            catalog.prepare("opengapps", "13.0.0", "x86_64")

        assert downloader.calls == []
        assert not staging_root.exists()
        assert catalog.state("opengapps") is PrepareStage.IDLE

    def test_unsupported_architecture_rejected_before_download(self, catalog, downloader):
        with pytest.raises(ArchitectureUnsupportedError):
            catalog.prepare("houdini", "13.0.0", "arm64")

        assert downloader.calls == []

    def test_pipeline_failure_is_wrapped(self, staging_root, fake_runtime, failing_downloader):
        catalog = AddonCatalog(
            staging_root,
            runtime=fake_runtime,
            downloader=failing_downloader("MindTheGapps"),
        )

        with pytest.raises(PreparationError, match="Failed to prepare MindTheGapps") as exc:
            catalog.prepare("mindthegapps", "13.0.0", "x86_64")

        assert isinstance(exc.value.cause, DownloadError)
        assert isinstance(exc.value.__cause__, DownloadError)
        assert catalog.state("mindthegapps") is PrepareStage.FAILED

    def test_prepare_twice_is_idempotent(self, catalog, staging_root):
        first = catalog.prepare("mindthegapps", "13.0.0", "x86_64")
        before = sorted(p.relative_to(first) for p in first.rglob("*"))

        second = catalog.prepare("mindthegapps", "13.0.0", "x86_64")
        after = sorted(p.relative_to(second) for p in second.rglob("*"))

        assert first == second
        assert before == after

    def test_cleanup_removes_staging_root(self, catalog, staging_root):
        catalog.prepare("mindthegapps", "13.0.0", "x86_64")

        catalog.cleanup()
        catalog.cleanup()

        assert not staging_root.exists()


class TestRecipe:
    def test_empty_list_is_base_only(self, catalog):
        assert catalog.build_dockerfile(BASE, []) == f"FROM {BASE}\n"

    def test_copy_lines_follow_input_order(self, catalog):
        assert catalog.build_dockerfile(BASE, ["ndk", "houdini"]) == (
            f"FROM {BASE}\nCOPY ndk /\nCOPY houdini /\n"
        )

    def test_unknown_name_fails_whole_recipe(self, catalog):
        with pytest.raises(AddonNotFoundError):
            catalog.build_dockerfile(BASE, ["ndk", "magisk"])

    def test_boot_directive_merges_and_dedupes(self, catalog):
        line = catalog.boot_directive("13.0.0", "x86_64", ["mindthegapps", "houdini", "ndk"])

        assert line.startswith("CMD [") and line.endswith("]\n")
        args = json.loads(line.removeprefix("CMD "))
        assert args[0] == "androidboot.redroid_gpu_mode=auto"
        assert args[1] == "ro.setupwizard.mode=DISABLED"
        assert "ro.dalvik.vm.native.bridge=libhoudini.so" in args
        assert len(args) == len(set(args))

    def test_boot_directive_without_addons(self, catalog):
        assert catalog.boot_directive("13.0.0", "x86_64", []) == (
            'CMD ["androidboot.redroid_gpu_mode=auto"]\n'
        )

    def test_default_base_image(self):
        assert default_base_image("11.0.0") == "redroid/redroid:11.0.0-latest"


class TestImageName:
    @pytest.mark.parametrize(
        "name",
        ["redroid", "me/redroid", "me/redroid:13.0.0_64only", "org/team/redroid-gapps:v1"],
    )
    def test_valid(self, name):
        validate_image_name(name)

    @pytest.mark.parametrize(
        "name",
        ["Me/Redroid", "localhost:5000/redroid", "me/redroid:", "me//redroid", ""],
    )
    def test_invalid(self, name):
        with pytest.raises(ImageBuildError, match="Invalid image name"):
            validate_image_name(name)


class TestBuild:
    def test_build_skips_failed_addons(self, staging_root, fake_runtime, failing_downloader):
        """One add-on failing to download does not stop the build."""

        catalog = AddonCatalog(
            staging_root,
            runtime=fake_runtime,
            downloader=failing_downloader("ndk_translation"),
        )
        progress = ProgressLog()

        result = catalog.build_custom_image(
            BASE, "me/redroid:13", "13.0.0", "x86_64", ["ndk", "mindthegapps"],
            progress=progress,
        )

        assert result.prepared == ["mindthegapps"]
        assert list(result.skipped) == ["ndk"]
        assert any("Continuing without ndk" in w for w in progress.warnings)
        assert "COPY mindthegapps /" in result.dockerfile
        assert "COPY ndk" not in result.dockerfile
        assert (staging_root / "Dockerfile").read_text() == result.dockerfile
        assert ".work" in (staging_root / ".dockerignore").read_text()
        assert fake_runtime.pulled == [BASE]
        assert fake_runtime.built == [("me/redroid:13", str(staging_root))]
        assert fake_runtime.pushed == []

    def test_build_failure_carries_engine_output(self, catalog, fake_runtime):
        fake_runtime.build_returncode = 1
        fake_runtime.build_output = "COPY failed: file not found"

        with pytest.raises(ImageBuildError) as exc:
            catalog.build_custom_image(BASE, "me/redroid:13", "13.0.0", "x86_64", [])

        assert exc.value.output == "COPY failed: file not found"

    def test_invalid_target_rejected_before_pull(self, catalog, fake_runtime):
        with pytest.raises(ImageBuildError):
            catalog.build_custom_image(BASE, "Bad Name", "13.0.0", "x86_64", [])

        assert fake_runtime.pulled == []

    def test_unknown_addon_rejected_before_pull(self, catalog, fake_runtime):
        with pytest.raises(AddonNotFoundError):
            catalog.build_custom_image(BASE, "me/redroid", "13.0.0", "x86_64", ["magisk"])

        assert fake_runtime.pulled == []

    def test_push_after_build(self, catalog, fake_runtime):
        result = catalog.build_custom_image(
            BASE, "me/redroid:13", "13.0.0", "x86_64", [], push=True
        )

        assert result.pushed
        assert fake_runtime.pushed == ["me/redroid:13"]

    def test_push_requires_namespace(self, catalog, fake_runtime):
        with pytest.raises(ImageBuildError, match="username/repository"):
            catalog.push_image("redroid")

        assert fake_runtime.pushed == []
