from __future__ import annotations

from pathlib import Path

import pytest

from reddock.core.addons import (
    HoudiniAddon,
    LiteGappsAddon,
    MindTheGappsAddon,
    NdkAddon,
    OpenGappsAddon,
)
from reddock.core.addons import base, opengapps
from reddock.core.addons.houdini import BOOT_ARGS, BOOT_ARGS_64ONLY, HOUDINI_PATCHES
from reddock.exceptions import (
    ArchitectureUnsupportedError,
    ChecksumMismatchError,
    ExtractError,
    StagingError,
    VersionUnsupportedError,
)
from reddock.models.addon import PrepareStage
from reddock.utils.progress import ProgressLog


def _mode(path: Path) -> int:
    return path.stat().st_mode & 0o777


class TestPipeline:
    def test_install_stages_under_key_and_reports_stages(self, staging_root, downloader):
        addon = MindTheGappsAddon(staging_root, downloader=downloader)
        progress = ProgressLog()

        staged = addon.install("13.0.0", "x86_64", staging_root, progress)

        assert staged == staging_root / "mindthegapps"
        assert (staged / "system" / "priv-app" / "Phonesky" / "Phonesky.apk").is_file()
        assert not (staged / "META-INF").exists()
        assert progress.stages == [
            PrepareStage.DOWNLOADING,
            PrepareStage.EXTRACTING,
            PrepareStage.STAGING,
            PrepareStage.DONE,
        ]

    def test_unsupported_version_never_downloads(self, staging_root, downloader):
        addon = MindTheGappsAddon(staging_root, downloader=downloader)

        with pytest.raises(VersionUnsupportedError, match="Android 11.0.0"):
            addon.install("11.0.0", "x86_64", staging_root)

        assert downloader.calls == []
        assert not staging_root.exists()

    def test_unsupported_architecture_never_downloads(self, staging_root, downloader):
        addon = HoudiniAddon(staging_root, downloader=downloader)

        with pytest.raises(ArchitectureUnsupportedError):
            addon.install("11.0.0", "arm64", staging_root)

        assert downloader.calls == []

    def test_reinstall_leaves_no_stale_files(self, staging_root, downloader):
        addon = MindTheGappsAddon(staging_root, downloader=downloader)
        staged = addon.install("13.0.0", "x86_64", staging_root)
        (staged / "system" / "stale.txt").write_text("old run")
        (addon.extract_dir / "leftover").write_text("old run")

        staged = addon.install("13.0.0", "x86_64", staging_root)

        assert not (staged / "system" / "stale.txt").exists()
        assert not (addon.extract_dir / "leftover").exists()
        assert (staged / "system" / "priv-app" / "Phonesky" / "Phonesky.apk").is_file()

    def test_extract_without_download_fails(self, staging_root, downloader):
        addon = MindTheGappsAddon(staging_root, downloader=downloader)

        with pytest.raises(ExtractError, match="not downloaded"):
            addon.extract("13.0.0", "x86_64")

    def test_unwritable_scratch_is_extract_error(self, staging_root, downloader, monkeypatch):
        def denied(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(base, "reset_dir", denied)

        with pytest.raises(ExtractError, match="Permission denied"):
            MindTheGappsAddon(staging_root, downloader=downloader).install(
                "13.0.0", "x86_64", staging_root
            )

    def test_unusable_lock_directory_is_staging_error(self, staging_root, downloader):
        staging_root.mkdir()
        (staging_root / ".locks").write_text("not a directory")

        with pytest.raises(StagingError, match="Failed to prepare"):
            NdkAddon(staging_root, downloader=downloader).install(
                "13.0.0", "x86_64", staging_root
            )
        assert downloader.calls == []

    def test_checksum_verification_is_opt_in(self, staging_root, downloader):
        """Fixture archives never match the recorded vendor checksums."""

        MindTheGappsAddon(staging_root, downloader=downloader).install(
            "13.0.0", "x86_64", staging_root
        )

        strict = MindTheGappsAddon(staging_root, downloader=downloader, verify_checksums=True)
        with pytest.raises(ChecksumMismatchError):
            strict.install("13.0.0", "x86_64", staging_root)

    def test_layer_instruction_copies_key_directory(self, staging_root):
        assert NdkAddon(staging_root).build_layer_instructions() == "COPY ndk /\n"
        assert MindTheGappsAddon(staging_root).boot_args("13.0.0", "x86_64") == [
            "ro.setupwizard.mode=DISABLED"
        ]
        assert LiteGappsAddon(staging_root).boot_args("13.0.0", "x86_64") == []


class TestHoudini:
    def test_patch_overlays_prebuilts(self, staging_root, downloader):
        addon = HoudiniAddon(staging_root, downloader=downloader)

        staged = addon.install("11.0.0", "x86_64", staging_root)

        system = staged / "system"
        assert (system / "lib" / "libhoudini.so").read_text() == "patched"
        assert _mode(system / "bin" / "houdini") == 0o755
        init_rc = system / "etc" / "init" / "houdini.rc"
        assert "binfmt_misc" in init_rc.read_text()
        assert _mode(init_rc) == 0o644
        assert downloader.calls[-1] == HOUDINI_PATCHES["11.0.0"].url

    def test_oldest_release_skips_patch(self, staging_root, downloader):
        addon = HoudiniAddon(staging_root, downloader=downloader)

        staged = addon.install("8.1.0", "x86", staging_root)

        assert (staged / "system" / "lib" / "libhoudini.so").read_text() == "original"
        assert len(downloader.calls) == 1
        assert not any("redroid_libhoudini_hack" in url for url in downloader.calls)

    def test_pie_uses_pie_patch(self, staging_root, downloader):
        HoudiniAddon(staging_root, downloader=downloader).install(
            "9.0.0", "x86_64", staging_root
        )

        assert downloader.calls[-1].endswith("/pie.zip")

    @pytest.mark.parametrize(
        ("version", "expected"),
        [("9.0.0", 0o600), ("10.0.0", 0o644)],
    )
    def test_init_rc_mode_after_patch(
        self, staging_root, downloader, zip_factory, tmp_path, version, expected
    ):
        """Only the Pie overlay keeps the init file mode it ships with."""

        patch = zip_factory(
            tmp_path / "patch.zip",
            {
                "hack/system/lib/libhoudini.so": "patched",
                "hack/system/etc/init/houdini.rc": "on early-init\n",
            },
            modes={"hack/system/etc/init/houdini.rc": 0o600},
        )
        downloader.routes = {**downloader.routes, "redroid_libhoudini_hack": patch}

        staged = HoudiniAddon(staging_root, downloader=downloader).install(
            version, "x86_64", staging_root
        )

        assert _mode(staged / "system" / "etc" / "init" / "houdini.rc") == expected

    def test_boot_args_depend_on_64only(self, staging_root):
        addon = HoudiniAddon(staging_root)

        assert addon.boot_args("13.0.0", "x86_64") == BOOT_ARGS
        assert addon.boot_args("13.0.0_64only", "x86_64") == BOOT_ARGS_64ONLY


class TestNdk:
    def test_init_file_made_world_readable(self, staging_root, downloader):
        staged = NdkAddon(staging_root, downloader=downloader).install(
            "12.0.0_64only", "x86_64", staging_root
        )

        init_rc = staged / "system" / "etc" / "init" / "ndk_translation.rc"
        assert _mode(init_rc) == 0o644
        assert (staged / "system" / "lib64" / "libndk_translation.so").is_file()

    def test_arm_hosts_rejected(self, staging_root, downloader):
        with pytest.raises(ArchitectureUnsupportedError):
            NdkAddon(staging_root, downloader=downloader).install(
                "11.0.0", "arm", staging_root
            )
        assert downloader.calls == []


class TestLiteGapps:
    def test_selects_arch_and_api_tree(self, staging_root, downloader):
        staged = LiteGappsAddon(staging_root, downloader=downloader).install(
            "13.0.0_64only", "x86_64", staging_root
        )

        apk = staged / "system" / "priv-app" / "GmsCore" / "GmsCore.apk"
        assert apk.read_text() == "x86_64-33"

    def test_missing_api_tree_fails(self, staging_root, downloader):
        """The fixture payload has no x86_64/34 tree."""

        with pytest.raises(StagingError, match="x86_64/34/system"):
            LiteGappsAddon(staging_root, downloader=downloader).install(
                "14.0.0", "x86_64", staging_root
            )


class TestOpenGapps:
    @pytest.fixture
    def fake_lzip(self, monkeypatch):
        """Replace the lzip tar step with a layout-faithful fake."""

        extracted: list[str] = []

        def fake_extract_tar(archive: Path, dest: Path, compression=None) -> Path:
            assert compression == "lzip"
            name = archive.name.removesuffix(".tar.lz")
            extracted.append(archive.name)
            if name.endswith("-common"):
                perms = dest / name / "common" / "etc" / "permissions"
                perms.mkdir(parents=True)
                (perms / f"{name}.xml").write_text("<permissions/>")
            elif name != "broken-all":
                app = dest / name / "nodpi" / "priv-app" / "GoogleServicesFramework"
                app.mkdir(parents=True)
                (app / "GoogleServicesFramework.apk").write_text("apk")
            else:
                (dest / name).mkdir(parents=True)
            return dest

        monkeypatch.setattr(opengapps, "extract_tar", fake_extract_tar)
        return extracted

    def test_classifies_core_packages(self, staging_root, downloader, fake_lzip):
        progress = ProgressLog()

        staged = OpenGappsAddon(staging_root, downloader=downloader).install(
            "11.0.0", "x86_64", staging_root, progress
        )

        system = staged / "system"
        assert (system / "etc" / "permissions" / "defaultetc-common.xml").is_file()
        apk = system / "priv-app" / "GoogleServicesFramework" / "GoogleServicesFramework.apk"
        assert apk.is_file()
        assert fake_lzip == ["defaultetc-common.tar.lz", "gsfcore-all.tar.lz"]
        assert "Skipping setupwizarddefault-x86_64.tar.lz" in progress.messages

    def test_unexpected_layout_fails(self, staging_root, downloader, fake_lzip):
        addon = OpenGappsAddon(staging_root, downloader=downloader)
        addon.install("11.0.0", "x86_64", staging_root)
        core = addon.extract_dir / "Core"
        for package in core.iterdir():
            package.unlink()
        (core / "broken-all.tar.lz").write_text("lz")

        with pytest.raises(StagingError, match="Unexpected layout in broken-all"):
            addon.stage("11.0.0", "x86_64", staging_root)

    def test_denylist_is_substring_match(self):
        assert OpenGappsAddon.should_skip("setupwizardtablet-x86_64.tar.lz")
        assert not OpenGappsAddon.should_skip("gsfcore-all.tar.lz")
        assert OpenGappsAddon.is_common("vending-common.tar.lz")
        assert not OpenGappsAddon.is_common("vending-all.tar.lz")

    def test_only_android_11(self, staging_root):
        addon = OpenGappsAddon(staging_root)

        assert addon.supported_versions() == ("11.0.0",)
        assert not addon.is_supported("12.0.0")
