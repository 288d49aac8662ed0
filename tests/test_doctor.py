"""Tests for diagnostics."""

import shutil

from ccprof.components import AGENTS, SETTINGS
from ccprof.doctor import FindingKind, Severity, run_diagnostics
from ccprof.profiles import METADATA_FILE


class TestDiagnostics:
    def test_clean_install(self, paths):
        report = run_diagnostics(paths)
        assert report.ok
        assert report.findings == []
        assert report.profiles_checked == 0

    def test_healthy_after_switch(self, manager, paths, live_dir):
        manager.create_profile("work", [SETTINGS, AGENTS])
        manager.switch_to("work")
        report = run_diagnostics(paths)
        assert report.ok
        assert report.findings == []
        assert report.profiles_checked == 1

    def test_broken_symlink(self, manager, paths, live_dir):
        manager.create_profile("work", [AGENTS])
        manager.switch_to("work")
        shutil.rmtree(paths.profile_path("work", AGENTS))

        report = run_diagnostics(paths)
        assert not report.ok
        assert len(report.of_kind(FindingKind.BROKEN_SYMLINK)) == 1
        assert len(report.of_kind(FindingKind.MISSING_COMPONENT)) == 1

    def test_invalid_profile_json(self, manager, paths, live_dir):
        manager.create_profile("work", [SETTINGS])
        paths.profile_path("work", SETTINGS).write_text("{broken")

        report = run_diagnostics(paths)
        [finding] = report.of_kind(FindingKind.INVALID_JSON)
        assert finding.path == paths.profile_path("work", SETTINGS)

    def test_invalid_live_json(self, paths, live_dir):
        (live_dir / "settings.json").write_text("nope")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.INVALID_JSON)) == 1

    def test_invalid_metadata(self, manager, paths, live_dir):
        manager.create_profile("work")
        (paths.profile_dir("work") / METADATA_FILE).write_text("[]")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.INVALID_METADATA)) == 1

    def test_missing_active_profile(self, manager, paths, live_dir):
        manager.create_profile("work")
        manager.switch_to("work")
        shutil.rmtree(paths.profile_dir("work"))

        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.MISSING_ACTIVE_PROFILE)) == 1

    def test_unreadable_state(self, paths):
        paths.base_dir.mkdir()
        paths.state_file.write_text("{")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.UNREADABLE_STATE)) == 1

    def test_partial_switch(self, manager, paths, live_dir):
        manager.create_profile("work", [SETTINGS, AGENTS])
        manager.switch_to("work")
        link = paths.live_path(AGENTS)
        link.unlink()
        link.mkdir()

        report = run_diagnostics(paths)
        [finding] = report.of_kind(FindingKind.PARTIAL_SWITCH)
        assert "1 of 2" in finding.message

    def test_external_symlink_is_warning(self, paths, live_dir, tmp_path):
        elsewhere = tmp_path / "elsewhere"
        shutil.move(str(live_dir / "agents"), elsewhere)
        (live_dir / "agents").symlink_to(elsewhere)

        report = run_diagnostics(paths)
        [finding] = report.of_kind(FindingKind.EXTERNAL_SYMLINK)
        assert finding.severity is Severity.WARNING
        assert report.ok

    def test_orphaned_backup_is_warning(self, paths):
        paths.backups_dir.mkdir(parents=True)
        (paths.backups_dir / "stray.txt").write_text("x")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.ORPHANED_BACKUP)) == 1
        assert report.ok

    def test_checks_every_profile(self, manager, paths, live_dir):
        manager.create_profile("one", [SETTINGS])
        manager.create_profile("two", [SETTINGS])
        paths.profile_path("one", SETTINGS).write_text("{")
        paths.profile_path("two", SETTINGS).write_text("{")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.INVALID_JSON)) == 2

    def test_undecodable_state(self, paths):
        paths.base_dir.mkdir()
        paths.state_file.write_bytes(b"\xff\xfe")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.UNREADABLE_STATE)) == 1

    def test_undecodable_profile_settings(self, manager, paths, live_dir):
        manager.create_profile("work", [SETTINGS])
        paths.profile_path("work", SETTINGS).write_bytes(b'{"a": "\xff\xfe"}')
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.INVALID_JSON)) == 1

    def test_undecodable_live_settings(self, paths, live_dir):
        (live_dir / "settings.json").write_bytes(b"\xff\xfe")
        report = run_diagnostics(paths)
        assert len(report.of_kind(FindingKind.INVALID_JSON)) == 1

    def test_legacy_profile_is_warning(self, paths):
        legacy = paths.profile_dir("old")
        legacy.mkdir(parents=True)
        (legacy / "settings.json").write_text("{}")

        report = run_diagnostics(paths)
        [finding] = report.of_kind(FindingKind.LEGACY_PROFILE)
        assert finding.severity is Severity.WARNING
        assert report.ok
