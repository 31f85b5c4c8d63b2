"""Tests for pipeline settings."""
import pytest

from pvectl_core.config import PipelineSettings, Timeouts
from pvectl_core.editor import EditorSession
from pvectl_core.services import edit_vm_service


class TestTimeouts:
    """Tests for Timeouts."""

    def test_defaults(self):
        """Long-running classes get longer deadlines."""
        timeouts = Timeouts()
        assert timeouts.migrate > timeouts.clone > timeouts.lifecycle


class TestFromEnv:
    """Tests for PipelineSettings.from_env."""

    def test_defaults(self, monkeypatch):
        """Unset variables leave defaults."""
        for name in ("PVECTL_POLL_INTERVAL", "PVECTL_MIN_ID", "PVECTL_EDITOR", "PVECTL_TIMEOUT_CLONE",
                     "PVECTL_EDIT_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)
        settings = PipelineSettings.from_env()
        assert settings.poll_interval == 2.0
        assert settings.min_id == 100
        assert settings.editor is None
        assert settings.edit_attempts is None

    def test_overrides(self, monkeypatch):
        """Variables override each setting."""
        monkeypatch.setenv("PVECTL_TIMEOUT_CLONE", "900")
        monkeypatch.setenv("PVECTL_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("PVECTL_MIN_ID", "1000")
        monkeypatch.setenv("PVECTL_EDITOR", "nano")
        monkeypatch.setenv("PVECTL_EDIT_ATTEMPTS", "3")
        settings = PipelineSettings.from_env()

        assert settings.timeouts.clone == 900
        assert settings.poll_interval == 0.5
        assert settings.min_id == 1000
        assert settings.editor == "nano"
        assert settings.edit_attempts == 3


class TestFromFile:
    """Tests for PipelineSettings.from_file."""

    def test_load_yaml(self, tmp_path):
        """YAML values are applied."""
        path = tmp_path / "settings.yaml"
        path.write_text("timeouts:\n  migrate: 1200\npoll_interval: 1\nmin_id: 5000\neditor: vim\nedit_attempts: 2\n")
        settings = PipelineSettings.from_file(path)

        assert settings.timeouts.migrate == 1200
        assert settings.timeouts.clone == 300
        assert settings.min_id == 5000
        assert settings.editor == "vim"
        assert settings.edit_attempts == 2

    def test_missing_file(self, tmp_path):
        """A missing file gives defaults."""
        assert PipelineSettings.from_file(tmp_path / "nope.yaml") == PipelineSettings()

    def test_empty_file(self, tmp_path):
        """An empty file gives defaults."""
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert PipelineSettings.from_file(path) == PipelineSettings()

    def test_unknown_keys_ignored(self, tmp_path):
        """Unknown keys and timeout classes are skipped."""
        path = tmp_path / "settings.yaml"
        path.write_text("timeouts:\n  reboot: 5\ncolour: blue\n")
        assert PipelineSettings.from_file(path) == PipelineSettings()

    def test_not_a_mapping(self, tmp_path):
        """Non-mapping documents are rejected."""
        path = tmp_path / "settings.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            PipelineSettings.from_file(path)


class TestEditorSetting:
    """Tests for the editor setting."""

    def test_default_session_uses_configured_editor(self, vm_repo, monkeypatch):
        """The default session launches the configured editor."""
        launched = []

        def fake_run(argv, check):
            launched.append(argv)

        monkeypatch.setattr("pvectl_core.editor.session.subprocess.run", fake_run)
        service = edit_vm_service(vm_repo, settings=PipelineSettings(editor="nano -w"))
        assert isinstance(service.editor_session, EditorSession)

        service.editor_session.edit("cores: 4\n")
        assert launched[0][:2] == ["nano", "-w"]

    def test_default_session_uses_edit_attempts(self, vm_repo):
        """The default session stops reopening after the configured attempts."""
        service = edit_vm_service(vm_repo, settings=PipelineSettings(edit_attempts=2))
        assert service.editor_session.max_attempts == 2
