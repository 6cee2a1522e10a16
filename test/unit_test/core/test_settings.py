"""Unit tests for the pydantic-settings configuration model."""

import pytest
from pydantic import ValidationError

from toolgate.core.config import DEFAULT_AGENT_MARKER, DEFAULT_MANIFEST_PATH, Settings


class TestSettingsDefaults:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("TOOLGATE_WORKSPACE_ROOT", "TOOLGATE_CONFIRM_TIMEOUT", "TOOLGATE_MCP_MANIFEST"):
            monkeypatch.delenv(name, raising=False)

        cfg = Settings(_env_file=None)

        assert cfg.workspace_root is None
        assert cfg.mcp_manifest_path == DEFAULT_MANIFEST_PATH
        assert cfg.agent_marker_env == DEFAULT_AGENT_MARKER
        assert cfg.confirmation_timeout_seconds == 300.0
        assert cfg.command_timeout_seconds is None
        assert cfg.confirm_file_reads is True


class TestSettingsFromEnvironment:
    def test_aliases_bind_environment_variables(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_WORKSPACE_ROOT", "/work/app")
        monkeypatch.setenv("TOOLGATE_CONFIRM_TIMEOUT", "12.5")
        monkeypatch.setenv("TOOLGATE_CONFIRM_READS", "false")
        monkeypatch.setenv("TOOLGATE_AGENT_MARKER", "MY_AGENT")

        cfg = Settings(_env_file=None)

        assert cfg.workspace_root == "/work/app"
        assert cfg.confirmation_timeout_seconds == 12.5
        assert cfg.confirm_file_reads is False
        assert cfg.agent_marker_env == "MY_AGENT"

    def test_env_file_is_read(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("TOOLGATE_LOG_LEVEL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("TOOLGATE_LOG_LEVEL=DEBUG\n", encoding="utf-8")

        cfg = Settings(_env_file=str(env_file))

        assert cfg.log_level == "DEBUG"

    def test_field_names_populate_by_name(self):
        cfg = Settings(_env_file=None, max_read_bytes=10, provider_request_timeout_seconds=1.0)

        assert cfg.max_read_bytes == 10
        assert cfg.provider_request_timeout_seconds == 1.0

    def test_non_positive_timeout_rejected(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_PROVIDER_TIMEOUT", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
