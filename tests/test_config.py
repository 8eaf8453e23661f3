"""Unit tests for configuration loading."""

import json
import stat

import pytest

from cloudmirror.config import Config


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "CLOUDMIRROR_API_URL",
        "CLOUDMIRROR_TOKEN",
        "CLOUDMIRROR_COMPANY_ID",
        "CLOUDMIRROR_RCLONE_BINARY",
        "RCLONE_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Tests for Config."""

    def test_empty(self, tmp_path, clean_env):
        """Without a file or environment nothing should be configured."""
        cfg = Config(tmp_path)
        assert cfg.api_url is None
        assert cfg.token is None
        assert cfg.rclone_binary == "rclone"
        assert not cfg.is_configured()

    def test_reads_file(self, tmp_path, clean_env):
        """Values should be read from the config file."""
        (tmp_path / "config.json").write_text(
            json.dumps(
                {"api_url": "https://drive.example", "token": "t", "company_id": "c"}
            )
        )
        cfg = Config(tmp_path)
        assert cfg.api_url == "https://drive.example"
        assert cfg.is_configured()

    def test_env_overrides_file(self, tmp_path, clean_env, monkeypatch):
        """Environment variables should take precedence over the file."""
        (tmp_path / "config.json").write_text(json.dumps({"token": "from-file"}))
        monkeypatch.setenv("CLOUDMIRROR_TOKEN", "from-env")
        assert Config(tmp_path).token == "from-env"

    def test_rclone_config_from_env(self, tmp_path, clean_env, monkeypatch):
        """RCLONE_CONFIG should set the rclone config path."""
        monkeypatch.setenv("RCLONE_CONFIG", "/etc/rclone.conf")
        assert Config(tmp_path).rclone_config == "/etc/rclone.conf"

    def test_invalid_json_is_ignored(self, tmp_path, clean_env):
        """A corrupt config file should be treated as empty."""
        (tmp_path / "config.json").write_text("{not json")
        assert Config(tmp_path).api_url is None

    def test_save_merges_and_restricts_permissions(self, tmp_path, clean_env):
        """Saving should merge values, skip None and write mode 0600."""
        cfg = Config(tmp_path / "nested")
        cfg.save(api_url="https://drive.example", token="t")
        path = cfg.save(company_id="c", rclone_config=None)

        data = json.loads(path.read_text())
        assert data == {
            "api_url": "https://drive.example",
            "token": "t",
            "company_id": "c",
        }
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert cfg.is_configured()
