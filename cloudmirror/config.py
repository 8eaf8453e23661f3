"""Configuration for cloudmirror.

Settings are read from environment variables first and fall back to
``~/.config/cloudmirror/config.json``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_RCLONE_BINARY = "rclone"

ENV_API_URL = "CLOUDMIRROR_API_URL"
ENV_TOKEN = "CLOUDMIRROR_TOKEN"
ENV_COMPANY_ID = "CLOUDMIRROR_COMPANY_ID"
ENV_RCLONE_BINARY = "CLOUDMIRROR_RCLONE_BINARY"
ENV_RCLONE_CONFIG = "RCLONE_CONFIG"


class Config:
    """Destination store and rclone settings."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding config.json. Defaults to
                ~/.config/cloudmirror/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "cloudmirror"
        self.config_dir = config_dir
        self._file_values: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        return self.config_dir / "config.json"

    def _load_file(self) -> dict[str, Any]:
        if self._file_values is not None:
            return self._file_values

        path = self.get_config_path()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    values = data
                else:
                    logger.warning(f"Ignoring config file {path}: not a JSON object")
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to read config file {path}: {e}")
        self._file_values = values
        return values

    def _get(self, env_name: str, key: str) -> Optional[str]:
        value = os.environ.get(env_name)
        if value:
            return value
        file_value = self._load_file().get(key)
        return str(file_value) if file_value else None

    @property
    def api_url(self) -> Optional[str]:
        """Base URL of the destination document store."""
        return self._get(ENV_API_URL, "api_url")

    @property
    def token(self) -> Optional[str]:
        """Bearer token for the destination document store."""
        return self._get(ENV_TOKEN, "token")

    @property
    def company_id(self) -> Optional[str]:
        """Company (tenant) id used in destination store URLs."""
        return self._get(ENV_COMPANY_ID, "company_id")

    @property
    def rclone_binary(self) -> str:
        return self._get(ENV_RCLONE_BINARY, "rclone_binary") or DEFAULT_RCLONE_BINARY

    @property
    def rclone_config(self) -> Optional[str]:
        """Path of the rclone config file holding the remote profiles."""
        return self._get(ENV_RCLONE_CONFIG, "rclone_config")

    def is_configured(self) -> bool:
        """Check whether the destination store settings are complete."""
        return bool(self.api_url and self.token and self.company_id)

    def save(self, **values: Optional[str]) -> Path:
        """Merge values into the config file and write it.

        Args:
            **values: Keys such as api_url, token, company_id, rclone_config.
                None values are ignored.

        Returns:
            Path of the written config file
        """
        data = dict(self._load_file())
        data.update({k: v for k, v in values.items() if v is not None})

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # The file holds a bearer token
        path.chmod(0o600)

        self._file_values = data
        logger.debug(f"Saved configuration to {path}")
        return path


config = Config()
