"""Configuration management for ToolBridge."""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


_DEFAULT_PATH = "~/.config/toolbridge/config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "store": {
        "providers_file": "~/.config/toolbridge/providers.yaml",
        "secrets_dir": "~/.config/toolbridge/secrets",
    },
    "oauth": {
        "refresh_buffer_seconds": 300,
        "default_expires_in": 3600,
    },
    "http": {
        "timeout": 30,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}


class ConfigManager:
    """Manage ToolBridge settings from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        path = config_path or os.getenv("TOOLBRIDGE_CONFIG") or _DEFAULT_PATH
        self.config_path = Path(path).expanduser()
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            self._create_default_config()
        return self._read_yaml()

    def _read_yaml(self) -> Dict[str, Any]:
        """Read and parse YAML file."""
        with open(self.config_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
        return content or {}

    def _create_default_config(self) -> None:
        """Create default configuration file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)

    def _resolve_env_var(self, value: Any) -> Any:
        """Resolve environment variable references like ${VAR_NAME}."""
        if not isinstance(value, str):
            return value
        if not value.startswith("${") or not value.endswith("}"):
            return value

        var_name = value[2:-1]
        return os.getenv(var_name, "")

    def _section(self, name: str) -> Dict[str, Any]:
        defaults = copy.deepcopy(DEFAULT_CONFIG.get(name, {}))
        config = self.data.get(name) or {}
        merged = {**defaults, **config}
        return {key: self._resolve_env_var(value) for key, value in merged.items()}

    def get_store_config(self) -> Dict[str, Path]:
        """Paths of the provider records file and the secrets directory."""
        section = self._section("store")
        return {
            "providers_file": Path(section["providers_file"]).expanduser(),
            "secrets_dir": Path(section["secrets_dir"]).expanduser(),
        }

    def get_oauth_config(self) -> Dict[str, float]:
        """Token lifecycle settings."""
        section = self._section("oauth")
        return {
            "refresh_buffer_seconds": float(section["refresh_buffer_seconds"]),
            "default_expires_in": float(section["default_expires_in"]),
        }

    def get_http_config(self) -> Dict[str, Optional[float]]:
        """Outbound HTTP settings. A null or empty timeout disables it."""
        section = self._section("http")
        timeout = section.get("timeout")
        return {"timeout": float(timeout) if timeout not in (None, "") else None}

    def get_logging_config(self) -> Dict[str, Any]:
        """Logging level name and optional log file path."""
        section = self._section("logging")
        log_file = section.get("file") or ""
        return {
            "level": str(section.get("level") or "INFO").upper(),
            "file": Path(log_file).expanduser() if log_file else None,
        }

    def save(self) -> None:
        """Save configuration to file."""
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
