"""Provider configuration and secret persistence.

Provider records live together in a single YAML document; client secrets are
kept apart from them, one file per provider id, in
~/.config/toolbridge/secrets/{id}.json with owner-only permissions.
"""

import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigNotFoundError, DuplicateConfigError


_log = logging.getLogger(__name__)

_PROVIDERS_FILE = Path("~/.config/toolbridge/providers.yaml").expanduser()
_SECRETS_DIR = Path("~/.config/toolbridge/secrets").expanduser()

# Python attribute -> key used in the persisted records.
_FIELD_KEYS = {
    "id": "id",
    "name": "name",
    "endpoint": "endpoint",
    "client_id": "clientId",
    "enabled": "enabled",
    "description": "description",
    "additional_instruction": "additionalInstruction",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}
_KEY_FIELDS = {v: k for k, v in _FIELD_KEYS.items()}

# Fields a patch may never change.
_IMMUTABLE = ("id", "created_at")


def utc_now() -> str:
    """Current instant as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration record for one remote tool provider.

    ``id`` is globally unique and never changes once created. The client
    secret is not part of the record; see :class:`SecretStore`.
    """

    id: str
    name: str
    endpoint: str
    client_id: str
    enabled: bool = True
    description: Optional[str] = None
    additional_instruction: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderConfig":
        """Build a config from a persisted record (camelCase or snake_case keys)."""
        kwargs = {}
        for key, value in data.items():
            attr = _KEY_FIELDS.get(key, key)
            if attr in _FIELD_KEYS:
                kwargs[attr] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted record format."""
        return {
            _FIELD_KEYS[attr]: value
            for attr, value in asdict(self).items()
            if value is not None
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Record as shown to operators, with a derived status and no secret."""
        data = {_FIELD_KEYS[attr]: value for attr, value in asdict(self).items()}
        data["status"] = "active" if self.enabled else "disabled"
        return data


class SecretStore:
    """Read/write provider client secrets to ~/.config/toolbridge/secrets/."""

    def __init__(self, base_dir: Optional[Path] = None):
        self._dir = Path(base_dir) if base_dir else _SECRETS_DIR

    def _path(self, provider_id: str) -> Path:
        return self._dir / f"{provider_id}.json"

    def save_secret(self, provider_id: str, client_secret: str) -> None:
        """Save the client secret for a provider."""
        self._dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = self._path(provider_id)
        payload = json.dumps(
            {"client_secret": client_secret, "saved_at": time.time()}, indent=2,
        )
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        # O_CREAT mode only applies to new files.
        os.chmod(path, 0o600)
        _log.info("Saved secret for provider %s", provider_id)

    def get_secret(self, provider_id: str) -> Optional[str]:
        """Load the client secret for a provider. Returns None if not found."""
        path = self._path(provider_id)
        if not path.is_file():
            _log.warning("Secret not found for provider %s", provider_id)
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            _log.warning("Unreadable secret file for provider %s", provider_id)
            return None
        return data.get("client_secret") or None

    def delete_secret(self, provider_id: str) -> None:
        """Remove the stored secret for a provider."""
        path = self._path(provider_id)
        if not path.exists():
            _log.warning("Secret not found for provider %s, nothing to delete", provider_id)
            return
        path.unlink()
        _log.info("Deleted secret for provider %s", provider_id)


class ConfigStore:
    """YAML-backed store of provider configurations.

    Every mutation is a read-modify-write of the whole document; concurrent
    writers race and the last write wins.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        secrets: Optional[SecretStore] = None,
    ):
        self.path = Path(path) if path else _PROVIDERS_FILE
        self.secrets = secrets or SecretStore()

    # ------------------------------------------------------------------
    # Configurations
    # ------------------------------------------------------------------

    def get_all_configs(self) -> list[ProviderConfig]:
        """Load every provider configuration. A missing file means none."""
        if not self.path.is_file():
            _log.debug("No provider configurations at %s", self.path)
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f) or {}
        records = content.get("providers") or []
        configs = [ProviderConfig.from_dict(r) for r in records if isinstance(r, dict)]
        _log.debug("Loaded %d provider configurations", len(configs))
        return configs

    def save_all_configs(self, configs: list[ProviderConfig]) -> None:
        """Replace the stored document with the given configurations."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"providers": [c.to_dict() for c in configs]}
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
        _log.info("Saved %d provider configurations", len(configs))

    def get_config(self, provider_id: str) -> Optional[ProviderConfig]:
        """Get a single configuration by id."""
        for config in self.get_all_configs():
            if config.id == provider_id:
                return config
        return None

    def add_config(self, config: ProviderConfig) -> None:
        """Add a new configuration. Raises DuplicateConfigError on id clash."""
        configs = self.get_all_configs()
        if any(c.id == config.id for c in configs):
            raise DuplicateConfigError(config.id)
        configs.append(config)
        self.save_all_configs(configs)

    def update_config(self, provider_id: str, patch: dict[str, Any]) -> ProviderConfig:
        """Apply a partial update and refresh ``updated_at``.

        ``id`` and ``created_at`` in the patch are ignored. Returns the
        updated record.
        """
        configs = self.get_all_configs()
        for index, config in enumerate(configs):
            if config.id == provider_id:
                break
        else:
            raise ConfigNotFoundError(provider_id)

        changes = {}
        for key, value in patch.items():
            attr = _KEY_FIELDS.get(key, key)
            if attr not in _FIELD_KEYS or attr in _IMMUTABLE:
                continue
            changes[attr] = value
        changes["updated_at"] = utc_now()

        updated = replace(config, **changes)
        configs[index] = updated
        self.save_all_configs(configs)
        return updated

    def delete_config(self, provider_id: str) -> None:
        """Delete a configuration and its associated secret."""
        configs = self.get_all_configs()
        remaining = [c for c in configs if c.id != provider_id]
        if len(remaining) == len(configs):
            raise ConfigNotFoundError(provider_id)
        self.save_all_configs(remaining)

        try:
            self.delete_secret(provider_id)
        except OSError as e:
            _log.warning("Error deleting secret for provider %s: %s", provider_id, e)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def get_secret(self, provider_id: str) -> Optional[str]:
        return self.secrets.get_secret(provider_id)

    def save_secret(self, provider_id: str, client_secret: str) -> None:
        self.secrets.save_secret(provider_id, client_secret)

    def delete_secret(self, provider_id: str) -> None:
        self.secrets.delete_secret(provider_id)
