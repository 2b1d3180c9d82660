"""Composition root that wires stores, token manager, registry and loader.

One :class:`BridgeApp` owns the shared HTTP client and every stateful
component; collaborators receive them by reference.
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional

import httpx

from .config import ConfigManager
from .errors import ConfigNotFoundError, ToolBridgeError
from .oauth.tokens import TokenManager
from .store import ConfigStore, ProviderConfig, SecretStore, utc_now
from .tools.loader import ToolLoader
from .tools.registry import ToolRegistry


_log = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("name", "endpoint", "client_id", "client_secret")
_UPDATABLE_FIELDS = (
    "name",
    "description",
    "endpoint",
    "client_id",
    "enabled",
    "additional_instruction",
)


class BridgeApp:
    """Main ToolBridge application."""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        store: Optional[ConfigStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or ConfigManager()

        if store is None:
            paths = self.config.get_store_config()
            store = ConfigStore(paths["providers_file"], SecretStore(paths["secrets_dir"]))
        self.store = store

        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=self.config.get_http_config()["timeout"])
        self.client = client

        oauth = self.config.get_oauth_config()
        self.tokens = TokenManager(
            store,
            client,
            refresh_buffer=oauth["refresh_buffer_seconds"],
            default_expires_in=oauth["default_expires_in"],
            clock=clock,
        )
        self.registry = ToolRegistry()
        self.loader = ToolLoader(store, self.tokens, self.registry, client)

    async def __aenter__(self) -> "BridgeApp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel refresh timers and close the HTTP client if we created it."""
        self.tokens.clear_all()
        if self._owns_client:
            await self.client.aclose()

    async def start(self) -> dict[str, BaseException]:
        """Register the tools of every enabled provider."""
        return await self.loader.initialize()

    # ------------------------------------------------------------------
    # Orchestrator surface
    # ------------------------------------------------------------------

    async def run_tool(self, name: str, input: dict[str, Any]) -> Any:
        return await self.registry.run(name, input)

    def list_specs(self) -> list[dict[str, Any]]:
        return self.registry.list_specs()

    # ------------------------------------------------------------------
    # Provider administration
    # ------------------------------------------------------------------

    def list_providers(self) -> list[dict[str, Any]]:
        """All provider configurations, without secrets."""
        return [c.to_public_dict() for c in self.store.get_all_configs()]

    def get_provider(self, provider_id: str) -> dict[str, Any]:
        config = self.store.get_config(provider_id)
        if config is None:
            raise ConfigNotFoundError(provider_id)
        return config.to_public_dict()

    async def add_provider(
        self,
        name: str,
        endpoint: str,
        client_id: str,
        client_secret: str,
        description: Optional[str] = None,
        enabled: bool = True,
        additional_instruction: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create a provider, store its secret and register it when enabled.

        A registration failure is logged; the configuration is kept so it
        can be fixed and reloaded later.
        """
        values = {
            "name": name,
            "endpoint": endpoint,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        missing = [f for f in _REQUIRED_FIELDS if not values[f]]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        now = utc_now()
        config = ProviderConfig(
            id=str(uuid.uuid4()),
            name=name,
            endpoint=endpoint,
            client_id=client_id,
            enabled=enabled,
            description=description,
            additional_instruction=additional_instruction,
            created_at=now,
            updated_at=now,
        )
        self.store.add_config(config)
        self.store.save_secret(config.id, client_secret)

        if config.enabled:
            try:
                await self.loader.register_provider(config)
            except Exception as e:
                _log.error("Failed to register provider %s: %s", config.id, e)

        _log.info("Created provider: %s (%s)", config.name, config.id)
        return config.to_public_dict()

    async def update_provider(
        self,
        provider_id: str,
        client_secret: Optional[str] = None,
        **changes: Any,
    ) -> dict[str, Any]:
        """Apply changes to a provider, then reload its tools."""
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown provider fields: {', '.join(sorted(unknown))}")

        if self.store.get_config(provider_id) is None:
            raise ConfigNotFoundError(provider_id)

        updated = self.store.update_config(provider_id, changes)
        if client_secret:
            self.store.save_secret(provider_id, client_secret)

        try:
            await self.loader.reload(provider_id)
        except Exception as e:
            _log.error("Failed to reload provider %s: %s", provider_id, e)

        _log.info("Updated provider: %s (%s)", updated.name, provider_id)
        return updated.to_public_dict()

    def remove_provider(self, provider_id: str) -> None:
        """Unregister a provider's tools and delete its configuration and secret."""
        self.loader.unregister_provider(provider_id)
        self.store.delete_config(provider_id)
        _log.info("Deleted provider: %s", provider_id)

    async def test_provider(self, provider_id: str) -> tuple[bool, str]:
        """Check that a token can be obtained for the provider."""
        if self.store.get_config(provider_id) is None:
            raise ConfigNotFoundError(provider_id)
        try:
            await self.tokens.get_token(provider_id)
        except ToolBridgeError as e:
            return False, f"Failed to connect to provider: {e}"
        return True, "Successfully connected to provider and obtained OAuth token"

    def status(self) -> dict[str, Any]:
        """Loaded tools and token cache statistics."""
        loaded = self.loader.list_loaded()
        return {
            "loaded_tools": len(loaded),
            "tools": loaded,
            "token_cache": self.tokens.get_cache_stats(),
        }
