"""Registration of remote provider tools.

Reads provider configurations, preloads their tokens, fetches each
provider's ``tools/list`` catalog and registers one :class:`RemoteTool` per
catalog entry. Loaded adapters are tracked per provider id and tool name so
that unregistration removes every one of them from the registry.
"""

import logging
from typing import Any

import httpx

from ..errors import ConfigNotFoundError
from ..oauth.tokens import TokenManager
from ..protocol import extract_tools, list_tools_request
from ..store import ConfigStore, ProviderConfig
from .registry import ToolRegistry
from .remote import RemoteTool


_log = logging.getLogger(__name__)


class ToolLoader:
    """Load, register and unregister remote tools for configured providers."""

    def __init__(
        self,
        store: ConfigStore,
        tokens: TokenManager,
        registry: ToolRegistry,
        client: httpx.AsyncClient,
    ):
        self._store = store
        self._tokens = tokens
        self._registry = registry
        self._client = client
        self._loaded: dict[str, dict[str, RemoteTool]] = {}

    async def initialize(self) -> dict[str, BaseException]:
        """Register tools for every enabled provider.

        One provider's failure is logged and isolated; it never stops the
        others. Returns the registration failures keyed by provider id.
        """
        _log.info("Initializing remote tools from provider configurations")
        configs = [c for c in self._store.get_all_configs() if c.enabled]
        _log.info("Found %d enabled providers", len(configs))

        await self._tokens.preload_tokens()

        failures: dict[str, BaseException] = {}
        for config in configs:
            try:
                await self.register_provider(config)
            except Exception as e:
                _log.error("Failed to register provider %s (%s): %s", config.name, config.id, e)
                failures[config.id] = e

        _log.info("Remote tool initialization complete. Loaded %d tools", self.tool_count)
        return failures

    async def register_provider(self, config: ProviderConfig) -> list[RemoteTool]:
        """Fetch a provider's catalog and register one adapter per entry.

        Token acquisition errors propagate. A failed catalog fetch is treated
        as an empty catalog for this cycle.
        """
        _log.info("Registering provider: %s (%s)", config.name, config.id)
        access_token = await self._tokens.get_token(config.id)
        entries = await self._fetch_catalog(config, access_token)

        if config.id in self._loaded:
            self._remove_adapters(config.id)

        adapters: dict[str, RemoteTool] = {}
        for entry in entries:
            name = entry.get("name")
            if not isinstance(name, str) or not name:
                _log.warning("Skipping catalog entry without a name from provider %s", config.id)
                continue

            input_schema = entry.get("inputSchema")
            tool = RemoteTool(
                provider_id=config.id,
                name=name,
                description=entry.get("description") or config.description or "",
                endpoint=config.endpoint,
                input_schema=input_schema if isinstance(input_schema, dict) else {},
                tokens=self._tokens,
                client=self._client,
                answer_instructions=config.additional_instruction,
            )
            self._registry.register(tool)
            adapters[name] = tool
            _log.info("Registered remote tool %s from provider %s", name, config.name)

        self._loaded[config.id] = adapters
        return list(adapters.values())

    async def _fetch_catalog(
        self, config: ProviderConfig, access_token: str,
    ) -> list[dict[str, Any]]:
        try:
            response = await self._client.post(
                config.endpoint,
                json=list_tools_request(),
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            _log.warning("Error fetching catalog for provider %s, using none: %s", config.id, e)
            return []

        if not response.is_success:
            _log.warning(
                "Could not fetch catalog for provider %s (%s), using none",
                config.id, response.status_code,
            )
            return []

        try:
            envelope = response.json()
        except ValueError:
            _log.warning("Catalog for provider %s is not JSON, using none", config.id)
            return []

        tools = extract_tools(envelope)
        _log.debug("Provider %s lists %d tools", config.id, len(tools))
        return tools

    def _remove_adapters(self, provider_id: str) -> int:
        adapters = self._loaded.pop(provider_id, {})
        for name, tool in adapters.items():
            self._registry.unregister(name, tool)
        return len(adapters)

    def unregister_provider(self, provider_id: str) -> bool:
        """Remove a provider's adapters and invalidate its cached token.

        Returns:
            True if the provider had loaded tools.
        """
        was_loaded = provider_id in self._loaded
        if was_loaded:
            removed = self._remove_adapters(provider_id)
            _log.info("Unregistered %d tools of provider %s", removed, provider_id)
        else:
            _log.warning("Provider %s not found in loaded tools", provider_id)
        self._tokens.invalidate_token(provider_id)
        return was_loaded

    async def reload(self, provider_id: str) -> list[RemoteTool]:
        """Unregister a provider and register it again from fresh configuration.

        Raises:
            ConfigNotFoundError: If the provider no longer exists.
        """
        _log.info("Reloading provider %s", provider_id)
        self.unregister_provider(provider_id)

        config = self._store.get_config(provider_id)
        if config is None:
            raise ConfigNotFoundError(provider_id)
        if not config.enabled:
            _log.info("Provider %s is disabled; not re-registering", provider_id)
            return []
        return await self.register_provider(config)

    async def reload_all(self) -> dict[str, BaseException]:
        """Unregister everything, clear the token cache and initialize again."""
        _log.info("Reloading all providers")
        for provider_id in list(self._loaded):
            self.unregister_provider(provider_id)
        self._tokens.clear_all()
        return await self.initialize()

    def list_loaded(self) -> list[dict[str, str]]:
        """Summaries of every loaded adapter for status reporting."""
        return [
            {"id": provider_id, "name": tool.name, "description": tool.description}
            for provider_id, adapters in self._loaded.items()
            for tool in adapters.values()
        ]

    def loaded_providers(self) -> list[str]:
        return list(self._loaded)

    @property
    def tool_count(self) -> int:
        return sum(len(adapters) for adapters in self._loaded.values())
