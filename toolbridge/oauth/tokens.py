"""OAuth token lifecycle for tool providers.

Tokens are obtained with the client-credentials grant against a token
endpoint discovered from the provider itself (see :mod:`.discovery`), cached
per provider id, and refreshed automatically ``refresh_buffer`` seconds
before they expire.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Optional

import httpx

from ..errors import ConfigNotFoundError, TokenRequestError
from ..store import ConfigStore, ProviderConfig
from .discovery import AuthServerMetadata, discover


_log = logging.getLogger(__name__)

REFRESH_BUFFER_SECONDS = 5 * 60
DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class CachedToken:
    """A bearer token and the absolute instant (epoch seconds) it expires."""

    access_token: str
    expires_at: float
    refresh_token: Optional[str] = None

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class RefreshTimer:
    """Pending automatic refresh for one provider."""

    task: asyncio.Task
    refresh_at: float
    expires_at: float


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TokenManager:
    """Discover, fetch, cache and refresh provider access tokens.

    Concurrent cold ``get_token`` calls for the same provider share a single
    in-flight fetch. Invalidation bumps a per-provider generation so that a
    fetch already under way cannot repopulate an entry that was removed.
    """

    def __init__(
        self,
        store: ConfigStore,
        client: httpx.AsyncClient,
        refresh_buffer: float = REFRESH_BUFFER_SECONDS,
        default_expires_in: float = DEFAULT_EXPIRES_IN,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._client = client
        self.refresh_buffer = refresh_buffer
        self.default_expires_in = default_expires_in
        self._clock = clock

        self._tokens: dict[str, CachedToken] = {}
        self._timers: dict[str, RefreshTimer] = {}
        self._metadata: dict[str, tuple[str, AuthServerMetadata]] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_token(self, provider_id: str) -> str:
        """Return a valid access token, fetching one if the cache is stale.

        Raises:
            ConfigNotFoundError: Unknown provider id or missing client secret.
            DiscoveryError: The authorization server could not be discovered.
            TokenRequestError: The token endpoint refused the request.
        """
        cached = self._tokens.get(provider_id)
        if cached is not None and cached.is_fresh(self._clock()):
            _log.debug("Using cached token for provider %s", provider_id)
            return cached.access_token

        task = self._inflight.get(provider_id)
        if task is None:
            _log.info("Fetching new token for provider %s", provider_id)
            task = asyncio.ensure_future(self._fetch_and_cache(provider_id))
            self._inflight[provider_id] = task
            task.add_done_callback(partial(self._forget_inflight, provider_id))
        else:
            _log.debug("Joining in-flight token fetch for provider %s", provider_id)

        # One waiter being cancelled must not cancel the fetch for the others.
        return await asyncio.shield(task)

    def invalidate_token(self, provider_id: str) -> None:
        """Drop the cached token, discovered metadata and refresh timer."""
        _log.info("Invalidating token for provider %s", provider_id)
        self._generations[provider_id] = self._generations.get(provider_id, 0) + 1
        self._tokens.pop(provider_id, None)
        self._metadata.pop(provider_id, None)
        self._inflight.pop(provider_id, None)
        self._clear_refresh_timer(provider_id)

    async def preload_tokens(self) -> dict[str, BaseException]:
        """Fetch tokens for every enabled provider concurrently.

        Waits for all outcomes. Failures are logged and returned keyed by
        provider id; they never abort the batch.
        """
        configs = [c for c in self._store.get_all_configs() if c.enabled]
        _log.info("Preloading tokens for %d enabled providers", len(configs))

        results = await asyncio.gather(
            *(self.get_token(c.id) for c in configs), return_exceptions=True,
        )

        failures: dict[str, BaseException] = {}
        for config, result in zip(configs, results):
            if isinstance(result, BaseException):
                _log.error("Failed to preload token for provider %s: %s", config.id, result)
                failures[config.id] = result
            else:
                _log.info("Preloaded token for provider %s", config.id)
        return failures

    def clear_all(self) -> None:
        """Drop every cached token and cancel every refresh timer."""
        _log.info("Clearing all cached tokens and refresh timers")
        self._epoch += 1
        self._tokens.clear()
        self._metadata.clear()
        self._inflight.clear()
        for provider_id in list(self._timers):
            self._clear_refresh_timer(provider_id)

    def get_cache_stats(self) -> dict[str, Any]:
        """Cache statistics for monitoring and status reporting."""
        tokens = []
        for provider_id, token in self._tokens.items():
            entry = {
                "provider_id": provider_id,
                "expires_at": _iso(token.expires_at),
                "has_refresh_token": bool(token.refresh_token),
            }
            timer = self._timers.get(provider_id)
            if timer is not None:
                entry["refresh_at"] = _iso(timer.refresh_at)
            tokens.append(entry)
        return {
            "cached_tokens": len(self._tokens),
            "active_refresh_timers": len(self._timers),
            "tokens": tokens,
        }

    def get_cached(self, provider_id: str) -> Optional[CachedToken]:
        """Return the cache entry for a provider, fresh or not."""
        return self._tokens.get(provider_id)

    def get_refresh_timer(self, provider_id: str) -> Optional[RefreshTimer]:
        """Return the pending refresh for a provider, if one is scheduled."""
        return self._timers.get(provider_id)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _generation(self, provider_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(provider_id, 0)

    def _forget_inflight(self, provider_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(provider_id) is task:
            del self._inflight[provider_id]
        if not task.cancelled():
            # Mark the exception retrieved; waiters have already seen it.
            task.exception()

    async def _fetch_and_cache(self, provider_id: str) -> str:
        generation = self._generation(provider_id)
        try:
            config = self._store.get_config(provider_id)
            if config is None:
                raise ConfigNotFoundError(provider_id)

            client_secret = self._store.get_secret(provider_id)
            if not client_secret:
                raise ConfigNotFoundError(
                    provider_id,
                    f"Client secret not found for provider {provider_id}",
                    remediation="Save a client secret for this provider",
                )

            metadata = await self._server_metadata(config)
            try:
                token = await self._request_token(metadata, config.client_id, client_secret)
            except TokenRequestError:
                # The discovered endpoint may be stale; rediscover next time.
                if generation == self._generation(provider_id):
                    self._metadata.pop(provider_id, None)
                raise
        except Exception as e:
            _log.error("Error fetching token for provider %s: %s", provider_id, e)
            raise

        if generation != self._generation(provider_id):
            _log.info("Provider %s was invalidated during fetch; not caching", provider_id)
            return token.access_token

        self._tokens[provider_id] = token
        _log.info("Cached token for provider %s, expires at %s", provider_id, _iso(token.expires_at))
        self._schedule_refresh(provider_id, token.expires_at)
        return token.access_token

    async def _server_metadata(self, config: ProviderConfig) -> AuthServerMetadata:
        """Return discovered metadata, reusing it while the endpoint is unchanged."""
        cached = self._metadata.get(config.id)
        if cached is not None and cached[0] == config.endpoint:
            return cached[1]
        metadata = await discover(self._client, config.endpoint)
        self._metadata[config.id] = (config.endpoint, metadata)
        return metadata

    async def _request_token(
        self, metadata: AuthServerMetadata, client_id: str, client_secret: str,
    ) -> CachedToken:
        """Perform the client-credentials grant against the token endpoint."""
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scopes": metadata.scope,
        }
        try:
            response = await self._client.post(
                metadata.token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TokenRequestError(
                f"OAuth token request to {metadata.token_endpoint} failed: {e}",
            ) from e

        if not response.is_success:
            raise TokenRequestError(
                f"OAuth token request failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenRequestError(
                "OAuth token response is not JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise TokenRequestError(
                "OAuth response missing access_token", status_code=response.status_code,
            )

        expires_in = payload.get("expires_in") or self.default_expires_in
        return CachedToken(
            access_token=access_token,
            expires_at=self._clock() + float(expires_in),
            refresh_token=payload.get("refresh_token"),
        )

    # ------------------------------------------------------------------
    # Refresh timers
    # ------------------------------------------------------------------

    def _schedule_refresh(self, provider_id: str, expires_at: float) -> None:
        self._clear_refresh_timer(provider_id)

        refresh_at = expires_at - self.refresh_buffer
        delay = refresh_at - self._clock()
        if delay <= 0:
            _log.debug(
                "Token for provider %s expires within the refresh buffer; "
                "next call will re-fetch", provider_id,
            )
            return

        task = asyncio.ensure_future(self._refresh_after(provider_id, delay))
        self._timers[provider_id] = RefreshTimer(
            task=task, refresh_at=refresh_at, expires_at=expires_at,
        )
        _log.debug("Scheduled token refresh for provider %s in %.0fs", provider_id, delay)

    def _clear_refresh_timer(self, provider_id: str) -> None:
        timer = self._timers.pop(provider_id, None)
        if timer is not None and timer.task is not _current_task():
            timer.task.cancel()

    async def _refresh_after(self, provider_id: str, delay: float) -> None:
        generation = self._generation(provider_id)
        await asyncio.sleep(delay)

        # Detach before re-fetching so rescheduling does not cancel this task.
        timer = self._timers.get(provider_id)
        if timer is not None and timer.task is _current_task():
            del self._timers[provider_id]

        _log.info("Auto-refreshing token for provider %s", provider_id)
        try:
            await self._fetch_and_cache(provider_id)
        except Exception as e:
            _log.error("Error auto-refreshing token for provider %s: %s", provider_id, e)
            if generation != self._generation(provider_id):
                _log.debug("Provider %s was invalidated during refresh; keeping newer token", provider_id)
                return
            # Evict so the next caller retries from scratch.
            self._tokens.pop(provider_id, None)
