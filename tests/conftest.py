"""Shared fixtures: a programmable fake provider served through httpx.MockTransport."""

import json
from urllib.parse import parse_qsl

import httpx
import pytest

from toolbridge.store import ConfigStore, ProviderConfig, SecretStore


ENDPOINT = "https://tools.example.com/rpc"
OTHER_ENDPOINT = "https://tools.example.com/rpc/other"
METADATA_URL = "https://tools.example.com/.well-known/oauth-protected-resource"
AUTH_SERVER = "https://auth.example.com"
OPENID_URL = f"{AUTH_SERVER}/.well-known/openid-configuration"
OAUTH_SERVER_URL = f"{AUTH_SERVER}/.well-known/oauth-authorization-server"
TOKEN_URL = f"{AUTH_SERVER}/oauth/token"

WEATHER_SCHEMA = {
    "type": "object",
    "properties": {"city": {"type": "string"}},
    "required": ["city"],
}


class FakeProvider:
    """Stand-in for provider endpoints, their metadata host and auth server.

    Every attribute can be changed by a test to reshape responses.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_requests: list[dict] = []
        self.tool_calls: list[dict] = []

        self.challenge_status = 401
        self.challenge = f'Bearer resource_metadata="{METADATA_URL}"'
        self.metadata_status = 200
        self.resource_metadata = {"authorization_servers": [AUTH_SERVER]}
        self.openid_status = 200
        self.oauth_server_status = 404
        self.server_metadata = {
            "issuer": AUTH_SERVER,
            "token_endpoint": TOKEN_URL,
            "scopes_supported": ["tools.read", "tools.call"],
        }

        self.token_status = 200
        self.token_error = "invalid_client"
        # None issues tok-1, tok-2, ... with expires_in 3600.
        self.token_body = None
        self.issued = 0

        self.tools = [
            {"name": "get_weather", "description": "Current weather", "inputSchema": WEATHER_SCHEMA},
            {"name": "get_forecast", "inputSchema": {"type": "object", "properties": {}}},
        ]
        self.catalog_status = 200
        self.catalog_failures: set[str] = set()

        self.call_status = 200
        self.call_envelope = {
            "jsonrpc": "2.0",
            "id": "x",
            "result": {"content": [{"type": "text", "text": "Sunny, 21C"}]},
        }

    # ------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == METADATA_URL:
            return httpx.Response(self.metadata_status, json=self.resource_metadata)
        if url == OPENID_URL:
            return httpx.Response(self.openid_status, json=self.server_metadata)
        if url == OAUTH_SERVER_URL:
            return httpx.Response(self.oauth_server_status, json=self.server_metadata)
        if url == TOKEN_URL:
            return self._token(request)
        if request.url.host == "tools.example.com":
            return self._rpc(request, url)
        return httpx.Response(404)

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_requests.append(dict(parse_qsl(request.content.decode())))
        if self.token_status != 200:
            return httpx.Response(self.token_status, text=self.token_error)
        self.issued += 1
        body = self.token_body
        if body is None:
            body = {"access_token": f"tok-{self.issued}", "expires_in": 3600}
        return httpx.Response(200, json=body)

    def _rpc(self, request: httpx.Request, url: str) -> httpx.Response:
        envelope = json.loads(request.content)
        if "authorization" not in request.headers:
            headers = {"WWW-Authenticate": self.challenge} if self.challenge else {}
            return httpx.Response(self.challenge_status, headers=headers, json={"error": "unauthorized"})

        if envelope["method"] == "tools/list":
            if url in self.catalog_failures or self.catalog_status != 200:
                return httpx.Response(self.catalog_status if self.catalog_status != 200 else 500)
            return httpx.Response(200, json={
                "jsonrpc": "2.0",
                "id": envelope["id"],
                "result": {"tools": self.tools},
            })

        if envelope["method"] == "tools/call":
            self.tool_calls.append({
                "authorization": request.headers["authorization"],
                "envelope": envelope,
            })
            if self.call_status != 200:
                return httpx.Response(self.call_status, text="upstream exploded")
            return httpx.Response(200, json=self.call_envelope)

        return httpx.Response(400)

    # ------------------------------------------------------------------

    def count(self, url: str, method: str = None) -> int:
        return sum(
            1 for r in self.requests
            if str(r.url) == url and (method is None or r.method == method)
        )

    @property
    def discovery_attempts(self) -> int:
        return sum(
            1 for r in self.requests
            if r.url.host == "tools.example.com"
            and str(r.url) != METADATA_URL
            and "authorization" not in r.headers
        )


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_config(
    provider_id: str = "prov-1",
    endpoint: str = ENDPOINT,
    **overrides,
) -> ProviderConfig:
    values = {
        "id": provider_id,
        "name": f"Provider {provider_id}",
        "endpoint": endpoint,
        "client_id": f"client-{provider_id}",
        "description": "Weather provider",
    }
    values.update(overrides)
    return ProviderConfig(**values)


@pytest.fixture
def fake():
    return FakeProvider()


@pytest.fixture
def client(fake):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "providers.yaml", SecretStore(tmp_path / "secrets"))


@pytest.fixture
def provider(store):
    config = make_config()
    store.add_config(config)
    store.save_secret(config.id, "s3cret")
    return config
