"""Authorization-server discovery for protected tool providers.

The token endpoint is never configured statically. It is found at runtime:

1. POST an unauthenticated ``tools/list`` request to the provider endpoint and
   expect ``401`` with ``WWW-Authenticate: Bearer resource_metadata="<url>"``.
2. GET the resource metadata and take the first ``authorization_servers``
   entry.
3. Try ``/.well-known/openid-configuration`` then
   ``/.well-known/oauth-authorization-server`` on that server; the first to
   answer 200 supplies ``token_endpoint`` and ``scopes_supported``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import DiscoveryError
from ..protocol import list_tools_request


_log = logging.getLogger(__name__)

WELL_KNOWN_PATHS = (
    ".well-known/openid-configuration",
    ".well-known/oauth-authorization-server",
)

_RESOURCE_METADATA_RE = re.compile(r'resource_metadata="([^"]+)"')

_JSON_HEADERS = {"Accept": "application/json"}


@dataclass(frozen=True)
class AuthServerMetadata:
    """The parts of an authorization server's metadata we rely on."""

    token_endpoint: str
    scopes_supported: tuple[str, ...]
    issuer: str = ""

    @property
    def scope(self) -> str:
        """Space-joined scope string for a token request."""
        return " ".join(self.scopes_supported)


def parse_resource_metadata_url(www_authenticate: str) -> Optional[str]:
    """Extract the ``resource_metadata`` URL from a WWW-Authenticate value."""
    match = _RESOURCE_METADATA_RE.search(www_authenticate or "")
    return match.group(1) if match else None


async def find_resource_metadata_url(client: httpx.AsyncClient, endpoint: str) -> str:
    """Call the provider endpoint unauthenticated and read its challenge."""
    try:
        response = await client.post(
            endpoint, json=list_tools_request(), headers=_JSON_HEADERS,
        )
    except httpx.HTTPError as e:
        raise DiscoveryError(
            f"Discovery request to {endpoint} failed: {e}", endpoint=endpoint,
        ) from e

    if response.status_code != 401:
        raise DiscoveryError(
            f"Expected 401 response, got {response.status_code}", endpoint=endpoint,
        )

    challenge = response.headers.get("www-authenticate")
    if not challenge:
        raise DiscoveryError(
            "WWW-Authenticate header not found in 401 response", endpoint=endpoint,
        )
    _log.debug("WWW-Authenticate header from %s: %s", endpoint, challenge)

    metadata_url = parse_resource_metadata_url(challenge)
    if not metadata_url:
        raise DiscoveryError(
            "resource_metadata not found in WWW-Authenticate header",
            endpoint=endpoint,
            details=challenge,
        )
    return metadata_url


async def fetch_authorization_server(
    client: httpx.AsyncClient, metadata_url: str, endpoint: str = "",
) -> str:
    """Read protected-resource metadata and return the first auth server base."""
    try:
        response = await client.get(metadata_url, headers=_JSON_HEADERS)
    except httpx.HTTPError as e:
        raise DiscoveryError(
            f"Failed to fetch resource metadata from {metadata_url}: {e}",
            endpoint=endpoint or None,
        ) from e

    if not response.is_success:
        raise DiscoveryError(
            f"Failed to fetch resource metadata: {response.status_code} "
            f"{response.reason_phrase}",
            endpoint=endpoint or None,
        )

    try:
        metadata = response.json()
    except ValueError as e:
        raise DiscoveryError(
            f"Resource metadata at {metadata_url} is not JSON", endpoint=endpoint or None,
        ) from e

    servers = metadata.get("authorization_servers") if isinstance(metadata, dict) else None
    if not isinstance(servers, list):
        raise DiscoveryError(
            "authorization_servers not found in resource metadata",
            endpoint=endpoint or None,
        )
    if not servers or not isinstance(servers[0], str):
        raise DiscoveryError(
            "authorization_servers in resource metadata is empty",
            endpoint=endpoint or None,
        )
    return servers[0]


async def fetch_server_metadata(
    client: httpx.AsyncClient, auth_server: str, endpoint: str = "",
) -> AuthServerMetadata:
    """Try the well-known documents of an authorization server in order."""
    base = auth_server.rstrip("/")
    for path in WELL_KNOWN_PATHS:
        url = f"{base}/{path}"
        try:
            response = await client.get(url, headers=_JSON_HEADERS)
        except httpx.HTTPError as e:
            _log.debug("Well-known request %s failed: %s", url, e)
            continue
        if response.status_code != 200:
            _log.debug("Well-known request %s answered %s", url, response.status_code)
            continue

        try:
            document = response.json()
        except ValueError as e:
            raise DiscoveryError(
                f"Authorization server metadata at {url} is not JSON",
                endpoint=endpoint or None,
            ) from e
        return _parse_server_metadata(document, url, endpoint)

    raise DiscoveryError(
        f"No well-known metadata document found on {base}",
        endpoint=endpoint or None,
    )


def _parse_server_metadata(document, url: str, endpoint: str) -> AuthServerMetadata:
    if not isinstance(document, dict):
        raise DiscoveryError(
            f"Authorization server metadata at {url} is not an object",
            endpoint=endpoint or None,
        )
    token_endpoint = document.get("token_endpoint")
    if not token_endpoint:
        raise DiscoveryError(
            f"token_endpoint not found in {url}", endpoint=endpoint or None,
        )
    scopes = document.get("scopes_supported")
    if not isinstance(scopes, list):
        raise DiscoveryError(
            f"scopes_supported not found in {url}", endpoint=endpoint or None,
        )
    return AuthServerMetadata(
        token_endpoint=token_endpoint,
        scopes_supported=tuple(str(s) for s in scopes),
        issuer=str(document.get("issuer", "")),
    )


async def discover(client: httpx.AsyncClient, endpoint: str) -> AuthServerMetadata:
    """Run the full discovery sequence for a provider endpoint.

    Raises:
        DiscoveryError: On any unexpected status, missing header or field,
            or when no well-known document answers 200.
    """
    _log.info("Discovering OAuth endpoint from %s", endpoint)
    metadata_url = await find_resource_metadata_url(client, endpoint)
    _log.debug("Found resource metadata URL: %s", metadata_url)

    auth_server = await fetch_authorization_server(client, metadata_url, endpoint)
    _log.debug("Discovered authorization server: %s", auth_server)

    metadata = await fetch_server_metadata(client, auth_server, endpoint)
    _log.info("Discovered token endpoint %s for %s", metadata.token_endpoint, endpoint)
    return metadata
