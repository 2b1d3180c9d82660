"""OAuth client-credentials support with runtime endpoint discovery."""

from .discovery import AuthServerMetadata, discover, parse_resource_metadata_url
from .tokens import (
    DEFAULT_EXPIRES_IN,
    REFRESH_BUFFER_SECONDS,
    CachedToken,
    RefreshTimer,
    TokenManager,
)

__all__ = [
    "AuthServerMetadata",
    "discover",
    "parse_resource_metadata_url",
    "DEFAULT_EXPIRES_IN",
    "REFRESH_BUFFER_SECONDS",
    "CachedToken",
    "RefreshTimer",
    "TokenManager",
]
