"""
ToolBridge exceptions.

Custom exception types for discovery, token acquisition, configuration
lookups and remote tool invocation.
"""

from typing import Optional


class ToolBridgeError(Exception):
    """Base exception for all ToolBridge errors."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        remediation: Optional[str] = None,
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            details: Technical details for debugging (response bodies etc.)
            remediation: Suggested fix for the operator
        """
        super().__init__(message)
        self.message = message
        self.details = details
        self.remediation = remediation

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.remediation:
            parts.append(f"To fix: {self.remediation}")
        return "\n".join(parts)


class DiscoveryError(ToolBridgeError):
    """The provider's authorization server could not be discovered."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[str] = None,
        remediation: Optional[str] = None,
    ):
        self.endpoint = endpoint
        if not remediation and endpoint:
            remediation = (
                f"Check that {endpoint} answers unauthenticated requests with "
                "401 and a resource_metadata challenge"
            )
        super().__init__(message, details, remediation)


class TokenRequestError(ToolBridgeError):
    """The token endpoint refused or returned an unusable response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        remediation: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, body or None, remediation)


class ConfigNotFoundError(ToolBridgeError):
    """An operation referenced an unknown provider id (or its missing secret)."""

    def __init__(
        self,
        provider_id: str,
        message: Optional[str] = None,
        remediation: Optional[str] = None,
    ):
        self.provider_id = provider_id
        super().__init__(
            message or f"Provider configuration not found for {provider_id}",
            remediation=remediation,
        )


class DuplicateConfigError(ToolBridgeError):
    """A provider configuration with the same id already exists."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider with ID {provider_id} already exists")


class RemoteInvocationError(ToolBridgeError):
    """A remote tool call answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Remote tool request failed: {status_code} {body}".rstrip())
