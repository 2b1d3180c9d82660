"""JSON-RPC envelopes spoken by tool providers.

A provider exposes one endpoint that accepts POSTed envelopes for two
methods: ``tools/list`` (the catalog) and ``tools/call`` (an invocation).
"""

import uuid
from typing import Any, Optional, Union

JSONRPC_VERSION = "2.0"

METHOD_LIST_TOOLS = "tools/list"
METHOD_CALL_TOOL = "tools/call"

# Request id used for unauthenticated challenges and listings.
LIST_REQUEST_ID = 2


def build_request(
    method: str,
    params: Optional[dict[str, Any]] = None,
    request_id: Optional[Union[int, str]] = None,
) -> dict[str, Any]:
    """Build a request envelope. A fresh uuid is used when no id is given."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id if request_id is not None else str(uuid.uuid4()),
        "method": method,
        "params": params or {},
    }


def list_tools_request() -> dict[str, Any]:
    """Envelope for a ``tools/list`` call."""
    return build_request(METHOD_LIST_TOOLS, {}, LIST_REQUEST_ID)


def call_tool_request(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Envelope for a ``tools/call`` call of the named remote method."""
    return build_request(METHOD_CALL_TOOL, {"name": name, "arguments": arguments})


def extract_tools(envelope: Any) -> list[dict[str, Any]]:
    """Return the catalog entries of a ``tools/list`` response.

    Anything that is not a well-formed ``{result: {tools: [...]}}`` envelope
    yields an empty catalog.
    """
    if not isinstance(envelope, dict):
        return []
    result = envelope.get("result")
    if not isinstance(result, dict):
        return []
    tools = result.get("tools")
    if not isinstance(tools, list):
        return []
    return [t for t in tools if isinstance(t, dict)]


def extract_error(envelope: Any) -> Optional[str]:
    """Return the message of a JSON-RPC error envelope, if it is one."""
    if not isinstance(envelope, dict) or "error" not in envelope:
        return None
    error = envelope["error"]
    if isinstance(error, dict):
        message = error.get("message") or "unknown error"
        code = error.get("code")
        return f"{message} (code {code})" if code is not None else str(message)
    return str(error)


def extract_content(envelope: Any) -> dict[str, Any]:
    """Return the single content item of a ``tools/call`` response.

    Raises:
        ValueError: If the envelope has no ``result.content[0]`` object.
    """
    try:
        content = envelope["result"]["content"]
        item = content[0]
    except (KeyError, IndexError, TypeError) as e:
        raise ValueError(f"Malformed tool result envelope: missing {e}") from e
    if not isinstance(item, dict):
        raise ValueError("Malformed tool result envelope: content item is not an object")
    return item
