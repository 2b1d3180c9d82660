"""Name -> tool directory used by the assistant's orchestration loop.

Names are case-folded on the way in and on lookup; the most recent
registration for a name supersedes any earlier one.
"""

import logging
from typing import Any, Optional

from .base import BaseTool


_log = logging.getLogger(__name__)


def _key(name: str) -> str:
    return name.casefold()


class ToolRegistry:
    """Dispatch table of invokable tools."""

    def __init__(self):
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Insert or overwrite a tool under its case-folded name."""
        if not isinstance(tool, BaseTool):
            raise TypeError(f"{type(tool).__name__} must be a subclass of BaseTool")
        key = _key(tool.name)
        if key in self._tools and self._tools[key] is not tool:
            _log.info("Tool %s supersedes an earlier registration", tool.name)
        else:
            _log.info("Registering tool: %s", tool.name)
        self._tools[key] = tool

    def unregister(self, name: str, tool: Optional[BaseTool] = None) -> bool:
        """Remove a tool by name.

        When ``tool`` is given, the entry is removed only if that exact
        instance is still the registered one.

        Returns:
            True if an entry was removed.
        """
        key = _key(name)
        current = self._tools.get(key)
        if current is None:
            return False
        if tool is not None and current is not tool:
            _log.debug("Tool %s was superseded; leaving newer registration", name)
            return False
        del self._tools[key]
        _log.info("Unregistered tool: %s", name)
        return True

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(_key(name))

    def names(self) -> list[str]:
        return [tool.name for tool in self._tools.values()]

    def clear(self) -> None:
        """Remove every tool. Primarily for testing."""
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return _key(name) in self._tools

    async def run(self, name: str, input: dict[str, Any]) -> Any:
        """Run a tool by name and return its result.

        Unknown names and exceptions escaping a tool come back as
        ``{"error": message}``; this method does not raise.
        """
        tool = self._tools.get(_key(name))
        if tool is None:
            _log.error("Tool %s not found", name)
            return {"error": f"Tool {name} not found"}
        try:
            return await tool.run(input)
        except Exception as e:
            _log.error("Tool %s failed: %s", name, e)
            return {"error": f"Tool {name} failed: {e}"}

    def list_specs(self) -> list[dict[str, Any]]:
        """Descriptors of every registered tool for catalog discovery."""
        return [tool.spec() for tool in self._tools.values()]
