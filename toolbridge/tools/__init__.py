"""Tool system: the shared registry and adapters for remote provider tools."""

from .base import BaseTool
from .loader import ToolLoader
from .registry import ToolRegistry
from .remote import RemoteTool

__all__ = [
    "BaseTool",
    "RemoteTool",
    "ToolLoader",
    "ToolRegistry",
]
