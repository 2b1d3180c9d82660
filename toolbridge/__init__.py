"""ToolBridge - OAuth-protected remote tools for AI assistants."""

__version__ = "0.1.0"

from .app import BridgeApp
from .config import ConfigManager
from .oauth import TokenManager
from .store import ConfigStore, ProviderConfig, SecretStore
from .tools import BaseTool, RemoteTool, ToolLoader, ToolRegistry

__all__ = [
    "BridgeApp",
    "ConfigManager",
    "TokenManager",
    "ConfigStore",
    "ProviderConfig",
    "SecretStore",
    "BaseTool",
    "RemoteTool",
    "ToolLoader",
    "ToolRegistry",
]
