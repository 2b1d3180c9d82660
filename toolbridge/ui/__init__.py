"""Terminal output for the ToolBridge CLI."""

from .theme import PALETTE, console, err_console, render_header
from .output import (
    render_error,
    render_provider,
    render_providers_table,
    render_result,
    render_status,
    render_success,
    render_tools_table,
)

__all__ = [
    "PALETTE",
    "console",
    "err_console",
    "render_header",
    "render_error",
    "render_provider",
    "render_providers_table",
    "render_result",
    "render_status",
    "render_success",
    "render_tools_table",
]
