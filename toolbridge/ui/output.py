"""Output rendering for the ToolBridge CLI."""

import json
from typing import Any

from rich.table import Table
from rich.text import Text

from .theme import PALETTE, console, err_console


def _ghost_table(*columns: str) -> Table:
    """Borderless, whitespace-aligned table with muted uppercase headers."""
    table = Table(
        box=None,
        show_edge=False,
        pad_edge=False,
        header_style=f"dim {PALETTE.text_muted}",
        padding=(0, 2),
    )
    for column in columns:
        table.add_column(column.upper())
    return table


def render_error(text: str) -> None:
    """Render an error message."""
    err = Text()
    err.append("err ", style=f"bold {PALETTE.error}")
    err.append("| ", style=f"dim {PALETTE.text_muted}")
    err.append(text, style=PALETTE.error)
    err_console.print(err)


def render_success(text: str) -> None:
    """Render a confirmation line."""
    ok = Text()
    ok.append("ok  ", style=f"bold {PALETTE.ok}")
    ok.append("| ", style=f"dim {PALETTE.text_muted}")
    ok.append(text, style=PALETTE.text)
    console.print(ok)


def _status_text(status: str) -> Text:
    """Provider status cell: green when active, amber otherwise."""
    return Text(status, style=PALETTE.ok if status == "active" else PALETTE.warn)


def render_providers_table(providers: list[dict[str, Any]]) -> None:
    """Render provider configurations; active rows are highlighted."""
    table = _ghost_table("id", "name", "endpoint", "client id", "status")
    if not providers:
        table.add_row("(none)", "-", "-", "-", Text("no providers configured", style=f"dim {PALETTE.error}"))
    for provider in providers:
        active = provider.get("status") == "active"
        table.add_row(
            provider.get("id", ""),
            provider.get("name", ""),
            provider.get("endpoint", ""),
            provider.get("clientId", ""),
            _status_text(provider.get("status", "")),
            style=PALETTE.text_bright if active else f"dim {PALETTE.text_muted}",
        )
    console.print(table)


def render_provider(provider: dict[str, Any]) -> None:
    """Render a single provider configuration as key/value lines."""
    for key, value in provider.items():
        line = Text()
        line.append(f"  {key:<22}", style=f"dim {PALETTE.text_dim}")
        line.append("" if value is None else str(value), style=PALETTE.text_bright)
        console.print(line)


def render_tools_table(specs: list[dict[str, Any]]) -> None:
    """Render registered tool descriptors."""
    table = _ghost_table("tool", "description", "inputs")
    if not specs:
        table.add_row("(none)", "-", "-")
    for spec in specs:
        properties = (spec.get("inputSchema") or {}).get("properties") or {}
        table.add_row(
            Text(spec.get("name", ""), style=f"bold {PALETTE.accent}"),
            spec.get("description", ""),
            ", ".join(properties) or "-",
        )
    console.print(table)


def render_status(status: dict[str, Any]) -> None:
    """Render loaded tools and token cache statistics."""
    cache = status.get("token_cache", {})
    console.print(
        f"Loaded tools: {status.get('loaded_tools', 0)}  "
        f"Cached tokens: {cache.get('cached_tokens', 0)}  "
        f"Refresh timers: {cache.get('active_refresh_timers', 0)}",
        style=f"bold {PALETTE.accent}",
    )

    tools = _ghost_table("provider", "tool", "description")
    for tool in status.get("tools", []):
        tools.add_row(tool["id"], tool["name"], tool["description"])
    console.print(tools)

    tokens = _ghost_table("provider", "expires at", "refresh at", "refresh token")
    for entry in cache.get("tokens", []):
        tokens.add_row(
            entry["provider_id"],
            entry["expires_at"],
            entry.get("refresh_at", "-"),
            "yes" if entry["has_refresh_token"] else "no",
        )
    console.print(tokens)


def render_result(result: Any) -> None:
    """Render a tool result as pretty JSON."""
    console.print_json(json.dumps(result, default=str))
