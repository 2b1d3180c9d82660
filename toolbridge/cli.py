"""ToolBridge CLI - manage OAuth-protected tool providers and call their tools."""

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Optional

import click

from .app import BridgeApp
from .config import ConfigManager
from .logging_config import setup_logging
from .ui import (
    render_error,
    render_header,
    render_provider,
    render_providers_table,
    render_result,
    render_status,
    render_success,
    render_tools_table,
)
from .ui.theme import console


def _run(
    ctx: click.Context,
    operation: Callable[[BridgeApp], Awaitable[Any]],
    start: bool = False,
) -> Any:
    """Build an app, optionally register all providers, and run one operation."""
    config: ConfigManager = ctx.obj["config"]

    async def runner():
        async with BridgeApp(config=config) as app:
            if start:
                await app.start()
            return await operation(app)

    try:
        return asyncio.run(runner())
    except click.ClickException:
        raise
    except Exception as e:
        render_error(str(e))
        sys.exit(1)


def _parse_input(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--input")
    if not isinstance(value, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--input")
    return value


@click.group()
@click.option("--config", "config_path", envvar="TOOLBRIDGE_CONFIG", help="Settings file path")
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
@click.option("--quiet", "-q", is_flag=True, help="Suppress log output")
@click.pass_context
def cli(ctx, config_path, verbose, quiet):
    """TOOLBRIDGE - OAuth-protected remote tools for AI assistants.

    Register tool providers, inspect their catalogs, and invoke their tools.
    """
    config = ConfigManager(config_path)
    logging_config = config.get_logging_config()
    setup_logging(
        level="DEBUG" if verbose else logging_config["level"],
        log_file=logging_config["file"],
        quiet=quiet,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.group()
def providers():
    """Manage provider configurations."""


@providers.command(name="list")
@click.pass_context
def list_providers(ctx):
    """List configured providers."""
    async def op(app: BridgeApp):
        return app.list_providers()

    render_providers_table(_run(ctx, op))


@providers.command(name="show")
@click.argument("provider_id")
@click.pass_context
def show_provider(ctx, provider_id):
    """Show one provider configuration."""
    async def op(app: BridgeApp):
        return app.get_provider(provider_id)

    render_provider(_run(ctx, op))


@providers.command(name="add")
@click.option("--name", required=True, help="Display name")
@click.option("--endpoint", required=True, help="Provider tool endpoint URL")
@click.option("--client-id", required=True, help="OAuth client id")
@click.option("--client-secret", prompt=True, hide_input=True, help="OAuth client secret")
@click.option("--description", default=None, help="Fallback tool description")
@click.option("--instruction", "additional_instruction", default=None,
              help="Answer instructions attached to every tool result")
@click.option("--disabled", is_flag=True, help="Create the provider disabled")
@click.pass_context
def add_provider(ctx, name, endpoint, client_id, client_secret, description,
                 additional_instruction, disabled):
    """Add a provider and register its tools."""
    async def op(app: BridgeApp):
        created = await app.add_provider(
            name=name,
            endpoint=endpoint,
            client_id=client_id,
            client_secret=client_secret,
            description=description,
            enabled=not disabled,
            additional_instruction=additional_instruction,
        )
        return created, app.loader.list_loaded()

    created, loaded = _run(ctx, op)
    render_success(f"Created provider {created['name']} ({created['id']})")
    tools = [t for t in loaded if t["id"] == created["id"]]
    if tools:
        console.print(f"  {len(tools)} tools registered", style="dim")


@providers.command(name="update")
@click.argument("provider_id")
@click.option("--name", default=None)
@click.option("--endpoint", default=None)
@click.option("--client-id", default=None)
@click.option("--client-secret", default=None, help="Replace the stored client secret")
@click.option("--description", default=None)
@click.option("--instruction", "additional_instruction", default=None)
@click.option("--enable/--disable", "enabled", default=None)
@click.pass_context
def update_provider(ctx, provider_id, client_secret, **options):
    """Update a provider and reload its tools."""
    changes = {key: value for key, value in options.items() if value is not None}

    async def op(app: BridgeApp):
        return await app.update_provider(provider_id, client_secret=client_secret, **changes)

    updated = _run(ctx, op)
    render_success(f"Updated provider {updated['name']} ({updated['id']})")


@providers.command(name="remove")
@click.argument("provider_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def remove_provider(ctx, provider_id, yes):
    """Delete a provider, its secret and its tools."""
    if not yes:
        click.confirm(f"Delete provider {provider_id}?", abort=True)

    async def op(app: BridgeApp):
        app.remove_provider(provider_id)

    _run(ctx, op)
    render_success(f"Deleted provider {provider_id}")


@providers.command(name="test")
@click.argument("provider_id")
@click.pass_context
def test_provider(ctx, provider_id):
    """Discover the provider's token endpoint and request a token."""
    async def op(app: BridgeApp):
        return await app.test_provider(provider_id)

    ok, message = _run(ctx, op)
    if ok:
        render_success(message)
    else:
        render_error(message)
        sys.exit(1)


@cli.command()
@click.pass_context
def tools(ctx):
    """List the tools of every enabled provider."""
    async def op(app: BridgeApp):
        return app.list_specs()

    render_tools_table(_run(ctx, op, start=True))


@cli.command()
@click.argument("name")
@click.option("--input", "-i", "raw_input", default=None, help="Tool arguments as a JSON object")
@click.pass_context
def call(ctx, name, raw_input):
    """Invoke a tool by name."""
    arguments = _parse_input(raw_input)

    async def op(app: BridgeApp):
        return await app.run_tool(name, arguments)

    result = _run(ctx, op, start=True)
    render_result(result)
    if isinstance(result, dict) and "error" in result:
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show loaded tools and token cache statistics."""
    async def op(app: BridgeApp):
        return app.status()

    render_status(_run(ctx, op, start=True))


@cli.command()
@click.argument("provider_id", required=False)
@click.pass_context
def reload(ctx, provider_id):
    """Reload one provider, or all of them."""
    async def op(app: BridgeApp):
        if provider_id:
            loaded = await app.loader.reload(provider_id)
            return {provider_id: len(loaded)}, {}
        failures = await app.loader.reload_all()
        counts: dict[str, int] = {}
        for tool in app.loader.list_loaded():
            counts[tool["id"]] = counts.get(tool["id"], 0) + 1
        return counts, failures

    counts, failures = _run(ctx, op)
    for pid, count in counts.items():
        render_success(f"{pid}: {count} tools")
    for pid, error in failures.items():
        render_error(f"{pid}: {error}")
    if failures:
        sys.exit(1)


@cli.command()
@click.pass_context
def config(ctx):
    """Show configuration."""
    manager: ConfigManager = ctx.obj["config"]
    paths = manager.get_store_config()
    oauth = manager.get_oauth_config()

    render_header("TOOLBRIDGE CONFIG", str(manager.config_path))
    console.print(f"Providers file: {paths['providers_file']}")
    console.print(f"Secrets dir: {paths['secrets_dir']}")
    console.print(f"Refresh buffer: {oauth['refresh_buffer_seconds']:.0f}s")
    console.print(f"HTTP timeout: {manager.get_http_config()['timeout']}")


if __name__ == "__main__":
    cli()
