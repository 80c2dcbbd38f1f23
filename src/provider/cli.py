"""Tailscale provider CLI (tsprov).

Drives the provider hooks directly, reading configuration and state as YAML
and writing resulting state as YAML to stdout.

Usage:
    tsprov types                                     # List registered types
    tsprov resource create tailscale_tailnet_key -f key.yaml
    tsprov resource read tailscale_tailnet_key -s state.yaml
    tsprov resource plan tailscale_tailnet_key -s state.yaml -f key.yaml
    tsprov resource import tailscale_tailnet_key k123
    tsprov data read tailscale_device -f query.yaml
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import yaml
from azure.core.exceptions import AzureError
from pydantic import BaseModel, ValidationError

from .config import PROVIDER_VERSION, ConfigurationError, ProviderConfig
from .errors import InputError
from .poller import PollCancelledError
from .registry import DATA_SOURCE_TYPES, RESOURCE_TYPES, Provider
from .resources import ResourceError

T = TypeVar("T")

# SECURITY: bound input files to prevent loading huge documents
MAX_INPUT_FILE_SIZE_BYTES = 1024 * 1024  # 1MB

ProviderFactory = Callable[[], Provider]


class InputFailure(click.ClickException):
    """Invalid configuration, state or arguments."""

    exit_code = 2


class CancelledFailure(click.ClickException):
    """The operation was interrupted before it settled."""

    exit_code = 130


def provider_from_env() -> Provider:
    return Provider(ProviderConfig.from_env())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk.

    Raises:
        InputFailure: If the file is too large, malformed, or not a mapping.
    """
    size = path.stat().st_size
    if size > MAX_INPUT_FILE_SIZE_BYTES:
        raise InputFailure(
            f"{path} exceeds maximum size of {MAX_INPUT_FILE_SIZE_BYTES} bytes ({size} bytes)"
        )

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InputFailure(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InputFailure(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def dump_model(model: BaseModel) -> None:
    data = model.model_dump(mode="json", by_alias=True)
    click.echo(yaml.safe_dump(data, sort_keys=True), nl=False)


def run_with_provider(
    ctx: click.Context,
    operation: Callable[[Provider, asyncio.Event], Awaitable[T]],
) -> T:
    """Run an async provider operation, mapping failures to exit codes.

    SIGINT/SIGTERM set the cancel event so polling reads stop promptly.
    """
    factory: ProviderFactory = ctx.obj

    async def runner() -> T:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, cancel.set)
        try:
            async with factory() as provider:
                return await operation(provider, cancel)
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)

    try:
        return asyncio.run(runner())
    except (ConfigurationError, InputError, ValidationError) as e:
        raise InputFailure(str(e)) from e
    except PollCancelledError as e:
        raise CancelledFailure(str(e)) from e
    except (ResourceError, AzureError) as e:
        raise click.ClickException(str(e)) from e


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=PROVIDER_VERSION, prog_name="tsprov")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Tailscale provider CLI (tsprov).

    Credentials and target tailnet come from TAILSCALE_API_KEY,
    TAILSCALE_TAILNET and TAILSCALE_BASE_URL.
    """
    if ctx.obj is None:
        ctx.obj = provider_from_env


@cli.command()
def types() -> None:
    """List registered resource and data source types."""
    click.echo("Resources:")
    for resource_cls in RESOURCE_TYPES:
        click.echo(f"  {resource_cls.type_name}: {resource_cls.description}")
    click.echo("Data sources:")
    for data_source_cls in DATA_SOURCE_TYPES:
        click.echo(f"  {data_source_cls.type_name}: {data_source_cls.description}")


# =============================================================================
# Resource Commands
# =============================================================================


config_option = click.option(
    "--config",
    "-f",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with the declared configuration",
)
state_option = click.option(
    "--state",
    "-s",
    "state_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with the recorded state",
)


@cli.group()
def resource() -> None:
    """Resource operations: create, read, update, delete, import, plan."""
    pass


@resource.command()
@click.argument("type_name")
@config_option
@click.pass_context
def create(ctx: click.Context, type_name: str, config_path: Path) -> None:
    """Create a resource from declared configuration."""
    config = load_yaml_file(config_path)
    state = run_with_provider(ctx, lambda p, _: p.create(type_name, config))
    dump_model(state)


@resource.command()
@click.argument("type_name")
@state_option
@click.pass_context
def read(ctx: click.Context, type_name: str, state_path: Path) -> None:
    """Refresh a resource's state, honouring its wait_for."""
    state = load_yaml_file(state_path)

    async def operation(provider: Provider, cancel: asyncio.Event) -> Any:
        return (await provider.read(type_name, state, cancel=cancel)).unwrap()

    refreshed = run_with_provider(ctx, operation)
    if refreshed is None:
        click.echo("Resource no longer exists and should be removed from state", err=True)
        return
    dump_model(refreshed)


@resource.command()
@click.argument("type_name")
@state_option
@config_option
@click.pass_context
def update(ctx: click.Context, type_name: str, state_path: Path, config_path: Path) -> None:
    """Apply in-place changes to a resource."""
    state = load_yaml_file(state_path)
    config = load_yaml_file(config_path)
    updated = run_with_provider(ctx, lambda p, _: p.update(type_name, state, config))
    dump_model(updated)


@resource.command()
@click.argument("type_name")
@state_option
@click.pass_context
def delete(ctx: click.Context, type_name: str, state_path: Path) -> None:
    """Delete a resource."""
    state = load_yaml_file(state_path)
    run_with_provider(ctx, lambda p, _: p.delete(type_name, state))
    click.secho(f"Deleted {type_name} '{state.get('id', '')}'", fg="green", err=True)


@resource.command(name="import")
@click.argument("type_name")
@click.argument("resource_id")
@click.pass_context
def import_(ctx: click.Context, type_name: str, resource_id: str) -> None:
    """Import an existing remote object into state."""
    state = run_with_provider(ctx, lambda p, _: p.import_state(type_name, resource_id))
    dump_model(state)


@resource.command()
@click.argument("type_name")
@state_option
@config_option
@click.pass_context
def plan(ctx: click.Context, type_name: str, state_path: Path, config_path: Path) -> None:
    """Run the pre-plan hook and report whether replacement is forced."""
    state = load_yaml_file(state_path)
    config = load_yaml_file(config_path)
    directive = run_with_provider(ctx, lambda p, _: p.plan(type_name, state, config))
    click.echo(
        yaml.safe_dump(
            {"force_new": directive.force_new, "attribute": directive.attribute},
            sort_keys=True,
        ),
        nl=False,
    )


# =============================================================================
# Data Source Commands
# =============================================================================


@cli.group()
def data() -> None:
    """Data source operations."""
    pass


@data.command(name="read")
@click.argument("type_name")
@click.option(
    "--query",
    "-f",
    "query_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with the data source arguments",
)
@click.pass_context
def read_data(ctx: click.Context, type_name: str, query_path: Path | None) -> None:
    """Read a data source, honouring its wait_for."""
    query = load_yaml_file(query_path) if query_path else {}

    async def operation(provider: Provider, cancel: asyncio.Event) -> Any:
        return (await provider.read_data_source(type_name, query, cancel=cancel)).unwrap()

    dump_model(run_with_provider(ctx, operation))


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
