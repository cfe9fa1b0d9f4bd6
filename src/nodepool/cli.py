"""Node pool CLI (nodepool).

Usage:
    nodepool validate pool.yaml     # Check a spec without touching Azure
    nodepool apply pool.yaml        # Create the pool, or update it in place
    nodepool show POOL_ID           # Read the pool as it exists in Azure
    nodepool destroy POOL_ID        # Delete the pool
    nodepool import POOL_ID         # Start managing an existing pool
    nodepool list                   # List pools with local state
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

from . import __version__
from .clients import SecretlessViolationError, build_container_service_client
from .config import Config, ConfigurationError
from .errors import NodePoolError, ValidationError
from .identifiers import ClusterId, NodePoolId
from .loader import SpecLoadError, load_node_pool_spec
from .main import setup_logging
from .models import NodePoolConfig, NodePoolState
from .reconciler import NodePoolReconciler
from .state import StateError, StateStore
from .validator import validate as validate_config

T = TypeVar("T")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _load_spec(spec_path: str) -> NodePoolConfig:
    try:
        return load_node_pool_spec(Path(spec_path))
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def _run(operation: Callable[[NodePoolReconciler, StateStore], Awaitable[T]]) -> T:
    """Build a reconciler from the environment and run one operation to completion."""
    config = _load_config()
    store = StateStore(config.state_dir)
    try:
        reconciler = NodePoolReconciler(build_container_service_client(config), config)
        return asyncio.run(operation(reconciler, store))
    except SecretlessViolationError as e:
        raise click.ClickException(str(e)) from e
    except NodePoolError as e:
        hint = " (retryable)" if e.retryable else ""
        raise click.ClickException(f"{e}{hint}") from e
    except StateError as e:
        raise click.ClickException(str(e)) from e


def _echo_state(state: NodePoolState) -> None:
    click.echo(json.dumps({"id": state.id, "config": state.config.to_document()}, indent=2))


@click.group()
@click.version_option(version=__version__, prog_name="nodepool")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="NODEPOOL_LOG_LEVEL",
    help="Log level for the JSON log stream on stderr",
)
def cli(log_level: str) -> None:
    """Manage AKS node pools declaratively.

    \b
    Quick Start:
        nodepool validate pool.yaml
        nodepool apply pool.yaml
    """
    setup_logging(log_level.upper())


@cli.command()
@click.argument("spec", type=click.Path(dir_okay=False))
def validate(spec: str) -> None:
    """Check SPEC for schema and cross-field errors."""
    cfg = _load_spec(spec)
    try:
        validate_config(cfg)
    except ValidationError as e:
        raise click.ClickException(str(e)) from e
    click.secho(f"✓ Node pool {cfg.name!r} is valid", fg="green")


@cli.command()
@click.argument("spec", type=click.Path(dir_okay=False))
def apply(spec: str) -> None:
    """Create or update the node pool declared in SPEC."""
    cfg = _load_spec(spec)
    pool_id = NodePoolId.for_cluster(ClusterId.parse(cfg.cluster_id), cfg.name).id

    async def _apply(reconciler: NodePoolReconciler, store: StateStore) -> NodePoolState:
        prior = store.load(pool_id)
        if prior is None:
            state = await reconciler.create(cfg)
        else:
            state = await reconciler.update(prior.id, cfg, previous=prior.config)
        # The declared configuration is the baseline for the next delta
        store.save(NodePoolState(id=state.id, config=cfg))
        return state

    state = _run(_apply)
    _echo_state(state)


@cli.command()
@click.argument("pool_id")
def show(pool_id: str) -> None:
    """Show node pool POOL_ID as it currently exists in Azure."""

    async def _show(reconciler: NodePoolReconciler, store: StateStore) -> NodePoolState | None:
        state = await reconciler.read(pool_id)
        if state is None:
            store.drop(pool_id)
        return state

    state = _run(_show)
    if state is None:
        raise click.ClickException(f"Node pool {pool_id} no longer exists; local state dropped")
    _echo_state(state)


@cli.command()
@click.argument("pool_id")
@click.confirmation_option(prompt="Delete this node pool?")
def destroy(pool_id: str) -> None:
    """Delete node pool POOL_ID."""

    async def _destroy(reconciler: NodePoolReconciler, store: StateStore) -> None:
        await reconciler.delete(pool_id)
        store.drop(pool_id)

    _run(_destroy)
    click.secho(f"✓ Deleted {pool_id}", fg="green")


@cli.command("import")
@click.argument("pool_id")
def import_(pool_id: str) -> None:
    """Start managing existing node pool POOL_ID."""

    async def _import(reconciler: NodePoolReconciler, store: StateStore) -> NodePoolState:
        if store.load(pool_id) is not None:
            raise click.ClickException(f"Node pool {pool_id} is already managed")
        state = await reconciler.import_pool(pool_id)
        store.save(state)
        return state

    state = _run(_import)
    _echo_state(state)


@cli.command("list")
def list_() -> None:
    """List node pools with local state."""
    config = _load_config()
    try:
        pool_ids = StateStore(config.state_dir).list_ids()
    except StateError as e:
        raise click.ClickException(str(e)) from e

    if not pool_ids:
        click.echo("No managed node pools")
        return
    for pool_id in pool_ids:
        click.echo(pool_id)
