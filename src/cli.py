"""CLI interface for forwarder."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from forwarder.config import ForwarderConfig, load_config, merge_cli_overrides
from forwarder.content import ContentStore
from forwarder.forward import ContentNotFoundError, ForwardEngine, PayloadStrategy, build_payload

app = typer.Typer(
    name="forwarder",
    help="Forward content items to other WordPress sites via the REST API.",
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to a .forwarder.toml file."),
]
StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store", "-s", help="Content store directory or JSON file."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from forwarder import __version__

        console.print(f"forwarder {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Enable debug logging.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Forwarder - republish content to remote sites."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(
    config_path: Path | None, store_path: Path | None, **overrides: object
) -> tuple[ForwarderConfig, ContentStore, Path]:
    config = load_config(config_path)
    config = merge_cli_overrides(
        config, store_path=str(store_path) if store_path else None, **overrides
    )
    base_dir = config_path.parent if config_path else Path(".")
    store = ContentStore(
        Path(config.store.path), selection_field=config.forwarding.selection_field
    )
    return config, store, base_dir


def _engine(config: ForwarderConfig, store: ContentStore, base_dir: Path) -> ForwardEngine:
    return ForwardEngine.from_config(config, store, base_dir=base_dir)


@app.command()
def forward(
    item_id: Annotated[int, typer.Argument(help="Content item id.")],
    config_path: ConfigOption = None,
    store_path: StoreOption = None,
    enable: Annotated[
        Optional[bool],
        typer.Option("--enable/--disable", help="Override the enabled switch."),
    ] = None,
) -> None:
    """Run a forward attempt for ITEM_ID, as a content save would."""
    config, store, base_dir = _load(config_path, store_path, enabled=enable)
    outcome = _engine(config, store, base_dir).on_content_saved(item_id)
    if outcome is None:
        console.print(f"[yellow]Item {item_id} was not forwarded[/yellow] (skipped)")
        raise typer.Exit(1)

    for key in outcome.succeeded_destinations:
        console.print(f"[green]✓[/green] {key}")
    for key in outcome.failed_destinations:
        console.print(f"[red]✗[/red] {key}")
    if not outcome.any_success:
        raise typer.Exit(1)


@app.command()
def destinations(
    config_path: ConfigOption = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the mappings JSON instead of a table.")
    ] = False,
) -> None:
    """List configured destinations."""
    config = load_config(config_path)
    base_dir = config_path.parent if config_path else Path(".")
    registry = config.build_registry(base_dir)
    if as_json:
        console.print_json(json.dumps(registry.to_mapping()))
        return
    if not len(registry):
        console.print("No portals configured")
        return
    table = Table("Key", "Name", "URL", "User")
    for d in registry:
        table.add_row(d.key, d.display_name, d.base_url, d.user)
    console.print(table)


@app.command()
def select(
    item_id: Annotated[int, typer.Argument(help="Content item id.")],
    keys: Annotated[
        Optional[list[str]], typer.Argument(help="Destination keys; none clears the selection.")
    ] = None,
    config_path: ConfigOption = None,
    store_path: StoreOption = None,
) -> None:
    """Set the destinations an item should be forwarded to."""
    config, store, base_dir = _load(config_path, store_path)
    registry = config.build_registry(base_dir)
    unknown = [k for k in keys or [] if k not in registry]
    if unknown:
        console.print(f"[yellow]Warning:[/yellow] not configured: {', '.join(unknown)}")
    try:
        store.select_destinations(item_id, keys or [])
    except KeyError:
        console.print(f"[red]Error:[/red] no content item {item_id}")
        raise typer.Exit(1)
    console.print(f"Item {item_id} → {', '.join(keys or []) or '(none)'}")


@app.command()
def payload(
    item_id: Annotated[int, typer.Argument(help="Content item id.")],
    fallback: Annotated[
        bool, typer.Option("--fallback", help="Show the fallback (tags-only) body.")
    ] = False,
    config_path: ConfigOption = None,
    store_path: StoreOption = None,
) -> None:
    """Print the request body that would be sent for ITEM_ID."""
    config, store, base_dir = _load(config_path, store_path)
    engine = _engine(config, store, base_dir)
    try:
        snapshot = engine.snapshots.build(item_id)
    except ContentNotFoundError:
        console.print(f"[red]Error:[/red] no content item {item_id}")
        raise typer.Exit(1)
    strategy = PayloadStrategy.FALLBACK if fallback else PayloadStrategy.PRIMARY
    body = build_payload(snapshot, strategy, config.forwarding.post_status)
    console.print_json(json.dumps(body, default=str))


@app.command()
def status(
    item_id: Annotated[int, typer.Argument(help="Content item id.")],
    config_path: ConfigOption = None,
    store_path: StoreOption = None,
) -> None:
    """Show the lock and cool-down flags for ITEM_ID."""
    config, store, base_dir = _load(config_path, store_path)
    state = _engine(config, store, base_dir).guard.state(item_id)
    table = Table("Flag", "Set")
    table.add_row("processing", str(state.processing))
    table.add_row("lock", str(state.locked))
    table.add_row("recently forwarded", str(state.recently_forwarded))
    console.print(table)
    console.print("eligible" if state.eligible else "not eligible")


@app.command()
def reset(
    item_id: Annotated[
        Optional[int], typer.Argument(help="Content item id; omit with --all.")
    ] = None,
    all_items: Annotated[bool, typer.Option("--all", help="Clear flags for every item.")] = False,
    config_path: ConfigOption = None,
    store_path: StoreOption = None,
) -> None:
    """Clear lock and cool-down flags so the next save forwards again."""
    config, store, base_dir = _load(config_path, store_path)
    guard = _engine(config, store, base_dir).guard
    if all_items:
        removed = guard.store.purge()
        console.print(f"Cleared {removed} flag(s)")
        return
    if item_id is None:
        console.print("[red]Error:[/red] give an item id or --all")
        raise typer.Exit(2)
    guard.reset(item_id)
    console.print(f"Cleared flags for item {item_id}")


if __name__ == "__main__":
    app()
