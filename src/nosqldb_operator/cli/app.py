"""
Root Typer application for the nosqldb-operator CLI.

Operator tooling around the reconciliation engine: inspect the effective
settings, compute the digest the spec-change detector would store for a
spec file, and force the next pass to be a full one by dropping a
resource's spec-hash record.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from nosqldb_operator.controller.reconciler import SPEC_HASH_SUFFIX
from nosqldb_operator.core.errors import OperatorError
from nosqldb_operator.core.hashing import compute_digest
from nosqldb_operator.core.protocols import ClusterClient
from nosqldb_operator.core.settings import get_settings
from nosqldb_operator.kube.client import KubeClient
from nosqldb_operator.kube.configmap_store import ConfigMapStore

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="nosqldb-operator",
    help="nosqldb-operator: reconciliation engine tooling.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("nosqldb-operator-core")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"nosqldb-operator {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """nosqldb-operator CLI: spec hashes, spec-hash records and settings."""


# ── Helpers ──────────────────────────────────────────────────────────────


def cluster_client() -> ClusterClient:
    """Cluster client from in-cluster config or the local kubeconfig."""
    return KubeClient.from_environment()


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("hash-spec")
def hash_spec(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file holding the spec"),
    field: str | None = typer.Option(None, "--field", "-f", help="Hash only this top-level field, e.g. 'spec'"),
) -> None:
    """Print the digest the spec-change detector stores for FILE."""
    try:
        document = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        err_console.print(f"[red]Invalid JSON:[/red] {e}")
        raise typer.Exit(1) from e

    if field is not None:
        if not isinstance(document, dict) or field not in document:
            err_console.print(f"[red]Field not found:[/red] {field}")
            raise typer.Exit(1)
        document = document[field]

    typer.echo(compute_digest(document))


@app.command("reset-spec")
def reset_spec(
    name: str = typer.Argument(..., help="Name of the managed resource"),
    namespace: str = typer.Option(..., "--namespace", "-n", help="Namespace of the resource"),
    record: str | None = typer.Option(None, "--record", help="Spec-hash record name (default: <name>-spec-hash)"),
) -> None:
    """Delete the spec-hash record so the next pass runs in full."""
    settings = get_settings()
    record_name = record or name + SPEC_HASH_SUFFIX
    try:
        store = ConfigMapStore(
            cluster_client(),
            interval=settings.poll_interval_seconds,
            delete_timeout=settings.config_map_delete_timeout_seconds,
        )
        store.delete_with_confirm(record_name, namespace)
    except OperatorError as e:
        err_console.print(f"[red]Reset failed:[/red] {e}")
        raise typer.Exit(1) from e
    console.print(f"[green]✓[/green] Deleted spec-hash record [bold]{record_name}[/bold] in {namespace}")


@app.command("settings")
def show_settings(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the effective operator settings."""
    settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    table = Table(title="Operator settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


__all__ = ["app", "cluster_client"]
