"""Typer-based CLI for ResilientRest."""

import json
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ResilientRest.client import RestClient
from ResilientRest.config import ConfigResolver, load_properties, load_protection_config
from ResilientRest.errors import RestClientError
from ResilientRest.logging_utils import setup_logging
from ResilientRest.models import HttpMethod, ResourceCall

console = Console()
app = typer.Typer(help="ResilientRest protected REST calls")
config_app = typer.Typer(help="Config commands")
app.add_typer(config_app, name="config")

# ============================================================================
# Helpers
# ============================================================================


def _parse_pairs(values: Optional[List[str]], separator: str, what: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition(separator)
        if not sep or not name.strip():
            raise typer.BadParameter(f"{what} must look like NAME{separator}VALUE: {item!r}")
        pairs[name.strip()] = value.strip()
    return pairs


# ============================================================================
# Commands
# ============================================================================


@config_app.command("resolve")
def config_resolve(
    group: str = typer.Argument(..., help="Service group key"),
    command: str = typer.Argument(..., help="Operation key"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to property file",
        envvar="RESTCORE_CONFIG",
    ),
    raw: bool = typer.Option(False, "--raw", help="Raw JSON"),
) -> None:
    """Print the transport config resolved for one operation."""
    try:
        resolved = ConfigResolver(load_properties(config)).resolve(group, command)
    except (OSError, ValueError) as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)

    data = resolved.model_dump(mode="json")
    if raw:
        typer.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Resolved config for {group} / {command}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in data.items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


@app.command()
def call(
    method: HttpMethod = typer.Argument(..., help="HTTP method", case_sensitive=False),
    endpoint: str = typer.Argument(..., help="Base URL"),
    path: str = typer.Argument(..., help="Resource path, starting with '/'"),
    operation: str = typer.Option("cli", "--operation", "-o", help="Operation key"),
    group: str = typer.Option("restcore", "--group", "-g", help="Service group key"),
    query: Optional[List[str]] = typer.Option(None, "--query", "-q", help="NAME=VALUE"),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="NAME: VALUE"),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="Request body (POST/PUT)"),
    content_type: Optional[str] = typer.Option(None, "--content-type", help="Body content type"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to property file",
        envvar="RESTCORE_CONFIG",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Perform one protected call and print the body or the classified failure."""
    setup_logging(level="DEBUG" if verbose else "WARNING", json_format=json_logs)

    try:
        properties = load_properties(config)
        protection = load_protection_config(config)
    except (OSError, ValueError) as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)

    with RestClient(group, endpoint, properties=properties, protection=protection) as client:
        try:
            resource_call = ResourceCall(
                method,
                path,
                _parse_pairs(query, "=", "query"),
                _parse_pairs(header, ":", "header") or None,
                body,
                content_type,
            )
            result = client.execute(resource_call, operation).unwrap().body
        except RestClientError as e:
            console.print(
                Panel(
                    json.dumps(e.to_error_response().to_dict(), indent=2),
                    title=f"[red]✗ {type(e).__name__}[/red]",
                    expand=False,
                )
            )
            raise typer.Exit(code=1)

    if result is None:
        console.print("[yellow]No content[/yellow]")
    else:
        typer.echo(result)


if __name__ == "__main__":
    app()
