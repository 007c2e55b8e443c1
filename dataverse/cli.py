# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Command-line interface for Dataverse."""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from dataverse.core.config import Config
from dataverse.core.models import to_jsonable
from dataverse.service import Dataverse

console = Console()


def _configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    root = logging.getLogger('dataverse')
    root.handlers = [handler]
    root.setLevel(level.upper())


def _load_config(config: Optional[str], verbose: bool) -> Config:
    """Load config (or defaults) and set up logging. Exits on error."""
    try:
        cfg = Config.from_yaml(config) if config else Config()
    except Exception as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)
    _configure_logging("DEBUG" if verbose else cfg.log_level)
    return cfg


def _run(coro, verbose: bool):
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)


def _print_json(data) -> None:
    console.print_json(json.dumps(to_jsonable(data)))


config_option = click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to config YAML file.",
)
verbose_option = click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging.",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="dataverse")
def cli():
    """Dataverse - schema inference and natural-language queries for MongoDB.

    \b
    Quick start:
        dataverse validate mongodb://localhost:27017/shop
        dataverse schema mongodb://localhost:27017/shop
        dataverse ask mongodb://localhost:27017/shop "how many orders are there" --execute
    """
    pass


@cli.command()
@click.argument("uri")
@config_option
@verbose_option
def validate(uri: str, config: Optional[str], verbose: bool):
    """Check that a connection string works and whether it is writable."""
    cfg = _load_config(config, verbose)

    async def run():
        async with Dataverse(cfg) as dv:
            return await dv.validate_connection(uri)

    info = _run(run(), verbose)
    if info.is_valid:
        console.print(f"[green]OK[/green] Connected to database [bold]{info.database_name}[/bold]")
        mode = "read-only" if info.is_read_only else "read-write"
        console.print(f"  Access: {mode}")
    else:
        console.print(f"[red]FAIL[/red] {info.error}")
        sys.exit(1)


@cli.command()
@click.argument("uri")
@config_option
@verbose_option
def databases(uri: str, config: Optional[str], verbose: bool):
    """List databases on the cluster."""
    cfg = _load_config(config, verbose)

    async def run():
        async with Dataverse(cfg) as dv:
            return await dv.list_databases(uri)

    dbs = _run(run(), verbose)
    table = Table(title="Databases")
    table.add_column("Name", style="cyan")
    table.add_column("Size on disk", justify="right")
    for db in dbs:
        table.add_row(db.name, f"{db.size_on_disk:,}")
    console.print(table)


@cli.command()
@click.argument("uri")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON.")
@click.option("--sample-size", "-n", type=int, default=None, help="Documents sampled per collection.")
@config_option
@verbose_option
def schema(uri: str, as_json: bool, sample_size: Optional[int], config: Optional[str], verbose: bool):
    """Infer and show the schema of a database.

    \b
    Examples:
        dataverse schema mongodb://localhost:27017/shop
        dataverse schema mongodb://localhost:27017/shop --json -n 500
    """
    cfg = _load_config(config, verbose)
    if sample_size:
        cfg.mongodb.sample_size = sample_size

    async def run():
        async with Dataverse(cfg) as dv:
            return await dv.extract_schema(uri)

    with console.status("[bold]Sampling collections...", spinner="dots"):
        snapshot = _run(run(), verbose)

    if as_json:
        _print_json(snapshot.to_dict())
        return

    stats = snapshot.stats
    console.print(
        f"\n[bold]{snapshot.database_name}[/bold]: {stats.total_collections} collections, "
        f"{stats.total_documents:,} documents, ~{stats.average_field_count} fields each\n"
    )
    for collection in snapshot.collections:
        table = Table(title=f"{collection.name} ({collection.document_count:,} documents)")
        table.add_column("Field", style="cyan")
        table.add_column("Type")
        table.add_column("Required")
        table.add_column("Samples", style="dim")
        for f in collection.fields:
            samples = ", ".join(str(v) for v in to_jsonable(f.sample_values))
            table.add_row(f.name, f.type.value, "yes" if f.required else "", samples[:60])
        console.print(table)

    if snapshot.relationships:
        console.print("\n[bold]Relationships[/bold]")
        for rel in snapshot.relationships:
            console.print(
                f"  {rel.from_collection}.{rel.field} -> {rel.to_collection} [dim]({rel.type.value})[/dim]"
            )


@cli.command()
@click.argument("uri")
@click.argument("message")
@click.option("--execute", "-x", is_flag=True, help="Run the compiled query.")
@click.option("--answer", "-a", is_flag=True, help="Answer in prose using the configured LLM.")
@config_option
@verbose_option
def ask(uri: str, message: str, execute: bool, answer: bool, config: Optional[str], verbose: bool):
    """Translate a question into a MongoDB query.

    \b
    Examples:
        dataverse ask mongodb://localhost:27017/shop "how many users are there"
        dataverse ask mongodb://localhost:27017/shop "show orders where status = shipped limit 20" -x
        dataverse ask mongodb://localhost:27017/shop "what is in orders?" --answer -c config.yaml
    """
    cfg = _load_config(config, verbose)

    async def run():
        async with Dataverse(cfg) as dv:
            snapshot = await dv.extract_schema(uri)
            if answer:
                from dataverse.assistant import DataAssistant
                from dataverse.providers import create_provider

                assistant = DataAssistant(dv, create_provider(cfg.llm))
                return await assistant.respond(message, snapshot, connection_string=uri)

            intent, compiled = dv.parse_and_compile(message, snapshot)
            result = None
            if execute and compiled.is_valid:
                result = await dv.execute_compiled(uri, snapshot.database_name, compiled)
            return intent, compiled, result

    outcome = _run(run(), verbose)

    if answer:
        console.print(outcome.content)
        if outcome.suggestions:
            console.print("\n[dim]Try next:[/dim]")
            for suggestion in outcome.suggestions:
                console.print(f"  [dim]- {suggestion}[/dim]")
        return

    intent, compiled, result = outcome
    console.print(f"[bold]Intent:[/bold] {intent.explanation} [dim](confidence {intent.confidence:.2f})[/dim]")
    if not compiled.is_valid:
        for error in compiled.validation_errors:
            console.print(f"[red]Invalid:[/red] {error}")
        sys.exit(1)

    console.print("[bold]Query:[/bold]")
    _print_json(compiled.to_dict())
    if execute:
        console.print("[bold]Result:[/bold]")
        _print_json(result)


@cli.command()
@click.argument("uri")
@click.argument("collection")
@click.argument("field")
@click.option("--limit", "-l", type=int, default=20, help="Number of values to show.")
@config_option
@verbose_option
def distribution(uri: str, collection: str, field: str, limit: int, config: Optional[str], verbose: bool):
    """Show the most common values of a field."""
    cfg = _load_config(config, verbose)

    async def run():
        async with Dataverse(cfg) as dv:
            return await dv.field_distribution(uri, collection, field, limit=limit)

    rows = _run(run(), verbose)
    table = Table(title=f"{collection}.{field}")
    table.add_column("Value")
    table.add_column("Count", justify="right")
    for row in rows:
        table.add_row(str(to_jsonable(row.value)), f"{row.count:,}")
    console.print(table)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
