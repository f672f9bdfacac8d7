"""CLI for ksqlstream."""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ksqlstream import __version__
from ksqlstream.core.errors import KsqlError
from ksqlstream.core.models import KsqlConfig, ReconciledState
from ksqlstream.core.parser import ConfigError, EnvVarError, ParseError

console = Console()
error_console = Console(stderr=True)

HANDLED_ERRORS = (EnvVarError, ParseError, ConfigError, KsqlError)


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add ksqlDB connection options to a command."""

    @click.option("--url", help="ksqlDB server URL [env: KSQLDB_URL]")
    @click.option("--username", help="Basic auth username [env: KSQLDB_USERNAME]")
    @click.option("--password", help="Basic auth password [env: KSQLDB_PASSWORD]")
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper


def get_config(
    file: Optional[str],
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> KsqlConfig:
    """Resolve connection settings from options, definition file and environment."""
    from ksqlstream.core.parser import StreamFileParser, load_config

    if file:
        return StreamFileParser(Path(file)).parse_config(url, username, password)
    return load_config(url=url, username=username, password=password)


def print_state(state: ReconciledState) -> None:
    """Print the observed state of a stream."""
    table = Table(title=f"Stream {state.name}")
    table.add_column("Attribute", style="cyan")
    table.add_column("Value", style="green")
    for key, value in state.model_dump().items():
        if value is None or value == {}:
            continue
        table.add_row(key, str(value))
    console.print(table)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log requests and responses")
def main(verbose: bool) -> None:
    """ksqlstream - declarative ksqlDB streams.

    Create, update, read and drop ksqlDB streams from YAML definitions.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=error_console, show_path=False)],
        )


@main.command()
@click.option(
    "--file",
    "-f",
    "file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Stream definition file",
)
def validate(file: str) -> None:
    """Validate a stream definition file."""
    from ksqlstream.core.parser import StreamFileParser
    from ksqlstream.core.validator import StreamValidator

    try:
        streams = StreamFileParser(Path(file)).parse_streams()
        result = StreamValidator(streams).validate()

        for warning in result.warnings:
            console.print(f"[yellow]WARNING[/yellow]: {warning.message}")
            if warning.location:
                console.print(f"  Location: {warning.location}")

        if result.errors:
            for error in result.errors:
                error_console.print(f"[red]ERROR[/red]: {escape(error.message)}")
                if error.location:
                    error_console.print(f"  Location: {error.location}")
            sys.exit(1)

        console.print(f"[green]{len(streams)} stream(s) valid[/green]")

        table = Table(title="Streams")
        table.add_column("Name", style="cyan")
        table.add_column("Kind", style="green")
        table.add_column("Topic")
        for stream in streams:
            kind = "source" if stream.is_source else "materialized" if stream.is_materialized else "stream"
            table.add_row(stream.name, kind, stream.kafka_topic or "-")
        console.print(table)

    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


@main.command()
@click.option(
    "--file",
    "-f",
    "file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Stream definition file",
)
def render(file: str) -> None:
    """Print the statements apply would send, without connecting."""
    from ksqlstream.compiler.statements import StatementMode, build_statement
    from ksqlstream.core.parser import StreamFileParser

    try:
        streams = StreamFileParser(Path(file)).parse_streams()
        for stream in streams:
            mode = StatementMode.CREATE_SOURCE if stream.is_source else StatementMode.CREATE_OR_REPLACE
            statement = build_statement(stream, mode)
            console.print(statement.sql, markup=False, highlight=False, soft_wrap=True)
    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


@main.command()
@click.option(
    "--file",
    "-f",
    "file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Stream definition file",
)
@click.option(
    "--select",
    "-s",
    help="Apply only the stream with this name",
)
@connection_options
def apply(
    file: str,
    select: Optional[str],
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Create or update the streams of a definition file."""
    from ksqlstream.core.parser import StreamFileParser
    from ksqlstream.core.validator import StreamValidator
    from ksqlstream.deployer.streams import StreamDeployer

    try:
        parser = StreamFileParser(Path(file))
        streams = parser.parse_streams()

        result = StreamValidator(streams).validate()
        if not result.is_valid:
            for error in result.errors:
                error_console.print(f"[red]ERROR[/red]: {escape(error.message)}")
            sys.exit(1)

        if select:
            streams = [s for s in streams if s.name == select]
            if not streams:
                error_console.print(f"[red]ERROR[/red]: No stream named '{select}'")
                sys.exit(1)

        deployer = StreamDeployer.from_config(parser.parse_config(url, username, password))

        results: dict[str, list[str]] = {"created": [], "updated": [], "errors": []}
        for stream in streams:
            try:
                action = deployer.apply_stream(stream)
                results[action].append(stream.name)
            except KsqlError as e:
                results["errors"].append(f"{stream.name}: {e}")

        if results["created"]:
            console.print("\n[green]Created:[/green]")
            for item in results["created"]:
                console.print(f"  + {item}")

        if results["updated"]:
            console.print("\n[yellow]Updated:[/yellow]")
            for item in results["updated"]:
                console.print(f"  ~ {item}")

        if results["errors"]:
            console.print("\n[red]Errors:[/red]")
            for item in results["errors"]:
                error_console.print(f"  ! {item}", markup=False)
            sys.exit(1)

        console.print("\n[green]Apply complete[/green]")

    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


@main.command()
@click.argument("name")
@click.option(
    "--file",
    "-f",
    "file",
    type=click.Path(exists=True, dir_okay=False),
    help="Definition file to read connection settings from",
)
@connection_options
def describe(
    name: str,
    file: Optional[str],
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Show the current state of a stream."""
    from ksqlstream.deployer.streams import StreamDeployer

    try:
        deployer = StreamDeployer.from_config(get_config(file, url, username, password))
        print_state(deployer.describe(name))
    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


@main.command(name="import")
@click.argument("name")
@click.option(
    "--file",
    "-f",
    "file",
    type=click.Path(exists=True, dir_okay=False),
    help="Definition file to read connection settings from",
)
@connection_options
def import_(
    name: str,
    file: Optional[str],
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Import an existing stream and print its definition."""
    import yaml

    from ksqlstream.deployer.streams import StreamDeployer

    try:
        deployer = StreamDeployer.from_config(get_config(file, url, username, password))
        state = deployer.import_stream(name)
        definition = {
            key: value
            for key, value in state.model_dump().items()
            if value not in (None, {}, False)
        }
        console.print(
            yaml.safe_dump({"streams": [definition]}, sort_keys=False),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


@main.command()
@click.argument("name")
@click.option(
    "--file",
    "-f",
    "file",
    type=click.Path(exists=True, dir_okay=False),
    help="Definition file to read connection settings from",
)
@connection_options
@click.confirmation_option(prompt="Drop the stream?")
def drop(
    name: str,
    file: Optional[str],
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Drop a stream."""
    from ksqlstream.deployer.streams import StreamDeployer

    try:
        deployer = StreamDeployer.from_config(get_config(file, url, username, password))
        deployer.drop(name)
        console.print(f"[green]Dropped stream '{name}'[/green]")
    except HANDLED_ERRORS as e:
        error_console.print(f"[red]ERROR[/red]: {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    main()
