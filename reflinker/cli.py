"""reflinker CLI - swap NuGet references for local project references and back."""

from __future__ import annotations

import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from reflinker.config import LinkerConfig, SwapDirection, SwapResult
from reflinker.errors import LinkerError
from reflinker.linker import swap


@click.group()
def cli() -> None:
    """reflinker - tools for maintaining Visual Studio source trees."""
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _print_result(console: Console, result: SwapResult, project_name: str) -> None:
    if result.direction is SwapDirection.TO_PROJECT:
        console.print(
            f"Swapped [bold]{project_name}[/bold] to local project "
            f"[cyan]{result.local_project_path}[/cyan]"
        )
    else:
        console.print(f"Swapped [bold]{project_name}[/bold] to NuGet package")

    table = Table(title=f"Files written for {os.path.basename(result.solution_path)}", show_edge=False)
    table.add_column("File", style="bold")
    table.add_column("Kind", justify="right")
    for path in result.written:
        kind = "solution" if path.lower().endswith(".sln") else "project"
        table.add_row(path, kind)
    console.print(table)


@cli.command("swap")
@click.argument("project_name")
@click.option(
    "-s", "--slndir", "solution_dir", default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Solution directory. Defaults to the first parent directory containing a .sln file.",
)
@click.option(
    "--test", "dry_run", is_flag=True, hidden=True,
    help="Write to .test. sibling files instead of the originals",
)
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def swap_cmd(
    ctx: click.Context,
    project_name: str,
    solution_dir: str | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Swap PROJECT_NAME between a NuGet reference and a local project reference.

    PROJECT_NAME is case sensitive and must be both the NuGet package id and
    the .csproj file name.
    """
    _configure_logging(verbose)

    config = LinkerConfig(
        project_name=project_name,
        solution_dir=solution_dir,
        working_dir=os.getcwd(),
        environ=dict(os.environ),
        dry_run=dry_run,
    )

    try:
        result = swap(config)
    except LinkerError as e:
        Console(stderr=True).print(f"[red]error:[/red] {e}", highlight=False)
        ctx.exit(1)

    _print_result(Console(), result, project_name)


if __name__ == "__main__":
    cli()
