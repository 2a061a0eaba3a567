"""Outdated command implementation."""

import click
from rich.table import Table

from nupack.commands.common import CliContext, console, fail, open_engine, pass_cli
from nupack.commands.update import latest_updates
from nupack.errors import NupackError


@click.command()
@click.option("--prerelease", is_flag=True, help="Consider pre-release versions")
@pass_cli
def outdated(ctx: CliContext, prerelease: bool):
    """List packages with available updates."""
    with open_engine(ctx) as engine:
        if not engine.installed:
            console.print("No packages installed")
            raise SystemExit(0)

        console.print("[blue]Checking for updates...[/blue]\n")

        try:
            updates = latest_updates(engine, prerelease)
        except NupackError as e:
            fail(e)

        if not updates:
            console.print("[green]All packages are up to date![/green]")
            raise SystemExit(0)

        table = Table(show_header=True, header_style="bold")
        table.add_column("Package")
        table.add_column("Current")
        table.add_column("Latest")
        table.add_column("Source")

        for package in updates:
            current = engine.installed.get(package.id.lower())
            table.add_row(
                package.id,
                current.version if current else "",
                f"[green]{package.version}[/green]",
                package.source.name if package.source else "",
            )

        console.print(table)
        console.print(f"\n{len(updates)} package(s) can be updated")
        console.print("[dim]Run 'nupack upgrade-all' to update all packages[/dim]")
