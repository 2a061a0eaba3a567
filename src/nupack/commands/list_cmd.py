"""List command implementation."""

import click
from rich.table import Table

from nupack.commands.common import CliContext, console, open_engine, pass_cli


@click.command("list")
@pass_cli
def list_packages(ctx: CliContext):
    """List installed packages and packages.config entries."""
    with open_engine(ctx) as engine:
        listed = engine.manifest.snapshot()
        installed = list(engine.installed.values())

        if not listed and not installed:
            console.print("No packages installed")
            console.print("\nInstall packages with: nupack install <package-id>")
            raise SystemExit(0)

        table = Table(show_header=True, header_style="bold")
        table.add_column("Package")
        table.add_column("Version")
        table.add_column("Title")
        table.add_column("Status")

        for package in sorted(installed, key=lambda p: p.id.lower()):
            status = "" if package in listed else "[yellow]not in packages.config[/yellow]"
            table.add_row(package.id, package.version, package.title, status)

        for identifier in listed:
            if not engine.is_installed(identifier):
                table.add_row(
                    identifier.id, identifier.version, "", "[red]missing (run restore)[/red]"
                )

        console.print(table)
