"""Uninstall command implementation."""

import click

from nupack.commands.common import CliContext, console, fail, find_installed, open_engine, pass_cli
from nupack.errors import NupackError


@click.command()
@click.argument("package_id", required=False)
@click.option("--all", "uninstall_all", is_flag=True, help="Uninstall every installed package")
@pass_cli
def uninstall(ctx: CliContext, package_id: str | None, uninstall_all: bool):
    """Uninstall a package.

    Packages that were installed as its dependencies are kept.
    """
    if not package_id and not uninstall_all:
        fail("Give a package id or --all")

    with open_engine(ctx) as engine:
        if uninstall_all:
            count = len(engine.installed)
            try:
                engine.uninstall_all()
            except (NupackError, OSError) as e:
                fail(e)
            console.print(f"\n[green]✓[/green] Uninstalled {count} package(s)")
            return

        package = find_installed(engine, package_id)
        if package is None:
            fail(f"Package '{package_id}' is not installed")

        console.print(f"[blue]Uninstalling[/blue] {package.id} {package.version}...")
        try:
            engine.uninstall(package)
        except (NupackError, OSError) as e:
            fail(e)

        console.print(f"\n[green]✓[/green] Successfully uninstalled [bold]{package.id}[/bold]")
