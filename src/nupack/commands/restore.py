"""Restore command implementation."""

import click

from nupack.commands.common import CliContext, console, fail, open_engine, pass_cli, progress_status
from nupack.errors import NupackError


@click.command()
@pass_cli
def restore(ctx: CliContext):
    """Install every package listed in packages.config.

    Package directories that packages.config doesn't list are deleted.
    """
    with open_engine(ctx) as engine:
        console.print(f"[blue]Restoring[/blue] {len(engine.manifest)} package(s)...")

        try:
            with progress_status(engine, "Restoring packages"):
                result = engine.restore()
        except NupackError as e:
            fail(e)

        for package in result.installed:
            console.print(f"  [green]✓[/green] {package.id} {package.version}")
        for name in result.removed:
            console.print(f"  [yellow]Removed[/yellow] {name}")
        for identifier, reason in result.failed:
            console.print(f"  [red]✗[/red] {identifier.id} {identifier.version}: {reason}")

        console.print(
            f"\n{len(result.installed)} installed, "
            f"{len(result.already_installed)} already present, "
            f"{len(result.failed)} failed"
        )
        if not result.ok:
            raise SystemExit(1)
