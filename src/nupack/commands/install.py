"""Install command implementation."""

import click

from nupack.commands.common import (
    CliContext,
    console,
    fail,
    newest,
    open_engine,
    pass_cli,
    progress_status,
)
from nupack.errors import NupackError
from nupack.models.identifier import PackageIdentifier


@click.command()
@click.argument("package_id")
@click.option("--version", "-v", "version", help="Version or range to install, e.g. 1.2.0 or [1.0,2.0)")
@click.option("--prerelease", is_flag=True, help="Allow pre-release versions when picking the latest")
@pass_cli
def install(ctx: CliContext, package_id: str, version: str | None, prerelease: bool):
    """Install a package and its dependencies.

    Without --version the latest version available from the sources is used.
    """
    with open_engine(ctx) as engine:
        if version is None:
            try:
                latest = newest(
                    engine.search(package_id, include_prerelease=prerelease, limit=30), package_id
                )
            except NupackError as e:
                fail(e)
            if latest is None:
                fail(f"Package '{package_id}' not found in any source")
            identifier = PackageIdentifier(latest.id, latest.version)
        else:
            identifier = PackageIdentifier(package_id, version)

        if engine.is_installed(identifier):
            console.print(
                f"[yellow]{identifier.id}[/yellow] {identifier.version} is already installed"
            )
            raise SystemExit(0)

        console.print(f"[blue]Installing[/blue] {identifier.id} {identifier.version}...")

        try:
            with progress_status(engine, f"Installing {identifier.id}"):
                package = engine.install_identifier(identifier)
        except NupackError as e:
            fail(e)

        console.print(
            f"\n[green]✓[/green] Successfully installed [bold]{package.id}[/bold] {package.version}"
        )
        console.print(f"\n[dim]Installed into {engine.repository_path}[/dim]")
