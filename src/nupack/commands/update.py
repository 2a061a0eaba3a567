"""Update command implementation."""

import click

from nupack.commands.common import (
    CliContext,
    console,
    fail,
    find_installed,
    open_engine,
    pass_cli,
    progress_status,
)
from nupack.core.engine import Engine
from nupack.errors import NupackError
from nupack.models.identifier import PackageIdentifier
from nupack.models.package import Package


def latest_updates(engine: Engine, prerelease: bool) -> list[Package]:
    """The newest available update for each installed package."""
    updates = engine.get_updates(include_prerelease=prerelease)

    # Sorted newest first within each id
    latest: dict[str, Package] = {}
    for package in updates:
        latest.setdefault(package.id, package)
    return list(latest.values())


@click.command()
@click.argument("package_id")
@click.option("--version", "-v", "version", help="Version to update to (defaults to the latest)")
@click.option("--prerelease", is_flag=True, help="Allow updating to pre-release versions")
@pass_cli
def update(ctx: CliContext, package_id: str, version: str | None, prerelease: bool):
    """Update an installed package."""
    with open_engine(ctx) as engine:
        current = find_installed(engine, package_id)
        if current is None:
            fail(f"Package '{package_id}' is not installed")

        if version is None:
            try:
                updates = engine.get_updates([current], include_prerelease=prerelease)
            except NupackError as e:
                fail(e)
            if not updates:
                console.print(f"  [green]{current.id}[/green] is up to date ({current.version})")
                raise SystemExit(0)
            target = PackageIdentifier(updates[0].id, updates[0].version)
        else:
            target = PackageIdentifier(current.id, version)

        console.print(
            f"  [blue]Updating[/blue] {current.id}: {current.version} → {target.version}"
        )
        try:
            with progress_status(engine, f"Updating {current.id}"):
                package = engine.update(current, target)
        except NupackError as e:
            fail(e)

        console.print(f"\n[green]✓[/green] Successfully updated [bold]{package.id}[/bold] to {package.version}")


@click.command("upgrade-all")
@click.option("--prerelease", is_flag=True, help="Allow updating to pre-release versions")
@pass_cli
def upgrade_all(ctx: CliContext, prerelease: bool):
    """Update all installed packages to their latest versions."""
    with open_engine(ctx) as engine:
        installed = list(engine.installed.values())
        if not installed:
            console.print("No packages installed")
            raise SystemExit(0)

        console.print(f"[blue]Checking {len(installed)} packages for updates...[/blue]\n")
        try:
            updates = latest_updates(engine, prerelease)
        except NupackError as e:
            fail(e)

        if not updates:
            console.print("[green]All packages are up to date![/green]")
            raise SystemExit(0)

        with progress_status(engine, "Installing all updates"):
            result = engine.update_all(updates, installed)

        for package in result.updated:
            console.print(f"  [green]✓[/green] {package.id} {package.version}")
        for identifier, reason in result.failed:
            console.print(f"  [red]✗[/red] {identifier.id} {identifier.version}: {reason}")

        console.print(f"\n[green]✓[/green] Updated {len(result.updated)} package(s)")
        if result.failed:
            raise SystemExit(1)
