"""Info command implementation."""

import click
from rich.panel import Panel

from nupack.commands.common import CliContext, console, fail, find_installed, open_engine, pass_cli
from nupack.core.frameworks import best_framework_group
from nupack.errors import NupackError
from nupack.models.identifier import PackageIdentifier

LATEST = "[0.0,)"


@click.command()
@click.argument("package_id")
@click.option("--version", "-v", "version", help="Version or range to show (defaults to installed or latest)")
@pass_cli
def info(ctx: CliContext, package_id: str, version: str | None):
    """Show detailed information about a package.

    PACKAGE_ID can name an installed package or any package in the sources.
    """
    with open_engine(ctx) as engine:
        installed = find_installed(engine, package_id)
        try:
            if installed is not None and version is None:
                package = installed
            else:
                package = engine.get_specific_package(PackageIdentifier(package_id, version or LATEST))
        except NupackError as e:
            fail(e)

        if package is None:
            fail(f"Package '{package_id}' not found")

        lines = [
            f"[bold]Id:[/bold] {package.id}",
            f"[bold]Version:[/bold] {package.version}",
            f"[bold]Title:[/bold] {package.title}",
            f"[bold]Authors:[/bold] {package.authors}",
        ]
        if package.summary or package.description:
            lines.append(f"[bold]Description:[/bold] {package.summary or package.description}")
        if package.project_url:
            lines.append(f"[bold]Project:[/bold] {package.project_url}")
        if package.license_url:
            lines.append(f"[bold]License:[/bold] {package.license_url}")
        if package.icon_url:
            status = "cached" if engine.fetch_icon(package) is not None else "unavailable"
            lines.append(f"[bold]Icon:[/bold] {package.icon_url} ({status})")
        if package.repository is not None and package.repository.url:
            lines.append(f"[bold]Repository:[/bold] {package.repository.url}")
        if package.download_count:
            lines.append(f"[bold]Downloads:[/bold] {package.download_count:,}")
        if package.source is not None:
            lines.append(f"[bold]Source:[/bold] {package.source.name}")

        installed_here = engine.is_installed(package)
        title = f"[green]{package.id}[/green]" + (" (installed)" if installed_here else "")
        console.print(Panel("\n".join(lines), title=title))

        if package.dependencies:
            best = best_framework_group(package.dependencies, engine.profile)
            console.print("\n[bold]Dependencies:[/bold]")
            for group in package.dependencies:
                marker = " [green](selected)[/green]" if group is best else ""
                console.print(f"  {group.target_framework or '(any framework)'}{marker}")
                for dependency in group.dependencies:
                    console.print(f"    • {dependency.id} {dependency.version}")
