"""Package source management commands (edit nuget.config)."""

import click
from rich.table import Table

from nupack.commands.common import CliContext, console, fail, pass_cli
from nupack.core.nuget_config import CONFIG_FILENAME, NugetConfigFile
from nupack.errors import NupackError
from nupack.models.source import PackageSource


def load_config(ctx: CliContext) -> NugetConfigFile:
    try:
        return NugetConfigFile.load_or_create(ctx.project / CONFIG_FILENAME)
    except NupackError as e:
        fail(e)


def require_source(config: NugetConfigFile, name: str) -> PackageSource:
    source = config.get_source(name)
    if source is None:
        fail(f"No package source named '{name}'")
    return source


@click.group()
def sources():
    """Manage the package sources of the project."""
    pass


@sources.command("list")
@pass_cli
def list_sources(ctx: CliContext):
    """List configured package sources."""
    config = load_config(ctx)

    if not config.package_sources:
        console.print("No package sources configured")
        raise SystemExit(0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Path")
    table.add_column("Enabled")
    table.add_column("Credentials")

    for source in config.package_sources:
        table.add_row(
            source.name,
            source.saved_path,
            "yes" if source.is_enabled else "[dim]no[/dim]",
            source.user_name or ("(password)" if source.has_password else ""),
        )

    console.print(table)
    console.print(f"\n[dim]Repository path: {config.repository_path}[/dim]")


@sources.command("add")
@click.argument("name")
@click.argument("path")
@click.option("--username", help="User name for the feed")
@click.option("--password", help="Password for the feed (stored in clear text)")
@pass_cli
def add_source(ctx: CliContext, name: str, path: str, username: str | None, password: str | None):
    """Add a package source (a feed URL or a local directory)."""
    config = load_config(ctx)
    if config.get_source(name) is not None:
        fail(f"A package source named '{name}' already exists")

    config.package_sources.append(
        PackageSource(
            name,
            path,
            user_name=username,
            saved_password=password,
            base_dir=config.base_dir,
        )
    )
    config.save()
    console.print(f"[green]✓[/green] Added source [bold]{name}[/bold]")


@sources.command("remove")
@click.argument("name")
@pass_cli
def remove_source(ctx: CliContext, name: str):
    """Remove a package source."""
    config = load_config(ctx)
    config.package_sources.remove(require_source(config, name))
    config.save()
    console.print(f"[green]✓[/green] Removed source [bold]{name}[/bold]")


@sources.command("enable")
@click.argument("name")
@pass_cli
def enable_source(ctx: CliContext, name: str):
    """Enable a package source."""
    config = load_config(ctx)
    require_source(config, name).is_enabled = True
    config.save()
    console.print(f"[green]✓[/green] Enabled source [bold]{name}[/bold]")


@sources.command("disable")
@click.argument("name")
@pass_cli
def disable_source(ctx: CliContext, name: str):
    """Disable a package source."""
    config = load_config(ctx)
    require_source(config, name).is_enabled = False
    config.save()
    console.print(f"[green]✓[/green] Disabled source [bold]{name}[/bold]")
