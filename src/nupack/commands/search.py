"""Search command implementation."""

import click
from rich.table import Table

from nupack.commands.common import CliContext, console, fail, open_engine, pass_cli
from nupack.errors import NupackError


@click.command()
@click.argument("query", default="")
@click.option("--limit", "-n", default=15, help="Number of results to show per source")
@click.option("--skip", default=0, help="Number of results to skip")
@click.option("--prerelease", is_flag=True, help="Include pre-release versions")
@click.option("--all-versions", is_flag=True, help="List every version, not just the latest")
@pass_cli
def search(ctx: CliContext, query: str, limit: int, skip: int, prerelease: bool, all_versions: bool):
    """Search the package sources.

    QUERY is the search term (e.g., 'json', 'logging').
    """
    console.print(f"[blue]Searching for:[/blue] {query or '(everything)'}\n")

    with open_engine(ctx) as engine:
        try:
            results = engine.search(
                query,
                include_all_versions=all_versions,
                include_prerelease=prerelease,
                limit=limit,
                offset=skip,
            )
        except NupackError as e:
            fail(e)

        if not results:
            console.print("No results found")
            raise SystemExit(0)

        table = Table(show_header=True, header_style="bold")
        table.add_column("Package")
        table.add_column("Version")
        table.add_column("Downloads")
        table.add_column("Description")

        for package in results:
            desc = package.summary or package.description or ""
            if len(desc) > 60:
                desc = desc[:57] + "..."
            installed = " [green](installed)[/green]" if engine.is_installed(package) else ""
            table.add_row(
                package.id + installed,
                package.version,
                f"{package.download_count:,}",
                desc,
            )

        console.print(table)
        console.print("\n[dim]Install with: nupack install <package-id>[/dim]")
