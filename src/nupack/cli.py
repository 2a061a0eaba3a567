"""CLI entry point for nupack."""

from pathlib import Path

import click

from nupack import __version__
from nupack.commands import (
    info,
    install,
    list_cmd,
    outdated,
    restore,
    search,
    sources,
    uninstall,
    update,
)
from nupack.commands.common import CliContext, fail, setup_logging
from nupack.core.config import get_config
from nupack.errors import NupackError


@click.group()
@click.version_option(version=__version__, prog_name="nupack")
@click.option(
    "--project",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Project directory holding nuget.config and packages.config",
)
@click.option(
    "--source",
    "-s",
    "source_paths",
    multiple=True,
    help="Package source to use instead of the configured ones (repeatable)",
)
@click.option("--verbose", is_flag=True, help="Show debug output")
@click.pass_context
def main(ctx: click.Context, project: Path, source_paths: tuple[str, ...], verbose: bool):
    """nupack - A NuGet package manager for project-local package trees.

    Packages are installed into the repositoryPath of the project's
    nuget.config and recorded in its packages.config.

    Examples:

        nupack install Newtonsoft.Json

        nupack install Serilog --version "[2.0,3.0)"

        nupack restore

        nupack --source ./local-feed search json
    """
    try:
        config = get_config()
    except NupackError as e:
        fail(e)

    setup_logging(verbose or config.verbose)
    ctx.obj = CliContext(project=project, sources=list(source_paths), verbose=verbose)


# Register commands
main.add_command(install.install)
main.add_command(uninstall.uninstall)
main.add_command(update.update)
main.add_command(update.upgrade_all)
main.add_command(restore.restore)
main.add_command(list_cmd.list_packages)
main.add_command(search.search)
main.add_command(info.info)
main.add_command(outdated.outdated)
main.add_command(sources.sources)


if __name__ == "__main__":
    main()
