"""Shared plumbing for CLI commands."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from nupack.core.config import get_config
from nupack.core.engine import Engine
from nupack.core.version import compare_versions
from nupack.errors import NupackError
from nupack.models.package import Package
from nupack.models.source import PackageSource

console = Console()


@dataclass
class CliContext:
    """Options given to the top-level command."""

    project: Path = Path(".")
    sources: list[str] = field(default_factory=list)
    verbose: bool = False


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def fail(message) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(message))}")
    raise SystemExit(1)


def source_overrides(paths: list[str]) -> list[PackageSource] | None:
    """Sources given on the command line, replacing the configured ones."""
    if not paths:
        return None
    return [PackageSource(path, path, base_dir=Path.cwd()) for path in paths]


def open_engine(ctx: CliContext) -> Engine:
    config = get_config()
    config.ensure_dirs()

    try:
        engine = Engine.open(ctx.project, config=config, sources=source_overrides(ctx.sources))
    except NupackError as e:
        fail(e)

    if engine.nuget_config.verbose and not ctx.verbose:
        setup_logging(True)
    return engine


@contextmanager
def progress_status(engine: Engine, message: str) -> Iterator[None]:
    """Show engine progress messages in a spinner while the block runs."""
    with console.status(message) as status:
        engine.progress = lambda fraction, text: status.update(f"{text} ({fraction:.0%})")
        try:
            yield
        finally:
            engine.progress = lambda fraction, text: None


def newest(packages: list[Package], package_id: str) -> Package | None:
    """Newest version of package_id among packages."""
    best = None
    for package in packages:
        if package.id.lower() != package_id.lower():
            continue
        if best is None or compare_versions(best.version, package.version) < 0:
            best = package
    return best


def find_installed(engine: Engine, package_id: str) -> Package | None:
    """Installed package by id, ignoring case."""
    return engine.installed.get(package_id.lower())


pass_cli = click.make_pass_decorator(CliContext, ensure=True)
