"""Shared fixtures: throwaway feeds, projects and package archives."""

import zipfile
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

from nupack.core.config import NupackConfig, set_config
from nupack.core.engine import Engine

NUSPEC_NS = "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd"


def nuspec_xml(
    package_id: str,
    version: str,
    dependencies: list[tuple[str, str]] | None = None,
    groups: dict[str, list[tuple[str, str]]] | None = None,
    description: str = "",
    icon_url: str = "",
) -> str:
    """Render a .nuspec document."""
    deps = ""
    if groups is not None:
        rendered = []
        for framework, items in groups.items():
            inner = "".join(f'<dependency id="{i}" version="{escape(v)}" />' for i, v in items)
            rendered.append(f'<group targetFramework="{framework}">{inner}</group>')
        deps = f"<dependencies>{''.join(rendered)}</dependencies>"
    elif dependencies:
        inner = "".join(f'<dependency id="{i}" version="{escape(v)}" />' for i, v in dependencies)
        deps = f"<dependencies>{inner}</dependencies>"

    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<package xmlns="{NUSPEC_NS}"><metadata>'
        f"<id>{package_id}</id><version>{version}</version>"
        f"<authors>Test Author</authors><description>{escape(description)}</description>"
        f"<iconUrl>{escape(icon_url)}</iconUrl>"
        f"{deps}</metadata></package>"
    )


def make_nupkg(
    directory: Path,
    package_id: str,
    version: str,
    dependencies: list[tuple[str, str]] | None = None,
    groups: dict[str, list[tuple[str, str]]] | None = None,
    files: dict[str, bytes] | None = None,
    description: str = "",
    icon_url: str = "",
) -> Path:
    """Write <directory>/<id>.<version>.nupkg and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{package_id}.{version}.nupkg"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(
            f"{package_id}.nuspec",
            nuspec_xml(package_id, version, dependencies, groups, description, icon_url),
        )
        zf.writestr("[Content_Types].xml", "<Types />")
        zf.writestr("_rels/.rels", "<Relationships />")
        for name, content in (files or {"lib/net45/library.dll": b"dll"}).items():
            zf.writestr(name, content)
    return path


def write_nuget_config(project: Path, sources: dict[str, str], extra_config: str = "") -> Path:
    """Write a nuget.config with the given sources and repositoryPath=Libraries."""
    project.mkdir(parents=True, exist_ok=True)
    adds = "".join(f'<add key="{name}" value="{path}" />' for name, path in sources.items())
    path = project / "nuget.config"
    path.write_text(
        '<?xml version="1.0" encoding="utf-8"?>'
        "<configuration>"
        f"<packageSources>{adds}</packageSources>"
        "<disabledPackageSources />"
        '<activePackageSource><add key="All" value="(Aggregate source)" /></activePackageSource>'
        '<config><add key="repositoryPath" value="Libraries" />'
        f"{extra_config}</config>"
        "</configuration>",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def nupack_home(tmp_path):
    """Point the user configuration at a temporary home directory."""
    base = tmp_path / "home"
    config = NupackConfig(
        base_dir=base,
        cache_dir=base / "cache",
        icon_dir=base / "icons",
        settings_path=base / "settings.yaml",
    )
    config.ensure_dirs()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def feed(tmp_path):
    """An empty local feed directory."""
    path = tmp_path / "feed"
    path.mkdir()
    return path


@pytest.fixture
def project(tmp_path, feed):
    """A project whose only source is the local feed."""
    path = tmp_path / "project"
    write_nuget_config(path, {"Local": str(feed)})
    return path


@pytest.fixture
def engine(project, nupack_home):
    """An engine opened on the project."""
    with Engine.open(project, config=nupack_home) as opened:
        yield opened
