"""Reading the metadata document (.nuspec) embedded in every package."""

import logging
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import IO

from nupack.core.frameworks import normalize_framework_name
from nupack.errors import ConfigError
from nupack.models.identifier import PackageIdentifier
from nupack.models.package import ContentFile, FrameworkGroup, Package, RepositoryInfo

logger = logging.getLogger(__name__)


def _strip_namespaces(root: ET.Element) -> ET.Element:
    # nuspec files use several schema namespaces; match on local names only
    for elem in root.iter():
        if "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]
    return root


def _text(parent: ET.Element, name: str) -> str:
    child = parent.find(name)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _dependency(element: ET.Element) -> PackageIdentifier:
    return PackageIdentifier(element.get("id", ""), element.get("version", ""))


def _parse_dependencies(metadata: ET.Element) -> list[FrameworkGroup]:
    dependencies_element = metadata.find("dependencies")
    if dependencies_element is None:
        return []

    groups = []
    for group_element in dependencies_element.findall("group"):
        group = FrameworkGroup(
            target_framework=normalize_framework_name(group_element.get("targetFramework", ""))
        )
        group.dependencies = [_dependency(d) for d in group_element.findall("dependency")]
        groups.append(group)

    # Flat dependency list
    if not groups:
        groups.append(
            FrameworkGroup(
                dependencies=[_dependency(d) for d in dependencies_element.findall("dependency")]
            )
        )

    return groups


def parse_nuspec(root: ET.Element) -> Package:
    """Build a Package from a parsed <package> document."""
    root = _strip_namespaces(root)
    metadata = root.find("metadata")
    if root.tag != "package" or metadata is None:
        raise ConfigError("Not a package metadata document: missing <package><metadata>")

    repository = None
    repository_element = metadata.find("repository")
    if repository_element is not None:
        repository = RepositoryInfo(
            type=repository_element.get("type", ""),
            url=repository_element.get("url", ""),
            branch=repository_element.get("branch", ""),
            commit=repository_element.get("commit", ""),
        )

    files = []
    files_element = root.find("files")
    if files_element is not None:
        files = [
            ContentFile(source=f.get("src", ""), target=f.get("target", ""))
            for f in files_element.findall("file")
        ]

    return Package(
        id=_text(metadata, "id"),
        version=_text(metadata, "version"),
        title=_text(metadata, "title"),
        authors=_text(metadata, "authors"),
        owners=_text(metadata, "owners"),
        license_url=_text(metadata, "licenseUrl"),
        project_url=_text(metadata, "projectUrl"),
        icon_url=_text(metadata, "iconUrl"),
        require_license_acceptance=_text(metadata, "requireLicenseAcceptance").lower() == "true",
        description=_text(metadata, "description"),
        summary=_text(metadata, "summary"),
        release_notes=_text(metadata, "releaseNotes"),
        copyright=_text(metadata, "copyright"),
        tags=_text(metadata, "tags"),
        repository=repository,
        dependencies=_parse_dependencies(metadata),
        files=files,
    )


def load_nuspec(source: str | Path | IO[bytes]) -> Package:
    """Load a .nuspec file from a path or a binary stream."""
    try:
        tree = ET.parse(source)
    except ET.ParseError as e:
        raise ConfigError(f"Invalid package metadata in {source}: {e}")
    return parse_nuspec(tree.getroot())


def read_nupkg(nupkg_path: Path) -> Package:
    """Read the metadata of a .nupkg archive.

    The download URL of the result is the archive path itself.
    """
    try:
        with zipfile.ZipFile(nupkg_path) as zf:
            entry = next((n for n in zf.namelist() if n.endswith(".nuspec")), None)
            if entry is None:
                raise ConfigError(f"No .nuspec found in {nupkg_path}")
            with zf.open(entry) as stream:
                package = load_nuspec(stream)
    except (zipfile.BadZipFile, OSError) as e:
        raise ConfigError(f"Package could not be read: {nupkg_path}: {e}")

    package.download_url = str(nupkg_path)
    return package
