"""Parsing of OData (Atom) feed responses into packages."""

import logging
import xml.etree.ElementTree as ET

from nupack.errors import FeedError
from nupack.models.identifier import PackageIdentifier
from nupack.models.package import FrameworkGroup, Package

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
DATA_SERVICES_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices"
METADATA_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"


def _atom(name: str) -> str:
    return f"{{{ATOM_NS}}}{name}"


def _property(properties: ET.Element | None, name: str) -> str:
    if properties is None:
        return ""
    element = properties.find(f"{{{DATA_SERVICES_NS}}}{name}")
    if element is None or element.text is None:
        return ""
    return element.text


def parse_dependencies(raw: str) -> list[FrameworkGroup]:
    """Split an "id:version:framework|id:version:framework" string into groups.

    Semi-empty entries such as "::net40" still create their framework group
    but contribute no dependency.
    """
    groups: dict[str, FrameworkGroup] = {}
    if not raw:
        return []

    for dependency_string in raw.split("|"):
        details = dependency_string.split(":")
        framework = details[2] if len(details) > 2 else ""

        group = groups.get(framework)
        if group is None:
            group = groups[framework] = FrameworkGroup(target_framework=framework)

        dependency_id = details[0]
        dependency_version = details[1] if len(details) > 1 else ""
        if dependency_id and dependency_version:
            group.dependencies.append(PackageIdentifier(dependency_id, dependency_version))

    return list(groups.values())


def _parse_entry(entry: ET.Element) -> Package:
    title = entry.find(_atom("title"))
    content = entry.find(_atom("content"))
    properties = entry.find(f"{{{METADATA_NS}}}properties")

    download_count = _property(properties, "DownloadCount")
    return Package(
        id=(title.text or "") if title is not None else "",
        version=_property(properties, "Version"),
        title=_property(properties, "Title"),
        description=_property(properties, "Description"),
        summary=_property(properties, "Summary"),
        release_notes=_property(properties, "ReleaseNotes"),
        license_url=_property(properties, "LicenseUrl"),
        project_url=_property(properties, "ProjectUrl"),
        icon_url=_property(properties, "IconUrl"),
        authors=_property(properties, "Authors"),
        download_count=int(download_count) if download_count.isdigit() else 0,
        download_url=content.get("src", "") if content is not None else "",
        dependencies=parse_dependencies(_property(properties, "Dependencies")),
    )


def parse_feed(document: str | bytes) -> list[Package]:
    """Parse an Atom feed into packages, one per <entry>."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise FeedError(f"Invalid feed response: {e}")

    return [_parse_entry(entry) for entry in root.findall(_atom("entry"))]
