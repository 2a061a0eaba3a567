"""packages.config management for tracking installed packages."""

import logging
import os
import stat
import xml.etree.ElementTree as ET
from pathlib import Path

from nupack.errors import ConfigError
from nupack.models.identifier import PackageIdentifier, identifier_sort_key
from nupack.core.version import compare_versions

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "packages.config"


def clear_read_only(path: Path) -> None:
    """Make an existing file writable again."""
    if path.exists():
        mode = path.stat().st_mode
        if not mode & stat.S_IWUSR:
            os.chmod(path, mode | stat.S_IWUSR)


def write_xml(root: ET.Element, path: Path) -> None:
    """Write an element tree as an indented utf-8 document."""
    tree = ET.ElementTree(root)
    ET.indent(tree, space="  ")
    path.parent.mkdir(parents=True, exist_ok=True)
    clear_read_only(path)
    tree.write(path, encoding="utf-8", xml_declaration=True)


class PackagesManifest:
    """The ordered list of packages a project depends on."""

    def __init__(self, path: Path, packages: list[PackageIdentifier] | None = None):
        self.path = path
        self.packages: list[PackageIdentifier] = packages if packages is not None else []

    @classmethod
    def load(cls, path: Path) -> "PackagesManifest":
        """Load the manifest, creating an empty one if the file is missing."""
        manifest = cls(path)
        if not path.exists():
            logger.info("No packages.config file found. Creating default at %s", path)
            manifest.save()
            return manifest

        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise ConfigError(f"Invalid packages.config at {path}: {e}")

        for element in root:
            manifest.packages.append(
                PackageIdentifier(element.get("id", ""), element.get("version", ""))
            )
        return manifest

    def save(self) -> None:
        """Write the manifest, sorted by id then version."""
        self.packages.sort(key=identifier_sort_key)

        root = ET.Element("packages")
        for package in self.packages:
            ET.SubElement(root, "package", id=package.id, version=package.version)
        write_xml(root, self.path)

    def find(self, package_id: str) -> PackageIdentifier | None:
        """Entry with the given id, compared case-insensitively."""
        lowered = package_id.lower()
        return next((p for p in self.packages if p.id.lower() == lowered), None)

    def add_package(self, identifier: PackageIdentifier) -> None:
        """Add an entry, keeping only the newer version of an already listed id."""
        existing = self.find(identifier.id)
        if existing is None:
            self.packages.append(identifier.to_identifier())
            return

        compare = compare_versions(existing.version, identifier.version)
        if compare < 0:
            logger.warning(
                "%s %s is already listed in the packages.config file.  Updating to %s",
                existing.id,
                existing.version,
                identifier.version,
            )
            self.packages.remove(existing)
            self.packages.append(identifier.to_identifier())
        elif compare > 0:
            logger.warning(
                "Trying to add %s %s to the packages.config file.  %s is already listed, so using that.",
                identifier.id,
                identifier.version,
                existing.version,
            )

    def remove_package(self, identifier: PackageIdentifier) -> bool:
        """Remove the exact (id, version) entry. Returns True if it was listed."""
        if identifier in self.packages:
            self.packages.remove(identifier)
            return True
        return False

    def snapshot(self) -> list[PackageIdentifier]:
        return [p.to_identifier() for p in self.packages]

    def __contains__(self, identifier: PackageIdentifier) -> bool:
        return identifier in self.packages

    def __len__(self) -> int:
        return len(self.packages)
