"""Package identifier: an id plus a version or version range."""

from functools import cmp_to_key
from typing import Iterable

from nupack.core import version as versioning


class PackageIdentifier:
    """Identifies a package by id and version.

    The version is either an exact version ("1.2.3") or a NuGet range
    ("[1.0,2.0)"). A plain version is treated as an inclusive minimum.

    Equality is exact: same id and same version string. Range membership is a
    separate question, answered by in_range().
    """

    def __init__(self, id: str = "", version: str = ""):
        self.id = id
        self.version = version

    @property
    def is_prerelease(self) -> bool:
        return "-" in self.version

    @property
    def has_version_range(self) -> bool:
        return versioning.has_version_range(self.version)

    @property
    def is_min_inclusive(self) -> bool:
        return self.version.startswith("[")

    @property
    def is_max_inclusive(self) -> bool:
        return self.version.endswith("]")

    @property
    def minimum_version(self) -> str:
        return versioning.minimum_version(self.version)

    @property
    def maximum_version(self) -> str | None:
        return versioning.maximum_version(self.version)

    @property
    def folder_name(self) -> str:
        """Name of the install directory and archive stem."""
        return f"{self.id}.{self.version}"

    def compare_version(self, other_version: str) -> int:
        """-1 below the range, 0 inside it, +1 above it."""
        return versioning.compare_to_range(self.version, other_version)

    def in_range(self, other: "PackageIdentifier | str") -> bool:
        """Check whether another identifier's version satisfies this one."""
        other_version = other.version if isinstance(other, PackageIdentifier) else other
        return self.compare_version(other_version) == 0

    def to_identifier(self) -> "PackageIdentifier":
        return PackageIdentifier(self.id, self.version)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        return self.id == other.id and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.id, self.version))

    def __str__(self) -> str:
        return self.folder_name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r}, {self.version!r})"


def compare_identifiers(first: PackageIdentifier, second: PackageIdentifier) -> int:
    """Order by id first, then by version.

    Grouping by id keeps all versions of a package together in a sorted list.
    """
    if first.id != second.id:
        return -1 if first.id < second.id else 1
    return versioning.compare_versions(first.version, second.version)


identifier_sort_key = cmp_to_key(compare_identifiers)


def sort_identifiers(identifiers: Iterable[PackageIdentifier], reverse: bool = False) -> list:
    return sorted(identifiers, key=identifier_sort_key, reverse=reverse)
