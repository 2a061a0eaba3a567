"""Data models for nupack."""

from nupack.models.identifier import (
    PackageIdentifier,
    compare_identifiers,
    identifier_sort_key,
    sort_identifiers,
)
from nupack.models.package import ContentFile, FrameworkGroup, Package, RepositoryInfo
from nupack.models.source import AGGREGATE_SOURCE, PackageSource

__all__ = [
    "PackageIdentifier",
    "compare_identifiers",
    "identifier_sort_key",
    "sort_identifiers",
    "Package",
    "FrameworkGroup",
    "RepositoryInfo",
    "ContentFile",
    "PackageSource",
    "AGGREGATE_SOURCE",
]
