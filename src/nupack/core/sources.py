"""Querying package sources: local directories and remote OData feeds."""

import logging
from functools import cmp_to_key
from pathlib import Path
from typing import Iterable

from nupack.core.feed import FeedClient
from nupack.core.nuspec import read_nupkg
from nupack.core.version import compare_versions, parse_version
from nupack.errors import ConfigError, FeedError, FeedNotFoundError, VersionParseError
from nupack.models.identifier import PackageIdentifier, identifier_sort_key
from nupack.models.package import Package
from nupack.models.source import PackageSource

logger = logging.getLogger(__name__)

# Servers reject GetUpdates() queries with too many ids
UPDATE_BATCH_SIZE = 10


def _newest_first(first: Package, second: Package) -> int:
    if first.id != second.id:
        return -1 if first.id < second.id else 1
    return -compare_versions(first.version, second.version)


def sort_updates(packages: Iterable[Package]) -> list[Package]:
    """Sort by id ascending, then version descending.

    Packages whose version does not parse are logged and dropped.
    """
    return sorted(filter(_has_valid_version, packages), key=cmp_to_key(_newest_first))


def _has_valid_version(package: Package) -> bool:
    try:
        parse_version(package.version)
    except VersionParseError as e:
        logger.warning("Ignoring %s %s: %s", package.id, package.version, e)
        return False
    return True


def _in_range(identifier: PackageIdentifier, package: Package) -> bool:
    try:
        return identifier.in_range(package)
    except VersionParseError as e:
        logger.warning("Ignoring %s %s: %s", package.id, package.version, e)
        return False


def _is_newer(package: Package, than: PackageIdentifier) -> bool:
    try:
        return compare_versions(than.version, package.version) < 0
    except VersionParseError as e:
        logger.warning("Ignoring %s %s: %s", package.id, package.version, e)
        return False


def _unique(packages: Iterable[Package]) -> list[Package]:
    seen = set()
    result = []
    for package in packages:
        key = (package.id, package.version)
        if key not in seen:
            seen.add(key)
            result.append(package)
    return result


class SourceQueryEngine:
    """Finds packages in local and remote sources."""

    def __init__(self, client: FeedClient | None = None):
        self.client = client or FeedClient()

    def _read_local(self, path: Path, source: PackageSource) -> Package | None:
        try:
            package = read_nupkg(path)
        except ConfigError as e:
            logger.warning("Skipping unreadable package %s: %s", path, e)
            return None
        package.source = source
        return package

    def _local_packages(
        self,
        source: PackageSource,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        offset: int = 0,
    ) -> list[Package]:
        packages: list[Package] = []

        # The whole directory is returned on the first page
        if offset != 0:
            return packages

        directory = Path(source.expanded_path)
        if not directory.is_dir():
            logger.error("Local folder not found: %s", directory)
            return packages

        term = search_term.lower()
        for path in sorted(directory.glob("*.nupkg")):
            if term not in path.name.lower():
                continue

            package = self._read_local(path, source)
            if package is None or not _has_valid_version(package):
                continue

            if package.is_prerelease and not include_prerelease:
                continue

            if include_all_versions:
                packages.append(package)
                continue

            existing = next((p for p in packages if p.id == package.id), None)
            if existing is None:
                packages.append(package)
            elif _is_newer(package, existing):
                packages.remove(existing)
                packages.append(package)

        return packages

    def find_packages_by_id(
        self, source: PackageSource, identifier: PackageIdentifier
    ) -> list[Package]:
        """All packages of the source matching the identifier's version or range.

        The result is sorted oldest first. Network failures are logged and
        produce an empty list.
        """
        if source.is_local_path:
            if not identifier.has_version_range:
                path = Path(source.expanded_path) / f"{identifier.id}.{identifier.version}.nupkg"
                found = []
                if path.is_file():
                    package = self._read_local(path, source)
                    if package is not None:
                        found.append(package)
            else:
                found = self._local_packages(
                    source, identifier.id, include_all_versions=True, include_prerelease=True
                )
        else:
            # Without $orderby=Version the Version filter is ignored by the server
            url = f"{source.feed_url}FindPackagesById()?id='{identifier.id}'&$orderby=Version asc"
            if not identifier.has_version_range:
                url = f"{url}&$filter=Version eq '{identifier.version}'"

            try:
                found = self.client.get_packages(url, source)
            except FeedError as e:
                logger.error("Unable to retrieve package list from %s: %s", url, e)
                found = []

        found = [p for p in found if p.id.lower() == identifier.id.lower() and _in_range(identifier, p)]
        found.sort(key=identifier_sort_key)
        for package in found:
            package.source = source
        return found

    def get_specific_package(
        self, source: PackageSource, identifier: PackageIdentifier
    ) -> Package | None:
        """The exact version if the source has it, else the newest in range."""
        found = self.find_packages_by_id(source, identifier)
        if not found:
            return None

        if not identifier.has_version_range:
            for package in found:
                if compare_versions(package.version, identifier.version) == 0:
                    return package
        return found[-1]

    def search(
        self,
        source: PackageSource,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        limit: int = 15,
        offset: int = 0,
    ) -> list[Package]:
        """Search one source. Network failures are logged and produce an empty list."""
        if source.is_local_path:
            return self._local_packages(
                source, search_term, include_all_versions, include_prerelease, offset
            )

        url = f"{source.feed_url}Search()?"
        if not include_all_versions:
            if not include_prerelease:
                url += "$filter=IsLatestVersion&"
            else:
                url += "$filter=IsAbsoluteLatestVersion&"
        url += "$orderby=DownloadCount desc&"
        url += f"$skip={offset}&"
        url += f"$top={limit}&"
        url += f"searchTerm='{search_term}'&"
        url += "targetFramework=''&"
        url += f"includePrerelease={str(include_prerelease).lower()}"

        try:
            return self.client.get_packages(url, source)
        except FeedError as e:
            logger.error("Unable to retrieve package list from %s: %s", url, e)
            return []

    def get_updates(
        self,
        source: PackageSource,
        installed: list[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> list[Package]:
        """Packages newer than the installed ones, sorted by id then newest first."""
        if source.is_local_path:
            available = self._local_packages(
                source,
                include_all_versions=include_all_versions,
                include_prerelease=include_prerelease,
            )
            updates = [
                package
                for current in installed
                for package in available
                if package.id.lower() == current.id.lower() and _is_newer(package, current)
            ]
            return sort_updates(updates)

        updates: list[Package] = []
        for start in range(0, len(installed), UPDATE_BATCH_SIZE):
            batch = installed[start : start + UPDATE_BATCH_SIZE]
            package_ids = "|".join(p.id for p in batch)
            versions = "|".join(p.version for p in batch)
            url = (
                f"{source.feed_url}GetUpdates()?packageIds='{package_ids}'&versions='{versions}'"
                f"&includePrerelease={str(include_prerelease).lower()}"
                f"&includeAllVersions={str(include_all_versions).lower()}"
                f"&targetFrameworks='{target_frameworks}'&versionConstraints='{version_constraints}'"
            )

            try:
                updates.extend(self.client.get_packages(url, source))
            except FeedNotFoundError:
                # Some feeds don't implement GetUpdates()
                logger.debug("%s not found. Falling back to FindPackagesById.", url)
                return self._get_updates_fallback(
                    source, installed, include_prerelease, include_all_versions
                )
            except FeedError as e:
                logger.error("Unable to retrieve package list from %s: %s", url, e)

        return sort_updates(updates)

    def _get_updates_fallback(
        self,
        source: PackageSource,
        installed: list[PackageIdentifier],
        include_prerelease: bool,
        include_all_versions: bool,
    ) -> list[Package]:
        updates: list[Package] = []
        for current in installed:
            # Anything strictly newer than the installed version
            newer = PackageIdentifier(current.id, f"({current.version},)")
            found = self.find_packages_by_id(source, newer)
            if not include_prerelease:
                found = [p for p in found if not p.is_prerelease]
            if not found:
                continue
            updates.extend(found if include_all_versions else found[-1:])
        return sort_updates(updates)

    # Aggregate queries over several sources

    def search_all(
        self,
        sources: list[PackageSource],
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        limit: int = 15,
        offset: int = 0,
    ) -> list[Package]:
        packages: list[Package] = []
        for source in sources:
            packages.extend(
                self.search(
                    source, search_term, include_all_versions, include_prerelease, limit, offset
                )
            )
        return _unique(packages)

    def get_updates_all(
        self,
        sources: list[PackageSource],
        installed: list[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> list[Package]:
        updates: list[Package] = []
        for source in sources:
            updates.extend(
                self.get_updates(
                    source,
                    installed,
                    include_prerelease,
                    include_all_versions,
                    target_frameworks,
                    version_constraints,
                )
            )
        return sort_updates(_unique(updates))

    def locate(
        self, sources: list[PackageSource], identifier: PackageIdentifier
    ) -> Package | None:
        """Find the best package across sources.

        The first source holding the exact version wins; otherwise the
        highest version any source offers in range.
        """
        best: Package | None = None
        for source in sources:
            package = self.get_specific_package(source, identifier)
            if package is None:
                continue

            if (
                not identifier.has_version_range
                and compare_versions(package.version, identifier.version) == 0
            ):
                return package

            if best is None or compare_versions(best.version, package.version) < 0:
                best = package

        return best
