"""Installation engine: resolves, installs, updates and restores packages.

An Engine holds everything one project needs: its nuget.config, its
packages.config, the runtime profile and the table of packages currently
installed in the repository path. Nothing is global, so several engines can
exist side by side (each one is single-threaded).
"""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from nupack.core.config import NupackConfig, get_config
from nupack.core.credentials import CredentialCache
from nupack.core.downloader import download_file
from nupack.core.extractor import (
    Cleaner,
    clean_package,
    delete_directory,
    delete_file,
    extract_package,
    tools_directory,
)
from nupack.core.feed import FeedClient
from nupack.core.frameworks import RuntimeProfile, best_framework_group
from nupack.core.icons import IconCache
from nupack.core.manifest import MANIFEST_FILENAME, PackagesManifest
from nupack.core.nuget_config import CONFIG_FILENAME, NugetConfigFile
from nupack.core.nuspec import load_nuspec, read_nupkg
from nupack.core.sources import SourceQueryEngine
from nupack.core.version import compare_versions
from nupack.errors import (
    DependencyCycleError,
    DownloadError,
    InstallError,
    NupackError,
    PackageNotFoundError,
)
from nupack.models.identifier import PackageIdentifier
from nupack.models.package import Package
from nupack.models.source import PackageSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

# A dependency without a version accepts any version
ANY_VERSION = "[0.0,)"


def _no_progress(fraction: float, message: str) -> None:
    pass


@dataclass
class RestoreResult:
    """Outcome of a restore."""

    installed: list[Package] = field(default_factory=list)
    already_installed: list[PackageIdentifier] = field(default_factory=list)
    failed: list[tuple[PackageIdentifier, str]] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class UpdateResult:
    """Outcome of updating several packages."""

    updated: list[Package] = field(default_factory=list)
    failed: list[tuple[PackageIdentifier, str]] = field(default_factory=list)


class InstallTransaction:
    """Records what one package install writes so it can be undone.

    Used as a context manager: an exception leaving the block removes every
    tracked path that did not exist before, and restores the manifest.
    """

    def __init__(self, manifest: PackagesManifest):
        self.manifest = manifest
        self.created: list[Path] = []
        self._manifest_before = manifest.snapshot()
        self._manifest_changed = False

    def __enter__(self) -> "InstallTransaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
        return False

    def track(self, path: Path) -> Path:
        """Remember path for rollback if it doesn't exist yet."""
        if not path.exists():
            self.created.append(path)
        return path

    def add_to_manifest(self, identifier: PackageIdentifier) -> None:
        self.manifest.add_package(identifier)
        self.manifest.save()
        self._manifest_changed = True

    def rollback(self) -> None:
        for path in reversed(self.created):
            logger.debug("Rolling back %s", path)
            if path.is_dir():
                delete_directory(path)
            else:
                delete_file(path)
        self.created.clear()

        if self._manifest_changed:
            self.manifest.packages = self._manifest_before
            self.manifest.save()
            self._manifest_changed = False


class Engine:
    """Package operations for one project."""

    def __init__(
        self,
        project_dir: Path,
        nuget_config: NugetConfigFile,
        manifest: PackagesManifest,
        profile: RuntimeProfile | None = None,
        sources: list[PackageSource] | None = None,
        cache_dir: Path | None = None,
        client: FeedClient | None = None,
        credentials: CredentialCache | None = None,
        cleaner: Cleaner = clean_package,
        progress: ProgressCallback | None = None,
        icons: IconCache | None = None,
    ):
        self.project_dir = Path(project_dir)
        self.nuget_config = nuget_config
        self.manifest = manifest
        self.profile = profile or RuntimeProfile()
        self.source_override = sources
        self.cache_dir = cache_dir or get_config().cache_dir
        self.credentials = credentials or CredentialCache()
        self.client = client or FeedClient(credentials=self.credentials)
        self.query = SourceQueryEngine(self.client)
        self.cleaner = cleaner
        self.progress = progress or _no_progress
        self.icons = icons
        # Keyed by lower-cased id; package ids are case-insensitive
        self.installed: dict[str, Package] = {}

    @classmethod
    def open(
        cls,
        project_dir: Path,
        config: NupackConfig | None = None,
        sources: list[PackageSource] | None = None,
        **kwargs,
    ) -> "Engine":
        """Load a project's configuration files and scan its installed packages.

        A default nuget.config and an empty packages.config are written when
        the project has none.
        """
        config = config or get_config()
        project_dir = Path(project_dir)

        nuget_config = NugetConfigFile.load_or_create(project_dir / CONFIG_FILENAME)
        manifest = PackagesManifest.load(project_dir / MANIFEST_FILENAME)
        credentials = kwargs.pop("credentials", None) or CredentialCache()
        client = kwargs.pop("client", None) or FeedClient(
            timeout=config.timeout, credentials=credentials
        )
        icons = kwargs.pop("icons", None) or IconCache(config.icon_dir, config.icon_timeout)

        engine = cls(
            project_dir,
            nuget_config,
            manifest,
            profile=config.profile,
            sources=sources,
            cache_dir=config.cache_dir,
            client=client,
            credentials=credentials,
            icons=icons,
            **kwargs,
        )
        engine.update_installed_packages()
        return engine

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self.client.close()

    @property
    def sources(self) -> list[PackageSource]:
        """Sources to query: the override if given, else the active configured ones."""
        if self.source_override is not None:
            return self.source_override
        return self.nuget_config.active_sources()

    @property
    def install_from_cache(self) -> bool:
        # Explicit sources always fetch from those sources
        return self.source_override is None and self.nuget_config.install_from_cache

    @property
    def repository_path(self) -> Path:
        return self.nuget_config.repository_path

    def reload(self) -> None:
        """Re-read nuget.config, packages.config and the installed packages."""
        self.nuget_config = NugetConfigFile.load_or_create(self.nuget_config.path)
        self.manifest = PackagesManifest.load(self.manifest.path)
        self.update_installed_packages()

    def update_installed_packages(self) -> None:
        """Rebuild the installed table from the repository path.

        Archives are read first, then loose .nuspec files; the first package
        found for an id wins.
        """
        started = time.monotonic()
        self.installed.clear()

        repository = self.repository_path
        if repository.is_dir():
            for nupkg in sorted(repository.rglob("*.nupkg")):
                self._add_installed(nupkg, read_nupkg)
            for nuspec in sorted(repository.rglob("*.nuspec")):
                self._add_installed(nuspec, load_nuspec)

        logger.debug(
            "Getting installed packages took %d ms", (time.monotonic() - started) * 1000
        )

    def _add_installed(self, path: Path, reader: Callable[[Path], Package]) -> None:
        try:
            package = reader(path)
        except NupackError as e:
            logger.warning("Skipping %s: %s", path, e)
            return

        if package.id.lower() in self.installed:
            logger.debug("Package is already in installed list: %s", package.id)
            return
        self.installed[package.id.lower()] = package

    def is_installed(self, identifier: PackageIdentifier) -> bool:
        """True if exactly this version is installed."""
        installed = self.installed.get(identifier.id.lower())
        return installed is not None and installed.version == identifier.version

    def get_installed_package(self, identifier: PackageIdentifier) -> Package | None:
        """The installed package if it is the requested version or within range."""
        installed = self.installed.get(identifier.id.lower())
        if installed is None:
            return None

        if installed.version == identifier.version:
            logger.debug("Found exact package already installed: %s %s", installed.id, installed.version)
            return installed

        if identifier.in_range(installed):
            logger.debug(
                "Requested %s %s, but %s is already installed, so using that.",
                identifier.id,
                identifier.version,
                installed.version,
            )
            return installed

        logger.debug(
            "Requested %s %s. %s is already installed, but it is out of range.",
            identifier.id,
            identifier.version,
            installed.version,
        )
        return None

    def cache_path(self, identifier: PackageIdentifier) -> Path:
        return self.cache_dir / f"{identifier.folder_name}.nupkg"

    def get_cached_package(self, identifier: PackageIdentifier) -> Package | None:
        """The exact version from the download cache, when installing from cache."""
        if not self.install_from_cache:
            return None

        cached = self.cache_path(identifier)
        if not cached.is_file():
            return None

        logger.debug("Found exact package in the cache: %s", cached)
        return read_nupkg(cached)

    def get_online_package(self, identifier: PackageIdentifier) -> Package | None:
        package = self.query.locate(self.sources, identifier)
        if package is None:
            logger.debug("Failed to find %s %s", identifier.id, identifier.version)
        elif package.version != identifier.version:
            logger.debug(
                "%s %s not found, using %s", identifier.id, identifier.version, package.version
            )
        return package

    def get_specific_package(self, identifier: PackageIdentifier) -> Package | None:
        """Look for a package: installed first, then the cache, then the sources."""
        return (
            self.get_installed_package(identifier)
            or self.get_cached_package(identifier)
            or self.get_online_package(identifier)
        )

    def fetch_icon(self, package: Package) -> bytes | None:
        if self.icons is None:
            return None
        return package.icon(self.icons.fetch)

    # Installation

    def install_identifier(self, identifier: PackageIdentifier) -> Package:
        """Install the best match for identifier along with its dependencies.

        Returns the installed package. An already installed package that
        satisfies the request is returned untouched.
        """
        installed = self.get_installed_package(identifier)
        if installed is not None:
            return installed

        package = self.get_cached_package(identifier) or self.get_online_package(identifier)
        if package is None:
            raise PackageNotFoundError(identifier)
        return self.install(package)

    def install(self, package: Package) -> Package:
        """Install a resolved package, after installing its dependencies."""
        plan = self._plan(package)
        logger.debug(
            "Install plan for %s: %s", package, ", ".join(str(p) for p in plan) or "(nothing)"
        )

        result = package
        for planned in plan:
            result = self._materialize(planned)
        return result

    def _dependencies_of(self, package: Package) -> Iterator[PackageIdentifier]:
        group = best_framework_group(package.dependencies, self.profile)
        logger.debug("Installing dependencies for TargetFramework: %s", group.target_framework)
        for dependency in group.dependencies:
            yield PackageIdentifier(dependency.id, dependency.version or ANY_VERSION)

    def _resolve_dependency(
        self, identifier: PackageIdentifier, planned: dict[str, Package]
    ) -> Package | None:
        """The package to install for a dependency, or None if already satisfied."""
        planned_package = planned.get(identifier.id.lower())
        if planned_package is not None and identifier.in_range(planned_package):
            return None

        if self.get_installed_package(identifier) is not None:
            return None

        package = self.get_cached_package(identifier) or self.get_online_package(identifier)
        if package is None:
            raise PackageNotFoundError(identifier)
        return package

    def _plan(self, root: Package) -> list[Package]:
        """Order root and its missing dependencies so dependencies come first.

        Walks the dependency graph depth-first with an explicit stack. An id
        met again while it is still on the stack is a cycle.
        """
        planned: dict[str, Package] = {}
        order: list[Package] = []
        stack: list[tuple[Package, Iterator[PackageIdentifier]]] = [
            (root, self._dependencies_of(root))
        ]
        resolving = {root.id.lower()}

        while stack:
            package, dependencies = stack[-1]
            dependency = next(dependencies, None)

            if dependency is None:
                stack.pop()
                resolving.discard(package.id.lower())
                planned[package.id.lower()] = package
                order.append(package)
                continue

            logger.debug("Resolving dependency: %s %s", dependency.id, dependency.version)
            resolved = self._resolve_dependency(dependency, planned)
            if resolved is None:
                continue

            if resolved.id.lower() in resolving:
                chain = [p.id for p, _ in stack]
                start = next(
                    i for i, name in enumerate(chain) if name.lower() == resolved.id.lower()
                )
                raise DependencyCycleError(chain[start:] + [resolved.id])

            resolving.add(resolved.id.lower())
            stack.append((resolved, self._dependencies_of(resolved)))

        return order

    def _materialize(self, package: Package) -> Package:
        """Put one package on disk and record it in the manifest."""
        installed = self.installed.get(package.id.lower())
        if installed is not None:
            compare = compare_versions(installed.version, package.version)
            if compare < 0:
                logger.debug(
                    "%s %s is installed, but need %s or greater. Updating to %s",
                    installed.id,
                    installed.version,
                    package.version,
                    package.version,
                )
                self.uninstall(installed)
            elif compare > 0:
                logger.debug(
                    "%s %s is installed. %s or greater is needed, so using installed version.",
                    installed.id,
                    installed.version,
                    package.version,
                )
                return installed
            else:
                logger.debug("Already installed: %s %s", package.id, package.version)
                return installed

        logger.info("Installing: %s %s", package.id, package.version)
        title = f"Installing {package.id} {package.version}"
        install_dir = self.repository_path / package.folder_name

        with InstallTransaction(self.manifest) as transaction:
            try:
                self.progress(0.3, f"{title}: downloading package")
                archive = self._acquire(package, transaction)

                self.progress(0.6, f"{title}: extracting package")
                transaction.track(install_dir)
                transaction.track(tools_directory(self.project_dir, package))
                extract_package(
                    archive, install_dir, read_only=self.nuget_config.read_only_package_files
                )
                shutil.copyfile(archive, install_dir / f"{package.folder_name}.nupkg")

                self.progress(0.9, f"{title}: cleaning package")
                self.cleaner(package, install_dir, self.project_dir, self.profile)

                transaction.add_to_manifest(package)
            except (NupackError, OSError) as e:
                raise InstallError(
                    f"Unable to install package {package.id} {package.version}: {e}"
                ) from e

        self.installed[package.id.lower()] = package
        self.progress(1.0, f"Installed {package.id} {package.version}")
        return package

    def _acquire(self, package: Package, transaction: InstallTransaction) -> Path:
        """Make sure the package archive is in the cache and return its path."""
        cached = self.cache_path(package)
        if self.install_from_cache and cached.is_file():
            logger.debug("Cached package found for %s %s", package.id, package.version)
            return cached

        transaction.track(cached)
        source = package.source
        if (source is not None and source.is_local_path) or (
            source is None and not package.download_url.startswith("http")
        ):
            if package.download_url:
                local = Path(package.download_url)
            elif source is not None:
                local = Path(source.expanded_path) / f"{package.folder_name}.nupkg"
            else:
                raise DownloadError(f"No download URL for {package.id} {package.version}")
            if not local.is_file():
                raise DownloadError(f"Package file not found: {local}")
            logger.debug("Caching local package %s %s", package.id, package.version)
            cached.parent.mkdir(parents=True, exist_ok=True)
            if local.resolve() != cached.resolve():
                shutil.copyfile(local, cached)
            return cached

        if not package.download_url:
            raise DownloadError(f"No download URL for {package.id} {package.version}")

        logger.debug("Downloading package %s %s", package.id, package.version)
        message = f"Installing {package.id} {package.version}: downloading package"

        def report(written: int, total: int) -> None:
            # Downloading spans 0.3 to 0.6 of the install
            self.progress(0.3 + 0.3 * written / total, message)

        return download_file(
            package.download_url,
            cached,
            client=self.client.client,
            auth=self.client.auth_for(package.download_url, source),
            progress=report,
        )

    # Removal

    def uninstall(self, identifier: PackageIdentifier) -> None:
        """Remove one package. Packages that depend on it are left alone."""
        logger.info("Uninstalling: %s %s", identifier.id, identifier.version)

        self.manifest.remove_package(identifier)
        self.manifest.save()

        delete_directory(self.repository_path / identifier.folder_name)
        delete_directory(tools_directory(self.project_dir, identifier))

        self.installed.pop(identifier.id.lower(), None)

    def uninstall_all(self) -> None:
        for package in list(self.installed.values()):
            self.uninstall(package)

    def update(self, current: PackageIdentifier, new: PackageIdentifier) -> Package:
        """Replace the installed current version with new."""
        logger.info("Updating %s %s to %s", current.id, current.version, new.version)
        self.uninstall(current)
        return self.install_identifier(PackageIdentifier(new.id, new.version))

    def update_all(
        self, updates: list[Package], installed: list[PackageIdentifier]
    ) -> UpdateResult:
        """Apply each update to its installed counterpart, continuing past failures."""
        result = UpdateResult()
        step = 1.0 / len(updates) if updates else 1.0

        for index, update in enumerate(updates):
            self.progress(index * step, f"Updating to {update.id} {update.version}")

            current = next((p for p in installed if p.id.lower() == update.id.lower()), None)
            if current is None:
                logger.error(
                    "Trying to update %s to %s, but no version is installed!",
                    update.id,
                    update.version,
                )
                continue

            try:
                result.updated.append(self.update(current, update))
            except NupackError as e:
                logger.error("Unable to update %s: %s", update.id, e)
                result.failed.append((update.to_identifier(), str(e)))

        self.progress(1.0, "Updates complete")
        return result

    def restore(self) -> RestoreResult:
        """Install everything listed in packages.config and remove what isn't."""
        self.reload()
        started = time.monotonic()
        result = RestoreResult()

        entries = self.manifest.snapshot()
        logger.debug("Restoring %d packages.", len(entries))
        step = 1.0 / len(entries) if entries else 1.0

        for index, identifier in enumerate(entries):
            self.progress(index * step, f"Restoring {identifier.id} {identifier.version}")

            if self.is_installed(identifier):
                logger.debug("Already installed: %s %s", identifier.id, identifier.version)
                result.already_installed.append(identifier)
                continue

            try:
                result.installed.append(self.install_identifier(identifier))
            except NupackError as e:
                logger.error("Unable to restore %s %s: %s", identifier.id, identifier.version, e)
                result.failed.append((identifier, str(e)))

        result.removed = self.check_for_unnecessary_packages()
        self.progress(1.0, "Restore complete")
        logger.debug("Restoring packages took %d ms", (time.monotonic() - started) * 1000)
        return result

    def check_for_unnecessary_packages(self) -> list[str]:
        """Delete package directories that packages.config doesn't list."""
        repository = self.repository_path
        if not repository.is_dir():
            return []

        expected = {p.folder_name for p in self.manifest.packages}
        removed = []
        for folder in sorted(repository.iterdir()):
            if folder.is_dir() and folder.name not in expected:
                logger.info("Deleting unnecessary package %s", folder.name)
                delete_directory(folder)
                removed.append(folder.name)

        if removed:
            self.update_installed_packages()
        return removed

    # Queries

    def search(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        limit: int = 15,
        offset: int = 0,
    ) -> list[Package]:
        return self.query.search_all(
            self.sources, search_term, include_all_versions, include_prerelease, limit, offset
        )

    def get_updates(
        self,
        installed: list[PackageIdentifier] | None = None,
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> list[Package]:
        if installed is None:
            installed = list(self.installed.values())
        return self.query.get_updates_all(
            self.sources,
            installed,
            include_prerelease,
            include_all_versions,
            target_frameworks,
            version_constraints,
        )
