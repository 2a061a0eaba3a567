"""Package data model."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from nupack.models.identifier import PackageIdentifier

if TYPE_CHECKING:
    from nupack.models.source import PackageSource


@dataclass
class FrameworkGroup:
    """Dependencies that apply to one target framework."""

    target_framework: str = ""
    dependencies: list[PackageIdentifier] = field(default_factory=list)


@dataclass
class RepositoryInfo:
    """Source repository a package was built from."""

    type: str = ""
    url: str = ""
    branch: str = ""
    commit: str = ""


@dataclass
class ContentFile:
    """A <file src= target=/> entry of a metadata document."""

    source: str = ""
    target: str = ""


@dataclass(eq=False, repr=False)
class Package(PackageIdentifier):
    """A package with its descriptive metadata and dependency groups."""

    id: str = ""
    version: str = ""
    title: str = ""
    description: str = ""
    summary: str = ""
    release_notes: str = ""
    authors: str = ""
    owners: str = ""
    license_url: str = ""
    project_url: str = ""
    icon_url: str = ""
    download_url: str = ""
    download_count: int = 0
    copyright: str = ""
    tags: str = ""
    require_license_acceptance: bool = False
    repository: RepositoryInfo | None = None
    dependencies: list[FrameworkGroup] = field(default_factory=list)
    files: list[ContentFile] = field(default_factory=list)
    source: "PackageSource | None" = None
    _icon: bytes | None = field(default=None, init=False)

    def __post_init__(self):
        if not self.title:
            self.title = self.id

    def icon(self, fetch: Callable[[str], bytes | None]) -> bytes | None:
        """Return the icon image, fetching it on first use."""
        if self._icon is None and self.icon_url:
            self._icon = fetch(self.icon_url)
        return self._icon
