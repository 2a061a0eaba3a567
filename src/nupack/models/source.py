"""Package source (feed) data model."""

import os
from dataclasses import dataclass, field
from pathlib import Path

AGGREGATE_SOURCE = "(Aggregate source)"


@dataclass
class PackageSource:
    """A configured feed: a local directory of .nupkg files or a remote URL."""

    name: str
    saved_path: str
    is_enabled: bool = True
    user_name: str | None = None
    saved_password: str | None = None
    # Directory relative local paths are resolved against (the nuget.config's).
    base_dir: Path | None = field(default=None, compare=False)

    @property
    def expanded_path(self) -> str:
        """Path with environment variables expanded and made absolute."""
        path = os.path.expandvars(self.saved_path)
        if (
            not path.startswith("http")
            and path != AGGREGATE_SOURCE
            and not os.path.isabs(path)
            and self.base_dir is not None
        ):
            path = str(self.base_dir / path)
        return path

    @property
    def is_local_path(self) -> bool:
        return not self.expanded_path.startswith("http")

    @property
    def is_aggregate(self) -> bool:
        return self.expanded_path == AGGREGATE_SOURCE

    @property
    def feed_url(self) -> str:
        """Remote path with a trailing slash so method names can be appended."""
        return self.expanded_path.rstrip("/") + "/"

    @property
    def expanded_password(self) -> str | None:
        if self.saved_password is None:
            return None
        return os.path.expandvars(self.saved_password)

    @property
    def has_password(self) -> bool:
        return self.saved_password is not None
