"""Exception hierarchy for nupack."""


class NupackError(Exception):
    """Base class for all nupack errors."""

    pass


class VersionParseError(NupackError, ValueError):
    """A version string could not be parsed."""

    pass


class ConfigError(NupackError):
    """A configuration, manifest or metadata document is malformed."""

    pass


class FeedError(NupackError):
    """Error talking to a package feed."""

    pass


class FeedNotFoundError(FeedError):
    """The feed answered 404 for the requested endpoint."""

    pass


class DownloadError(NupackError):
    """Error during download."""

    pass


class ExtractionError(NupackError):
    """Error during extraction."""

    pass


class InstallError(NupackError):
    """A package could not be installed."""

    pass


class PackageNotFoundError(InstallError):
    """No source could provide a package matching the request."""

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"Could not find {identifier.id} {identifier.version} or greater.")


class DependencyCycleError(InstallError):
    """The dependency graph loops back onto a package being resolved."""

    def __init__(self, chain: list[str]):
        self.chain = chain
        super().__init__(f"Dependency cycle detected: {' -> '.join(chain)}")
