"""Version parsing, ordering and NuGet range evaluation."""

from typing import NamedTuple

from nupack.errors import VersionParseError

# Sorts after any real pre-release tag, so "1.0.0" > "1.0.0-beta".
NO_PRERELEASE = "￿"


class Version(NamedTuple):
    """A parsed version: four numeric components and a pre-release tag."""

    major: int
    minor: int
    patch: int
    build: int
    prerelease: str

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease != NO_PRERELEASE


def parse_version(version: str) -> Version:
    """Parse a version string such as "1.3.0.1-alpha2".

    Build metadata after a "+" is ignored. Anything after the first "-" is the
    pre-release tag, including further dashes.

    Raises VersionParseError for anything that isn't major.minor[.patch[.build]].
    """
    if version is None:
        raise VersionParseError("Version is missing")

    core, _, _metadata = version.strip().partition("+")
    core, dash, prerelease = core.partition("-")
    if not dash:
        prerelease = NO_PRERELEASE

    parts = core.split(".")
    if len(parts) < 2:
        raise VersionParseError(f"Invalid version: {version!r}")

    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        raise VersionParseError(f"Invalid version: {version!r}") from None

    if any(n < 0 for n in numbers):
        raise VersionParseError(f"Invalid version: {version!r}")

    numbers += [0] * (4 - len(numbers))
    return Version(numbers[0], numbers[1], numbers[2], numbers[3], prerelease)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def compare_versions(version_a: str, version_b: str) -> int:
    """Compare two version strings.

    Returns -1 if version_a is older, 0 if equal, +1 if newer.
    """
    a = parse_version(version_a)
    b = parse_version(version_b)

    for left, right in zip(a[:4], b[:4]):
        if left != right:
            return _sign(left - right)

    if a.prerelease == b.prerelease:
        return 0
    return -1 if a.prerelease < b.prerelease else 1


def _range_body(spec: str) -> list[str]:
    return spec.lstrip("[(").rstrip("])").split(",")


def has_version_range(spec: str) -> bool:
    return spec.startswith("(") or spec.startswith("[")


def minimum_version(spec: str) -> str:
    """Lower bound of a range (empty string if open)."""
    return _range_body(spec)[0].strip()


def maximum_version(spec: str) -> str | None:
    """Upper bound of a range, or None when the range has no comma."""
    bounds = _range_body(spec)
    return bounds[1].strip() if len(bounds) == 2 else None


def compare_to_range(spec: str, other_version: str) -> int:
    """Locate other_version relative to the version spec.

    A plain version is an inclusive minimum: returns 0 when other_version is at
    or above it, otherwise the raw comparison of spec against other_version.

    For a bracketed range, -1 means other_version is below the minimum, +1 that
    it is above the maximum and 0 that it is inside. "[1.0]" (inclusive upper
    marker with no maximum) is an exact match on the minimum.
    """
    if not has_version_range(spec):
        compare = compare_versions(spec, other_version)
        return 0 if compare <= 0 else compare

    minimum = minimum_version(spec)
    if minimum:
        compare = compare_versions(minimum, other_version)
        if spec.startswith("["):
            if compare > 0:
                return -1
        elif compare >= 0:
            return -1

    maximum = maximum_version(spec)
    max_inclusive = spec.endswith("]")
    if maximum:
        compare = compare_versions(maximum, other_version)
        if max_inclusive:
            if compare < 0:
                return 1
        elif compare <= 0:
            return 1
    elif max_inclusive:
        return compare_versions(minimum, other_version)

    return 0


def range_contains(spec: str, version: str) -> bool:
    """True if version satisfies the version spec."""
    return compare_to_range(spec, version) == 0
