"""Runtime profile and target framework selection."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from nupack.models.package import FrameworkGroup

logger = logging.getLogger(__name__)


class ApiCompatibility(str, Enum):
    """Scripting runtime API level of the consuming project."""

    NET_3_5 = "net_3_5"
    NET_4_X = "net_4_x"
    NET_STANDARD_2_0 = "net_standard_2_0"


@dataclass(frozen=True, order=True)
class UnityVersion:
    """An editor version such as 2018.4.2f1."""

    major: int
    minor: int
    revision: int
    release: str
    build: int

    @classmethod
    def parse(cls, version: str) -> "UnityVersion":
        match = re.match(r"(\d+)\.(\d+)\.(\d+)([fpba])(\d+)", version)
        if not match:
            raise ValueError(f"Invalid unity version: {version}")
        return cls(
            major=int(match.group(1)),
            minor=int(match.group(2)),
            revision=int(match.group(3)),
            release=match.group(4),
            build=int(match.group(5)),
        )

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}{self.release}{self.build}"


DEFAULT_UNITY_VERSION = "2018.4.0f1"


@dataclass(frozen=True)
class RuntimeProfile:
    """What the installing project can load."""

    api_compatibility: ApiCompatibility = ApiCompatibility.NET_4_X
    unity_version: UnityVersion = UnityVersion.parse(DEFAULT_UNITY_VERSION)

    @classmethod
    def from_settings(cls, data: dict | None) -> "RuntimeProfile":
        """Create a profile from the "runtime" block of the settings file."""
        data = data or {}
        return cls(
            api_compatibility=ApiCompatibility(
                data.get("api_compatibility", ApiCompatibility.NET_4_X.value)
            ),
            unity_version=UnityVersion.parse(
                str(data.get("unity_version", DEFAULT_UNITY_VERSION))
            ),
        )

    def to_settings(self) -> dict:
        return {
            "api_compatibility": self.api_compatibility.value,
            "unity_version": str(self.unity_version),
        }


# Framework families, most specific moniker first
UNITY_FRAMEWORKS = ["unity"]

NET_STANDARD_FRAMEWORKS = [
    "netstandard2.0",
    "netstandard1.6",
    "netstandard1.5",
    "netstandard1.4",
    "netstandard1.3",
    "netstandard1.2",
    "netstandard1.1",
    "netstandard1.0",
]

NET4_UNITY2018_FRAMEWORKS = ["net471", "net47"]

NET4_UNITY2017_FRAMEWORKS = [
    "net462",
    "net461",
    "net46",
    "net452",
    "net451",
    "net45",
    "net403",
    "net40",
    "net4",
]

NET3_FRAMEWORKS = [
    "net35-unity full v3.5",
    "net35-unity subset v3.5",
    "net35",
    "net20",
    "net11",
]

# Framework-agnostic content
DEFAULT_FRAMEWORKS = [""]

# lib/ folders that are kept together when any of them is selected
UNITY_LIB_FRAMEWORKS = ("unity", "net35-unity full v3.5", "net35-unity subset v3.5")


def framework_families(profile: RuntimeProfile) -> list[list[str]]:
    """Ordered framework families usable under the given profile."""
    families = [UNITY_FRAMEWORKS]

    if profile.api_compatibility == ApiCompatibility.NET_STANDARD_2_0:
        families.append(NET_STANDARD_FRAMEWORKS)
    elif profile.api_compatibility == ApiCompatibility.NET_4_X:
        if profile.unity_version.major >= 2018:
            families.append(NET4_UNITY2018_FRAMEWORKS)
        if profile.unity_version.major >= 2017:
            families.append(NET4_UNITY2017_FRAMEWORKS)
        families.append(NET3_FRAMEWORKS)
        families.append(NET_STANDARD_FRAMEWORKS)
    else:
        families.append(NET3_FRAMEWORKS)

    families.append(DEFAULT_FRAMEWORKS)
    return families


def framework_priority(framework: str, families: list[list[str]]) -> int | None:
    """Priority of a moniker; lower is better, None when unsupported."""
    for family_index, family in enumerate(families):
        if framework in family:
            return family_index * 1000 + family.index(framework)
    return None


def select_best_framework(
    candidates: Iterable[str], profile: RuntimeProfile | None = None
) -> str | None:
    """Pick the most specific target framework the profile can use."""
    families = framework_families(profile or RuntimeProfile())

    scored = []
    for framework in candidates:
        priority = framework_priority(framework, families)
        if priority is not None:
            scored.append((priority, framework))

    result = min(scored)[1] if scored else None
    logger.debug("Selecting %s as the best target framework", result if result is not None else "(none)")
    return result


def best_framework_group(
    groups: list[FrameworkGroup], profile: RuntimeProfile | None = None
) -> FrameworkGroup:
    """The dependency group for the best framework, or an empty group."""
    best = select_best_framework((g.target_framework for g in groups), profile)
    if best is not None:
        for group in groups:
            if group.target_framework == best:
                return group
    return FrameworkGroup()


def normalize_framework_name(target_framework: str) -> str:
    """Convert a nuspec targetFramework value into a lib/ folder moniker.

    ".NETStandard2.0" -> "netstandard2.0", ".NETFramework4.5" -> "net45".
    """
    converted = (
        target_framework.lower()
        .replace(".netstandard", "netstandard")
        .replace("native0.0", "native")
    )
    if converted.startswith(".netframework"):
        converted = converted.replace(".netframework", "net").replace(".", "")
    return converted
