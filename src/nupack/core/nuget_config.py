"""nuget.config: package sources and install options of a project."""

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path

from nupack.core.manifest import write_xml
from nupack.errors import ConfigError
from nupack.models.source import AGGREGATE_SOURCE, PackageSource

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "nuget.config"
NUGET_ORG_SOURCE = "http://www.nuget.org/api/v2/"

DEFAULT_CONFIG = f"""<?xml version="1.0" encoding="utf-8"?>
<configuration>
    <packageSources>
       <add key="NuGet" value="{NUGET_ORG_SOURCE}" />
    </packageSources>
    <disabledPackageSources />
    <activePackageSource>
       <add key="All" value="{AGGREGATE_SOURCE}" />
    </activePackageSource>
    <config>
       <add key="repositoryPath" value="Libraries" />
       <add key="DefaultPushSource" value="{NUGET_ORG_SOURCE}" />
    </config>
</configuration>
"""


def _parse_bool(key: str, value: str) -> bool:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    raise ConfigError(f"Invalid boolean for {key}: {value!r}")


class NugetConfigFile:
    """Sources, credentials and options read from a nuget.config file."""

    def __init__(self, path: Path):
        self.path = path
        self.package_sources: list[PackageSource] = []
        self.active_package_source: PackageSource | None = None
        self.saved_repository_path = "Libraries"
        self.default_push_source: str | None = None
        self.verbose = False
        self.install_from_cache = True
        self.read_only_package_files = False

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    @property
    def repository_path(self) -> Path:
        """Install directory, with variables expanded and made absolute."""
        path = Path(os.path.expandvars(self.saved_repository_path))
        if not path.is_absolute():
            path = self.base_dir / path
        return Path(os.path.abspath(path))

    @property
    def enabled_sources(self) -> list[PackageSource]:
        return [s for s in self.package_sources if s.is_enabled]

    def active_sources(self) -> list[PackageSource]:
        """Sources queried by operations: all enabled ones for the aggregate."""
        active = self.active_package_source
        if active is None or active.is_aggregate:
            return self.enabled_sources
        match = self.get_source(active.name)
        if match is not None:
            return [match] if match.is_enabled else []
        return [active]

    def get_source(self, name: str) -> PackageSource | None:
        return next((s for s in self.package_sources if s.name == name), None)

    @classmethod
    def load(cls, path: Path) -> "NugetConfigFile":
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise ConfigError(f"Invalid nuget.config at {path}: {e}")

        config_file = cls(path)
        base_dir = config_file.base_dir

        sources_element = root.find("packageSources")
        if sources_element is not None:
            for add in sources_element.findall("add"):
                config_file.package_sources.append(
                    PackageSource(add.get("key", ""), add.get("value", ""), base_dir=base_dir)
                )

        active_element = root.find("activePackageSource")
        if active_element is not None:
            add = active_element.find("add")
            if add is not None:
                config_file.active_package_source = PackageSource(
                    add.get("key", ""), add.get("value", ""), base_dir=base_dir
                )

        disabled_element = root.find("disabledPackageSources")
        if disabled_element is not None:
            for add in disabled_element.findall("add"):
                if (add.get("value") or "").lower() == "true":
                    source = config_file.get_source(add.get("key", ""))
                    if source is not None:
                        source.is_enabled = False

        credentials_element = root.find("packageSourceCredentials")
        if credentials_element is not None:
            for source_element in credentials_element:
                source = config_file.get_source(source_element.tag)
                if source is None:
                    continue
                for add in source_element.findall("add"):
                    key = (add.get("key") or "").lower()
                    if key == "username":
                        source.user_name = add.get("value")
                    elif key == "cleartextpassword":
                        source.saved_password = add.get("value")

        settings_element = root.find("config")
        if settings_element is not None:
            for add in settings_element.findall("add"):
                key = add.get("key", "")
                value = add.get("value", "")
                lowered = key.lower()
                if lowered == "repositorypath":
                    config_file.saved_repository_path = value
                elif lowered == "defaultpushsource":
                    config_file.default_push_source = value
                elif lowered == "verbose":
                    config_file.verbose = _parse_bool(key, value)
                elif lowered == "installfromcache":
                    config_file.install_from_cache = _parse_bool(key, value)
                elif lowered == "readonlypackagefiles":
                    config_file.read_only_package_files = _parse_bool(key, value)

        return config_file

    @classmethod
    def create_default(cls, path: Path) -> "NugetConfigFile":
        """Write the default configuration to path and load it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG, encoding="utf-8")
        return cls.load(path)

    @classmethod
    def load_or_create(cls, path: Path) -> "NugetConfigFile":
        if not path.exists():
            logger.info("No nuget.config file found. Creating default at %s", path)
            return cls.create_default(path)
        return cls.load(path)

    def save(self) -> None:
        root = ET.Element("configuration")
        sources_element = ET.SubElement(root, "packageSources")
        disabled_element = ET.SubElement(root, "disabledPackageSources")
        credentials_element = ET.SubElement(root, "packageSourceCredentials")

        for source in self.package_sources:
            ET.SubElement(sources_element, "add", key=source.name, value=source.saved_path)

            if not source.is_enabled:
                ET.SubElement(disabled_element, "add", key=source.name, value="true")

            if source.has_password:
                source_element = ET.SubElement(credentials_element, source.name)
                ET.SubElement(source_element, "add", key="userName", value=source.user_name or "")
                ET.SubElement(
                    source_element, "add", key="clearTextPassword", value=source.saved_password
                )

        active_element = ET.SubElement(root, "activePackageSource")
        ET.SubElement(active_element, "add", key="All", value=AGGREGATE_SOURCE)

        settings_element = ET.SubElement(root, "config")
        ET.SubElement(settings_element, "add", key="repositoryPath", value=self.saved_repository_path)
        if self.default_push_source is not None:
            ET.SubElement(
                settings_element, "add", key="DefaultPushSource", value=self.default_push_source
            )
        if self.verbose:
            ET.SubElement(settings_element, "add", key="verbose", value="true")
        if not self.install_from_cache:
            ET.SubElement(settings_element, "add", key="InstallFromCache", value="false")
        if self.read_only_package_files:
            ET.SubElement(settings_element, "add", key="ReadOnlyPackageFiles", value="true")

        write_xml(root, self.path)
