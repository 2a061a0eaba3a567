"""Tests for packages.config management."""

import logging
import xml.etree.ElementTree as ET

import pytest

from nupack.core.manifest import PackagesManifest
from nupack.errors import ConfigError
from nupack.models import Package, PackageIdentifier


@pytest.fixture
def manifest_path(tmp_path):
    return tmp_path / "packages.config"


class TestLoad:
    """Tests for PackagesManifest.load."""

    def test_missing_file_is_created_empty(self, manifest_path):
        manifest = PackagesManifest.load(manifest_path)

        assert len(manifest) == 0
        assert manifest_path.exists()
        assert ET.parse(manifest_path).getroot().tag == "packages"

    def test_reads_entries(self, manifest_path):
        manifest_path.write_text(
            '<?xml version="1.0" encoding="utf-8"?>'
            "<packages>"
            '<package id="Acme.Core" version="1.0.0" />'
            '<package id="Acme.Logging" version="2.0.0" />'
            "</packages>"
        )
        manifest = PackagesManifest.load(manifest_path)

        assert PackageIdentifier("Acme.Core", "1.0.0") in manifest
        assert PackageIdentifier("Acme.Logging", "2.0.0") in manifest

    def test_invalid_file(self, manifest_path):
        manifest_path.write_text("<packages>")
        with pytest.raises(ConfigError):
            PackagesManifest.load(manifest_path)


class TestAddPackage:
    """Tests for adding entries."""

    def test_newer_version_replaces_older(self, manifest_path, caplog):
        manifest = PackagesManifest(manifest_path, [PackageIdentifier("A", "1.0")])

        with caplog.at_level(logging.WARNING):
            manifest.add_package(PackageIdentifier("A", "2.0"))

        assert manifest.packages == [PackageIdentifier("A", "2.0")]
        assert "Updating to 2.0" in caplog.text

    def test_older_version_is_ignored(self, manifest_path, caplog):
        manifest = PackagesManifest(manifest_path, [PackageIdentifier("A", "2.0")])

        with caplog.at_level(logging.WARNING):
            manifest.add_package(PackageIdentifier("a", "1.0"))

        assert manifest.packages == [PackageIdentifier("A", "2.0")]
        assert "already listed, so using that" in caplog.text

    def test_same_version_is_not_duplicated(self, manifest_path):
        manifest = PackagesManifest(manifest_path, [PackageIdentifier("A", "1.0")])
        manifest.add_package(PackageIdentifier("A", "1.0"))
        assert len(manifest) == 1

    def test_stores_plain_identifier(self, manifest_path):
        manifest = PackagesManifest(manifest_path)
        manifest.add_package(Package(id="A", version="1.0", description="metadata"))

        assert type(manifest.packages[0]) is PackageIdentifier


class TestRemoveAndSave:
    """Tests for removal and persistence."""

    def test_remove_requires_exact_version(self, manifest_path):
        manifest = PackagesManifest(manifest_path, [PackageIdentifier("A", "1.0")])

        assert not manifest.remove_package(PackageIdentifier("A", "2.0"))
        assert manifest.remove_package(PackageIdentifier("A", "1.0"))
        assert len(manifest) == 0

    def test_save_sorts_entries(self, manifest_path):
        manifest = PackagesManifest(
            manifest_path,
            [PackageIdentifier("Zeta", "1.0"), PackageIdentifier("Alpha", "3.0")],
        )
        manifest.save()

        reloaded = PackagesManifest.load(manifest_path)
        assert [p.id for p in reloaded.packages] == ["Alpha", "Zeta"]

    def test_save_orders_versions_numerically(self, manifest_path):
        manifest = PackagesManifest(
            manifest_path,
            [
                PackageIdentifier("B", "1.0"),
                PackageIdentifier("A", "1.10"),
                PackageIdentifier("A", "1.9"),
            ],
        )
        manifest.save()

        reloaded = PackagesManifest.load(manifest_path)
        assert [str(p) for p in reloaded.packages] == ["A.1.9", "A.1.10", "B.1.0"]

    def test_snapshot_is_independent(self, manifest_path):
        manifest = PackagesManifest(manifest_path, [PackageIdentifier("A", "1.0")])
        snapshot = manifest.snapshot()
        manifest.add_package(PackageIdentifier("B", "1.0"))

        assert snapshot == [PackageIdentifier("A", "1.0")]
