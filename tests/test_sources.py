"""Tests for querying local and remote package sources."""

import base64
import logging

import httpx
import pytest

from nupack.core.credentials import Credential, CredentialCache
from nupack.core.feed import FeedClient
from nupack.core.sources import SourceQueryEngine, sort_updates
from nupack.models import Package, PackageIdentifier, PackageSource

from conftest import make_nupkg
from feeds import atom_entry, atom_feed

FEED_URL = "https://feed.example.org/api/v2"


def remote_queries(handler, credentials: CredentialCache | None = None) -> SourceQueryEngine:
    client = FeedClient(credentials=credentials, transport=httpx.MockTransport(handler))
    return SourceQueryEngine(client)


def feed_response(*versions: tuple[str, str]) -> httpx.Response:
    return httpx.Response(200, text=atom_feed(*(atom_entry(i, v) for i, v in versions)))


@pytest.fixture
def local_source(feed):
    return PackageSource("Local", str(feed))


@pytest.fixture
def remote_source():
    return PackageSource("Remote", FEED_URL)


class TestLocalFindPackagesById:
    """Tests for find_packages_by_id against a directory."""

    def test_exact_version_reads_single_file(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "2.0.0")

        found = SourceQueryEngine().find_packages_by_id(
            local_source, PackageIdentifier("Acme.Core", "1.0.0")
        )

        assert [p.version for p in found] == ["1.0.0"]
        assert found[0].source is local_source

    def test_exact_version_missing(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "2.0.0")
        found = SourceQueryEngine().find_packages_by_id(
            local_source, PackageIdentifier("Acme.Core", "1.0.0")
        )
        assert found == []

    def test_range_returns_matching_versions_oldest_first(self, feed, local_source):
        for version in ("2.0.0", "1.0.0", "1.5.0", "1.6.0-beta"):
            make_nupkg(feed, "Acme.Core", version)
        make_nupkg(feed, "Acme.Core.Extensions", "1.2.0")

        found = SourceQueryEngine().find_packages_by_id(
            local_source, PackageIdentifier("Acme.Core", "[1.0,2.0)")
        )

        assert [p.version for p in found] == ["1.0.0", "1.5.0", "1.6.0-beta"]
        assert {p.id for p in found} == {"Acme.Core"}

    def test_specific_package_prefers_highest_in_range(self, feed, local_source):
        for version in ("1.0.0", "1.5.0", "2.0.0"):
            make_nupkg(feed, "Acme.Core", version)

        package = SourceQueryEngine().get_specific_package(
            local_source, PackageIdentifier("Acme.Core", "[1.0,2.0)")
        )
        assert package.version == "1.5.0"

    def test_unparseable_version_is_skipped(self, feed, local_source, caplog):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "1.x.0")

        with caplog.at_level(logging.WARNING):
            found = SourceQueryEngine().find_packages_by_id(
                local_source, PackageIdentifier("Acme.Core", "[1.0,)")
            )

        assert [p.version for p in found] == ["1.0.0"]
        assert "Ignoring Acme.Core 1.x.0" in caplog.text


class TestLocalSearch:
    """Tests for searching a directory."""

    def test_newest_version_per_id(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "1.10.0")
        make_nupkg(feed, "Acme.Core", "1.9.0")
        make_nupkg(feed, "Other", "3.0.0")

        results = SourceQueryEngine().search(local_source, "acme")

        assert [(p.id, p.version) for p in results] == [("Acme.Core", "1.10.0")]

    def test_prerelease_excluded_unless_requested(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "2.0.0-rc1")
        queries = SourceQueryEngine()

        assert queries.search(local_source)[0].version == "1.0.0"
        assert queries.search(local_source, include_prerelease=True)[0].version == "2.0.0-rc1"

    def test_all_versions(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "2.0.0")

        results = SourceQueryEngine().search(local_source, include_all_versions=True)
        assert len(results) == 2

    def test_later_pages_are_empty(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        assert SourceQueryEngine().search(local_source, offset=15) == []

    def test_missing_directory(self, tmp_path, caplog):
        source = PackageSource("Gone", str(tmp_path / "missing"))
        with caplog.at_level(logging.ERROR):
            assert SourceQueryEngine().search(source) == []
        assert "Local folder not found" in caplog.text

    def test_unreadable_archive_is_skipped(self, feed, local_source):
        (feed / "Broken.1.0.0.nupkg").write_bytes(b"garbage")
        make_nupkg(feed, "Acme.Core", "1.0.0")

        results = SourceQueryEngine().search(local_source)
        assert [p.id for p in results] == ["Acme.Core"]

    def test_unparseable_version_does_not_hide_newest(self, feed, local_source, caplog):
        make_nupkg(feed, "Acme.Core", "0.x")
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "1.2.0")

        with caplog.at_level(logging.WARNING):
            results = SourceQueryEngine().search(local_source, "acme")

        assert [(p.id, p.version) for p in results] == [("Acme.Core", "1.2.0")]
        assert "Ignoring Acme.Core 0.x" in caplog.text

    def test_search_all_removes_duplicates(self, feed, tmp_path, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        mirror = tmp_path / "mirror"
        make_nupkg(mirror, "Acme.Core", "1.0.0")

        results = SourceQueryEngine().search_all([local_source, PackageSource("Mirror", str(mirror))])
        assert len(results) == 1


class TestLocalUpdates:
    """Tests for get_updates against a directory."""

    def test_newer_versions_only(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "1.5.0")
        make_nupkg(feed, "Acme.Core", "2.0.0")
        make_nupkg(feed, "Other", "1.0.0")
        installed = [PackageIdentifier("Acme.Core", "1.0.0"), PackageIdentifier("Other", "1.0.0")]

        updates = SourceQueryEngine().get_updates(local_source, installed, include_all_versions=True)

        assert [(p.id, p.version) for p in updates] == [
            ("Acme.Core", "2.0.0"),
            ("Acme.Core", "1.5.0"),
        ]

    def test_unparseable_versions_are_ignored(self, feed, local_source):
        make_nupkg(feed, "Acme.Core", "1.0.0")
        make_nupkg(feed, "Acme.Core", "2.0.0")
        make_nupkg(feed, "Acme.Core", "2.x")

        updates = SourceQueryEngine().get_updates(
            local_source, [PackageIdentifier("acme.core", "1.0.0")]
        )

        assert [(p.id, p.version) for p in updates] == [("Acme.Core", "2.0.0")]


class TestRemoteQueries:
    """Tests for OData queries against a remote feed."""

    def test_find_packages_by_id_query(self, remote_source):
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response(("Acme.Core", "1.0.0"))

        found = remote_queries(handler).find_packages_by_id(
            remote_source, PackageIdentifier("Acme.Core", "1.0.0")
        )

        assert [p.version for p in found] == ["1.0.0"]
        assert found[0].source is remote_source
        url = requests[0].url
        assert url.path == "/api/v2/FindPackagesById()"
        assert url.params["id"] == "'Acme.Core'"
        assert url.params["$orderby"] == "Version asc"
        assert url.params["$filter"] == "Version eq '1.0.0'"

    def test_range_query_has_no_filter(self, remote_source):
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response(("Acme.Core", "1.0.0"), ("Acme.Core", "2.0.0"), ("Acme.Core", "3.0.0"))

        found = remote_queries(handler).find_packages_by_id(
            remote_source, PackageIdentifier("Acme.Core", "[1.0,3.0)")
        )

        assert "$filter" not in requests[0].url.params
        assert [p.version for p in found] == ["1.0.0", "2.0.0"]

    def test_range_query_skips_unparseable_versions(self, remote_source, caplog):
        def handler(request):
            return feed_response(("Acme.Core", "1.0.0"), ("Acme.Core", "1.x.0"), ("Acme.Core", "2.0.0"))

        with caplog.at_level(logging.WARNING):
            found = remote_queries(handler).find_packages_by_id(
                remote_source, PackageIdentifier("Acme.Core", "[1.0,)")
            )

        assert [p.version for p in found] == ["1.0.0", "2.0.0"]
        assert "Ignoring Acme.Core 1.x.0" in caplog.text

    def test_search_query(self, remote_source):
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response(("Acme.Core", "1.0.0"))

        results = remote_queries(handler).search(remote_source, "acme", limit=30, offset=30)

        params = requests[0].url.params
        assert requests[0].url.path == "/api/v2/Search()"
        assert params["$filter"] == "IsLatestVersion"
        assert params["$orderby"] == "DownloadCount desc"
        assert params["$skip"] == "30"
        assert params["$top"] == "30"
        assert params["searchTerm"] == "'acme'"
        assert params["includePrerelease"] == "false"
        assert results[0].id == "Acme.Core"

    def test_search_prerelease_filter(self, remote_source):
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response()

        remote_queries(handler).search(remote_source, include_prerelease=True)
        assert requests[0].url.params["$filter"] == "IsAbsoluteLatestVersion"

    def test_server_error_gives_empty_result(self, remote_source, caplog):
        with caplog.at_level(logging.ERROR):
            results = remote_queries(lambda request: httpx.Response(500)).search(remote_source)

        assert results == []
        assert "Unable to retrieve package list" in caplog.text

    def test_connection_error_gives_empty_result(self, remote_source):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        found = remote_queries(handler).find_packages_by_id(
            remote_source, PackageIdentifier("Acme.Core", "1.0.0")
        )
        assert found == []

    def test_updates_are_batched(self, remote_source):
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response()

        installed = [PackageIdentifier(f"Package{i}", "1.0") for i in range(12)]
        remote_queries(handler).get_updates(remote_source, installed)

        assert len(requests) == 2
        first_ids = requests[0].url.params["packageIds"].strip("'").split("|")
        assert len(first_ids) == 10
        assert requests[1].url.params["packageIds"] == "'Package10|Package11'"
        assert requests[1].url.params["versions"] == "'1.0|1.0'"

    def test_updates_fall_back_when_get_updates_is_missing(self, remote_source):
        def handler(request):
            if request.url.path.endswith("GetUpdates()"):
                return httpx.Response(404)
            return feed_response(
                ("Acme.Core", "1.0.0"),
                ("Acme.Core", "1.5.0"),
                ("Acme.Core", "2.0.0-beta"),
                ("Acme.Core", "2.0.0"),
            )

        updates = remote_queries(handler).get_updates(
            remote_source, [PackageIdentifier("Acme.Core", "1.0.0")]
        )

        assert [p.version for p in updates] == ["2.0.0"]

    def test_updates_skip_unparseable_versions(self, remote_source, caplog):
        def handler(request):
            return feed_response(("Acme.Core", "2.0.0"), ("Acme.Core", "2.0.0.0.x"))

        with caplog.at_level(logging.WARNING):
            updates = remote_queries(handler).get_updates_all(
                [remote_source], [PackageIdentifier("Acme.Core", "1.0.0")]
            )

        assert [p.version for p in updates] == ["2.0.0"]
        assert "Ignoring Acme.Core 2.0.0.0.x" in caplog.text

    def test_saved_password_is_sent(self):
        source = PackageSource("Private", FEED_URL, user_name="alice", saved_password="secret")
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response()

        remote_queries(handler).search(source)

        expected = base64.b64encode(b"alice:secret").decode()
        assert requests[0].headers["authorization"] == f"Basic {expected}"

    def test_cached_credentials_are_sent(self, remote_source):
        credentials = CredentialCache(lambda feed: Credential("bob", "pw"))
        requests = []

        def handler(request):
            requests.append(request)
            return feed_response()

        remote_queries(handler, credentials).search(remote_source)

        expected = base64.b64encode(b"bob:pw").decode()
        assert requests[0].headers["authorization"] == f"Basic {expected}"


class TestLocate:
    """Tests for locating a package across sources."""

    @pytest.fixture
    def sources(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        make_nupkg(first, "Acme.Core", "1.0.0")
        make_nupkg(first, "Acme.Core", "2.0.0")
        make_nupkg(second, "Acme.Core", "3.0.0")
        return [PackageSource("First", str(first)), PackageSource("Second", str(second))]

    def test_exact_match_wins(self, sources):
        package = SourceQueryEngine().locate(sources, PackageIdentifier("Acme.Core", "1.0.0"))
        assert package.version == "1.0.0"
        assert package.source.name == "First"

    def test_highest_in_range_across_sources(self, sources):
        package = SourceQueryEngine().locate(sources, PackageIdentifier("Acme.Core", "[1.0,)"))
        assert package.version == "3.0.0"
        assert package.source.name == "Second"

    def test_not_found(self, sources):
        assert SourceQueryEngine().locate(sources, PackageIdentifier("Missing", "1.0")) is None


def test_sort_updates_orders_newest_first_within_id():
    packages = [
        Package(id="B", version="1.0"),
        Package(id="A", version="1.0"),
        Package(id="A", version="2.0"),
    ]
    assert [str(p) for p in sort_updates(packages)] == ["A.2.0", "A.1.0", "B.1.0"]


def test_sort_updates_drops_unparseable_versions():
    packages = [Package(id="A", version="1.0"), Package(id="A", version="one")]
    assert [str(p) for p in sort_updates(packages)] == ["A.1.0"]
