"""Tests for the plugin registry client."""

from tpm.registry import PluginRecord


LISTING = {
    "terminus-cache-plugin": {
        "repo": "https://github.com/org-a",
        "title": "Cache plugin",
        "description": "Clears caches",
        "creator": "Ann",
        "creator_email": "ann@example.com",
    },
    "terminus-deploy-plugin": {
        "repo": "https://github.com/org-b",
        "title": "Deploy plugin",
        "description": "Deploys things",
        "creator": "Bo",
        "creator_email": "bo@example.com",
    },
    "terminus-cache-warmer": {
        "repo": "https://github.com/org-c",
        "title": "Cache warmer",
        "description": "Warms caches",
        "creator": "Cy",
        "creator_email": "",
    },
}


class TestPluginRecord:
    """Tests for PluginRecord."""

    def test_from_dict_uses_id_as_package(self):
        record = PluginRecord.from_dict("terminus-cache-plugin", LISTING["terminus-cache-plugin"])
        assert record.package == "terminus-cache-plugin"
        assert record.title == "Cache plugin"
        assert record.repo == "https://github.com/org-a"
        assert record.author == "Ann <ann@example.com>"

    def test_explicit_package_field(self):
        record = PluginRecord.from_dict("-Kx1", {"package": "hello", "repo": "https://x.io/o"})
        assert record.package == "hello"

    def test_author_without_email(self):
        assert PluginRecord(package="p", creator="Cy").author == "Cy"

    def test_clone_url_from_repository_base(self):
        record = PluginRecord(package="hello", repo="https://github.com/org/")
        assert record.clone_url == "https://github.com/org/hello"

    def test_clone_url_when_repo_is_the_plugin(self):
        record = PluginRecord(package="hello", repo="https://github.com/org/hello.git")
        assert record.clone_url == "https://github.com/org/hello.git"


class TestSearch:
    """Tests for RegistryClient.search."""

    def test_filters_by_id(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, LISTING)

        results = registry.search("cache")

        assert [r.package for r in results] == ["terminus-cache-plugin", "terminus-cache-warmer"]
        assert all("cache" in r.package for r in results)

    def test_regex_pattern(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, LISTING)
        results = registry.search("^terminus-(deploy|cache)-plugin$")
        assert [r.package for r in results] == ["terminus-cache-plugin", "terminus-deploy-plugin"]

    def test_invalid_regex_is_literal(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, {"odd[name": {"repo": "https://x.io/o"}})
        assert [r.package for r in registry.search("odd[")] == ["odd[name"]

    def test_same_repo_last_match_wins(self, registry, web, registry_endpoint):
        web.add_json(
            registry_endpoint,
            {
                "cache-one": {"repo": "https://github.com/shared", "title": "first"},
                "cache-two": {"repo": "https://github.com/shared", "title": "second"},
                "other": {"repo": "https://github.com/shared", "title": "not matched"},
            },
        )

        results = registry.search("cache")

        assert len(results) == 1
        assert results[0].package == "cache-two"
        assert results[0].title == "second"

    def test_entries_without_repo_skipped(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, {"cache-x": {"title": "no repo"}, "cache-y": "junk"})
        assert registry.search("cache") == []

    def test_no_matches(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, LISTING)
        assert registry.search("nothing-like-this") == []

    def test_unreachable_registry(self, registry):
        assert registry.search("cache") == []

    def test_error_status(self, registry, web, registry_endpoint):
        web.add_json(registry_endpoint, {"error": "denied"}, status=401)
        assert registry.search("cache") == []

    def test_empty_listing(self, registry, web, registry_endpoint):
        """Firebase returns null for an empty path."""
        web.add(registry_endpoint, "null")
        assert registry.search("cache") == []

    def test_invalid_json(self, registry, web, registry_endpoint):
        web.add(registry_endpoint, "<html>oops</html>")
        assert registry.search("cache") == []
