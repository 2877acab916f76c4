"""Tests for URL validation and plugin identity checks."""

import pytest

from tpm.validator import (
    extract_title,
    has_sub_path,
    is_likely_terminus_plugin,
    is_url,
    split_host_path,
    split_plugin_url,
)


# =============================================================================
# URL helpers
# =============================================================================


@pytest.mark.parametrize(
    "value,expected",
    [
        ("https://github.com/org", True),
        ("http://example.com", True),
        ("github.com/org", False),
        ("ftp://example.com/x", False),
        ("terminus-hello-plugin", False),
        ("", False),
    ],
)
def test_is_url(value, expected):
    assert is_url(value) is expected


def test_has_sub_path():
    assert has_sub_path("https://github.com/org")
    assert not has_sub_path("https://github.com")
    assert not has_sub_path("https://github.com/")


def test_split_host_path():
    assert split_host_path("https://example.com/org/repo") == ("https://example.com", "org/repo")
    assert split_host_path("http://localhost:8080/x") == ("http://localhost:8080", "x")


def test_split_plugin_url():
    assert split_plugin_url("https://github.com/org/terminus-hello-plugin") == (
        "https://github.com/org",
        "terminus-hello-plugin",
    )
    assert split_plugin_url("https://github.com/org/terminus-hello-plugin.git/") == (
        "https://github.com/org",
        "terminus-hello-plugin",
    )


def test_extract_title():
    assert extract_title("<html><title>Terminus &amp; Plugin</title></html>") == "Terminus & Plugin"
    assert extract_title("<title>one</title><title>two</title>") == "one"
    assert extract_title("<html>no title</html>") is None


@pytest.mark.parametrize(
    "title,expected",
    [
        ("GitHub - org/terminus-hello-plugin", True),
        ("TERMINUS PLUGIN manager", True),
        ("My Plugin", False),
        ("terminus docs", False),
        ("", False),
    ],
)
def test_is_likely_terminus_plugin(title, expected):
    assert is_likely_terminus_plugin(title) is expected


# =============================================================================
# Validator network checks
# =============================================================================


class TestIsLiveUrl:
    """Tests for Validator.is_live_url."""

    def test_ok(self, validator, web):
        web.add("https://example.com/repoA")
        assert validator.is_live_url("https://example.com/repoA") is True
        assert web.requests[0].method == "HEAD"

    def test_not_found(self, validator, web):
        web.add("https://example.com/missing", status=404)
        assert validator.is_live_url("https://example.com/missing") is False

    def test_redirect_not_followed(self, validator, web):
        web.add("https://example.com/old", status=301, headers={"location": "https://example.com/new"})
        web.add("https://example.com/new")
        assert validator.is_live_url("https://example.com/old") is False

    def test_unreachable(self, validator):
        assert validator.is_live_url("https://nowhere.example.org/x") is False

    def test_not_a_url(self, validator, web):
        assert validator.is_live_url("") is False
        assert validator.is_live_url("not a url") is False
        assert web.requests == []

    def test_head_not_allowed_falls_back_to_get(self, config):
        import httpx
        from tpm.validator import Validator

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(405)
            return httpx.Response(200, text="ok")

        client = httpx.Client(transport=httpx.MockTransport(handler))
        assert Validator(config, client=client).is_live_url("https://example.com/x") is True


class TestIsPluginAt:
    """Tests for Validator.is_plugin_at."""

    def test_plugin_title(self, validator, web):
        web.add_plugin_page(
            "https://github.com/org/terminus-hello-plugin",
            "GitHub - org/terminus-hello-plugin: A Terminus plugin",
        )
        title = validator.is_plugin_at("https://github.com/org", "terminus-hello-plugin")
        assert title == "GitHub - org/terminus-hello-plugin: A Terminus plugin"

    def test_title_without_keywords(self, validator, web):
        web.add_plugin_page("https://github.com/org/other", "GitHub - org/other")
        assert validator.is_plugin_at("https://github.com/org", "other") == ""

    def test_page_without_title(self, validator, web):
        web.add("https://github.com/org/bare", "terminus plugin")
        assert validator.is_plugin_at("https://github.com/org", "bare") == ""

    def test_root_repository_rejected(self, validator, web):
        web.add_plugin_page("https://github.com/terminus-plugin", "terminus plugin")
        assert validator.is_plugin_at("https://github.com", "terminus-plugin") == ""
        assert web.requests == []

    def test_non_url_rejected(self, validator):
        assert validator.is_plugin_at("github.com/org", "x") == ""

    def test_error_status(self, validator, web):
        web.add("https://github.com/org/gone", "<title>terminus plugin</title>", status=404)
        assert validator.is_plugin_at("https://github.com/org", "gone") == ""

    def test_unreachable(self, validator):
        assert validator.is_plugin_at("https://nowhere.example.org/org", "x") == ""


class TestHasPluginMarker:
    """Tests for the legacy marker check."""

    def test_marker_present(self, validator, web):
        web.add("https://github.com/org/p", "<p>A Terminus Plugin for sites</p>")
        assert validator.has_plugin_marker("https://github.com/org/p") is True

    def test_marker_missing(self, validator, web):
        web.add("https://github.com/org/p", "<p>Something else</p>")
        assert validator.has_plugin_marker("https://github.com/org/p") is False

    def test_unreachable(self, validator):
        assert validator.has_plugin_marker("https://nowhere.example.org/p") is False
