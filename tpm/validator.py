"""URL liveness and plugin identity checks.

The identity check scrapes the ``<title>`` of a repository web page and
looks for the words "terminus" and "plugin". It is a best-effort heuristic
for catching typos, not a security boundary.
"""

import html
import re
from typing import Optional
from urllib.parse import urlsplit
import httpx
import structlog

from tpm.config import TpmConfig

log = structlog.get_logger()

TITLE_PATTERN = re.compile(r"<title>(.*?)</title>")

# Phrase the legacy installer looks for anywhere on the repository page
PLUGIN_MARKER = "terminus plugin"


def is_url(value: str) -> bool:
    """Check whether a string is an absolute http(s) URL."""
    if not value:
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def has_sub_path(url: str) -> bool:
    """Check whether a URL has a path beyond the root."""
    return urlsplit(url).path not in ("", "/")


def split_host_path(url: str) -> tuple[str, str]:
    """Split a URL into ``scheme://host`` and the path without leading slash.

    Example:
        split_host_path("https://example.com/org/repo")
        # ("https://example.com", "org/repo")
    """
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}", parts.path[1:]


def split_plugin_url(url: str) -> tuple[str, str]:
    """Split a plugin URL into its repository base and plugin name.

    The last path segment is the plugin name, with any ``.git`` suffix
    removed; everything before it is the repository.

    Example:
        split_plugin_url("https://github.com/org/terminus-hello-plugin.git")
        # ("https://github.com/org", "terminus-hello-plugin")
    """
    parts = urlsplit(url)
    path, _, plugin = parts.path.rstrip("/").rpartition("/")
    if plugin.endswith(".git"):
        plugin = plugin[: -len(".git")]
    return f"{parts.scheme}://{parts.netloc}{path}", plugin


def is_likely_terminus_plugin(title: str) -> bool:
    """Heuristic: a plugin page title mentions both terminus and plugin."""
    lowered = title.lower()
    return "terminus" in lowered and "plugin" in lowered


def extract_title(page: str) -> Optional[str]:
    """Return the first HTML ``<title>`` text, or None if there is none."""
    match = TITLE_PATTERN.search(page)
    if not match:
        return None
    return html.unescape(match.group(1)).strip()


class Validator:
    """Checks remote URLs with bounded HTTP requests.

    Network failures never raise: they make a URL look dead.

    Example:
        with Validator(config) as validator:
            validator.is_live_url("https://github.com/org")
            validator.is_plugin_at("https://github.com/org", "hello")
    """

    def __init__(self, config: TpmConfig, client: Optional[httpx.Client] = None):
        """Initialize the validator.

        Args:
            config: Plugin manager configuration
            client: HTTP client to use (created from config if not provided)
        """
        self.config = config
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.config.http_timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Validator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def is_live_url(self, url: str) -> bool:
        """Check whether a URL answers with HTTP 200.

        Redirects are not followed: only the first response counts.

        Args:
            url: URL to check

        Returns:
            True if the server responded 200
        """
        if not is_url(url):
            return False

        try:
            response = self.client.head(url, follow_redirects=False)
            if response.status_code == 405:
                response = self.client.get(url, follow_redirects=False)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.debug("url_check_failed", url=url, error=str(e))
            return False

        log.debug("url_checked", url=url, status=response.status_code)
        return response.status_code == 200

    def fetch_page(self, url: str) -> str:
        """Fetch a page body, following redirects.

        Returns:
            Page text, or "" on any failure or non-2xx status
        """
        try:
            response = self.client.get(url, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.debug("page_fetch_failed", url=url, error=str(e))
            return ""

        if not response.is_success:
            log.debug("page_fetch_status", url=url, status=response.status_code)
            return ""
        return response.text

    def is_plugin_at(self, repository: str, plugin: str) -> str:
        """Check whether ``repository/plugin`` looks like a Terminus plugin.

        Args:
            repository: Repository base URL (must have a sub-path)
            plugin: Plugin name

        Returns:
            The page title if it names a Terminus plugin, else ""
        """
        if not is_url(repository) or not has_sub_path(repository):
            return ""

        page = self.fetch_page(f"{repository.rstrip('/')}/{plugin}")
        if not page:
            return ""

        title = extract_title(page)
        if title and is_likely_terminus_plugin(title):
            return title
        return ""

    def has_plugin_marker(self, url: str) -> bool:
        """Check whether a page mentions "terminus plugin" anywhere."""
        if not is_url(url):
            return False
        page = self.fetch_page(url)
        return bool(page) and PLUGIN_MARKER in page.lower()
