"""Client for the remote plugin registry.

The registry is a key-value listing service (Firebase REST) that returns a
JSON object mapping opaque IDs to plugin records:

    {
      "terminus-hello-plugin": {
        "repo": "https://github.com/org",
        "title": "Hello plugin",
        "description": "Says hello",
        "creator": "Jane Doe",
        "creator_email": "jane@example.com"
      }
    }
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit
import httpx
import structlog

from tpm.config import TpmConfig

log = structlog.get_logger()


@dataclass
class PluginRecord:
    """A plugin found in the registry.

    Attributes:
        package: Plugin package name (the registry ID unless the record names one)
        title: Human readable title
        description: Short description
        creator: Author name
        creator_email: Author email
        repo: Source repository URL
    """
    package: str
    title: str = ""
    description: str = ""
    creator: str = ""
    creator_email: str = ""
    repo: str = ""

    @property
    def author(self) -> str:
        if self.creator_email:
            return f"{self.creator} <{self.creator_email}>".strip()
        return self.creator

    @property
    def clone_url(self) -> str:
        """URL to clone the plugin from.

        ``repo`` is usually the repository base the plugin lives under. When it
        already points at the plugin itself it is used as is.
        """
        repo = self.repo.rstrip("/")
        last = urlsplit(repo).path.rstrip("/").rpartition("/")[2]
        if last.endswith(".git"):
            last = last[: -len(".git")]
        if last == self.package:
            return repo
        return f"{repo}/{self.package}"

    @classmethod
    def from_dict(cls, plugin_id: str, data: dict) -> "PluginRecord":
        """Create from a registry entry."""
        return cls(
            package=str(data.get("package") or plugin_id),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            creator=str(data.get("creator") or ""),
            creator_email=str(data.get("creator_email") or ""),
            repo=str(data.get("repo") or ""),
        )


class RegistryClient:
    """Searches the remote plugin registry.

    Every search downloads the whole listing; the registry is small.

    Example:
        registry = RegistryClient(config)
        for record in registry.search("cache"):
            print(record.package, record.clone_url)
    """

    def __init__(self, config: TpmConfig, client: Optional[httpx.Client] = None):
        """Initialize the registry client.

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
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def fetch_listing(self) -> dict:
        """Download the full registry listing.

        Returns:
            Mapping of plugin ID to record dict; empty on any failure
        """
        url = self.config.registry_endpoint
        try:
            response = self.client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("registry_fetch_failed", url=url, error=str(e))
            return {}

        if not isinstance(data, dict):
            log.warning("registry_listing_invalid", url=url, type=type(data).__name__)
            return {}

        log.debug("registry_fetched", url=url, count=len(data))
        return data

    def search(self, pattern: str) -> list[PluginRecord]:
        """Find registry entries whose ID matches a pattern.

        Matches are keyed by their source repository; when two entries share
        a repository the later one wins.

        Args:
            pattern: Regular expression (or plain substring) to look for in IDs

        Returns:
            Matching PluginRecords in listing order
        """
        matcher = _compile(pattern)
        found: dict[str, PluginRecord] = {}

        for plugin_id, data in self.fetch_listing().items():
            if not matcher.search(str(plugin_id)):
                continue
            if not isinstance(data, dict) or not data.get("repo"):
                log.debug("registry_entry_skipped", plugin_id=plugin_id)
                continue
            record = PluginRecord.from_dict(str(plugin_id), data)
            found[record.repo] = record

        log.info("registry_searched", pattern=pattern, count=len(found))
        return list(found.values())


def _compile(pattern: str) -> re.Pattern:
    """Compile a search pattern, treating invalid regexes as literals."""
    try:
        return re.compile(pattern)
    except re.error:
        return re.compile(re.escape(pattern))
