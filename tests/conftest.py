"""Shared test fixtures."""

import json
import pytest
import tempfile
from pathlib import Path

import httpx

from tpm.config import TpmConfig
from tpm.errors import SyncError
from tpm.manager import PluginManager
from tpm.registry import RegistryClient
from tpm.validator import Validator


class FakeWeb:
    """In-memory web served through httpx.MockTransport.

    Unknown URLs behave like unreachable hosts.
    """

    def __init__(self):
        self.pages: dict[str, tuple[int, str, dict]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, body: str = "", status: int = 200, headers: dict = None):
        self.pages[url.rstrip("/")] = (status, body, headers or {})

    def add_json(self, url: str, data, status: int = 200):
        self.add(url, json.dumps(data), status, {"content-type": "application/json"})

    def add_plugin_page(self, url: str, title: str):
        self.add(url, f"<html><head><title>{title}</title></head><body></body></html>")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = str(request.url).rstrip("/")
        if key not in self.pages:
            raise httpx.ConnectError("host unreachable", request=request)
        status, body, headers = self.pages[key]
        return httpx.Response(status, text=body, headers=headers)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


class FakeSync:
    """RepositorySync that creates directories instead of running git."""

    def __init__(self):
        self.cloned: list[tuple[str, Path]] = []
        self.pulled: list[Path] = []
        self.fail_clone = False
        self.fail_pull = False

    def clone(self, url: str, dest_dir: Path) -> list[str]:
        if self.fail_clone:
            raise SyncError("git clone failed (exit 128)", ["fatal: repository not found"])
        dest_dir.mkdir(parents=True)
        (dest_dir / ".git").mkdir()
        self.cloned.append((url, dest_dir))
        return [f"Cloning into '{dest_dir.name}'..."]

    def pull(self, repo_dir: Path) -> list[str]:
        if self.fail_pull:
            raise SyncError("git pull failed (exit 1)", ["fatal: no remote"])
        self.pulled.append(repo_dir)
        return ["Already up to date."]


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def config(temp_dir):
    """Test configuration with the plugins root inside temp_dir."""
    return TpmConfig(
        plugins_root_override=temp_dir / "plugins",
        home_dir=temp_dir / "home",
        is_windows=False,
    )


@pytest.fixture
def plugins_root(config):
    root = Path(config.plugins_root_override)
    root.mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def web():
    return FakeWeb()


@pytest.fixture
def fake_sync():
    return FakeSync()


@pytest.fixture
def validator(config, web):
    return Validator(config, client=web.client())


@pytest.fixture
def registry(config, web):
    return RegistryClient(config, client=web.client())


@pytest.fixture
def manager(config, validator, registry, fake_sync):
    """PluginManager wired to the fake web and fake sync."""
    return PluginManager(
        config,
        validator=validator,
        registry=registry,
        sync=fake_sync,
    )


@pytest.fixture
def registry_endpoint(config):
    return config.registry_endpoint
