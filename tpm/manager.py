"""Plugin lifecycle management.

Installs, lists, updates and removes plugins in the plugins root, and
manages the repositories used for discovery. Each operation works through
its arguments one at a time: a failing item is recorded in the returned
report and the remaining items are still processed.

A plugin is in one of three states:
- absent: no directory in the plugins root
- installed via sync: directory with a ``.git`` inside, updatable with pull
- installed otherwise: directory without sync metadata, cannot be updated
"""

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence
import structlog

from tpm.config import TpmConfig
from tpm.errors import (
    AlreadyExistsError,
    NotFoundError,
    SyncError,
    UsageError,
    ValidationError,
)
from tpm.paths import PluginPaths
from tpm.registry import PluginRecord, RegistryClient
from tpm.repositories import RepositoryStore
from tpm.sync import GitSync, RepositorySync
from tpm.validator import Validator, is_url, split_plugin_url

log = structlog.get_logger()

INSTALL_USAGE = (
    "Usage: terminus plugin install | add plugin-name-1 |"
    " <URL to plugin Git repository 1> [plugin-name-2 |"
    " <URL to plugin Git repository 2>] ..."
)
LEGACY_INSTALL_USAGE = (
    "Usage: terminus plugin install | add <URL to plugin Git repository 1>"
    " [<URL to plugin Git repository 2>] ..."
)
UPDATE_USAGE = "Usage: terminus plugin update | up all | plugin-name-1 [plugin-name-2] ..."
UNINSTALL_USAGE = "Usage: terminus plugin uninstall | remove plugin-name-1 [plugin-name-2] ..."
SEARCH_USAGE = "Usage: terminus plugin search plugin-name"
REPOSITORY_USAGE = (
    "Usage: terminus plugin repository | repo add | list | remove"
    " <URL to plugin Git repository 1> [<URL to plugin Git repository 2>] ..."
)

WIKI_URL = "https://github.com/pantheon-systems/terminus/wiki/Plugins"

REPOSITORY_COMMANDS = ("add", "list", "remove")


class Level(str, Enum):
    """Severity of a report entry."""

    NOTICE = "notice"
    ERROR = "error"


@dataclass
class ReportEntry:
    level: Level
    message: str


@dataclass
class Report:
    """Ordered messages produced by one manager operation.

    Attributes:
        entries: Notices and errors in the order they happened
        failed: True when the whole invocation was aborted
    """
    entries: list[ReportEntry] = field(default_factory=list)
    failed: bool = False

    def notice(self, message: str) -> None:
        self.entries.append(ReportEntry(Level.NOTICE, message))

    def error(self, message: str) -> None:
        self.entries.append(ReportEntry(Level.ERROR, message))

    def fail(self, message: str) -> None:
        """Record an error that aborts the rest of the invocation."""
        self.error(message)
        self.failed = True

    @property
    def notices(self) -> list[str]:
        return [e.message for e in self.entries if e.level == Level.NOTICE]

    @property
    def errors(self) -> list[str]:
        return [e.message for e in self.entries if e.level == Level.ERROR]

    @property
    def success(self) -> bool:
        return not self.failed and not self.errors


class PluginManager:
    """Installs, updates and removes plugins.

    In strict (legacy) mode ``install`` only accepts Git repository URLs,
    checks each page for the "terminus plugin" marker, and stops at the first
    invalid URL instead of skipping it.

    Example:
        manager = PluginManager(TpmConfig.from_env())
        report = manager.install(["https://github.com/org/terminus-hello-plugin"])
        for entry in report.entries:
            print(entry.level.value, entry.message)
    """

    def __init__(
        self,
        config: TpmConfig,
        paths: Optional[PluginPaths] = None,
        store: Optional[RepositoryStore] = None,
        validator: Optional[Validator] = None,
        registry: Optional[RegistryClient] = None,
        sync: Optional[RepositorySync] = None,
        strict: Optional[bool] = None,
    ):
        """Initialize the manager.

        Args:
            config: Plugin manager configuration
            paths: Path resolver (created from config if not provided)
            store: Repository store (created from config if not provided)
            validator: URL validator (created from config if not provided)
            registry: Registry client (created from config if not provided)
            sync: Repository sync (git with config.sync_timeout if not provided)
            strict: Override config.strict_install
        """
        self.config = config
        self.paths = paths or PluginPaths(config)
        self.validator = validator or Validator(config)
        self.store = store or RepositoryStore(self.paths.repositories_file, self.validator)
        self.registry = registry or RegistryClient(config)
        self.sync = sync or GitSync(timeout=config.sync_timeout)
        self.strict = config.strict_install if strict is None else strict

    def close(self) -> None:
        self.validator.close()
        self.registry.close()

    def __enter__(self) -> "PluginManager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, args: Sequence[str]) -> Report:
        """Install plugins by URL or by registry name.

        Args:
            args: Plugin Git repository URLs or plugin names

        Returns:
            Report of the installation

        Raises:
            UsageError: If no arguments were given
        """
        if not args:
            raise UsageError(LEGACY_INSTALL_USAGE if self.strict else INSTALL_USAGE)

        report = Report()
        if self.strict:
            self._install_strict(args, report)
            return report

        for arg in args:
            if is_url(arg):
                self._install_url(arg, report)
            else:
                self._install_by_name(arg, report)
        return report

    def _install_url(self, url: str, report: Report) -> None:
        repository, plugin = split_plugin_url(url)
        if not plugin or not self.validator.is_plugin_at(repository, plugin):
            log.info("plugin_url_invalid", url=url)
            report.error(f"{url} is not a valid plugin Git repository.")
            return

        target = self._target_dir(plugin, report)
        if target is None:
            return
        if target.is_dir():
            report.notice(f"{plugin} plugin already installed.")
            return

        self._add_repository(repository, report)
        self._clone(url, plugin, target, report)

    def _install_by_name(self, name: str, report: Report) -> None:
        records = self.registry.search(name)
        if not records:
            report.error(f"No plugins found matching {name}.")
            return

        for record in records:
            target = self._target_dir(record.package, report)
            if target is None:
                continue
            if target.is_dir():
                report.notice(f"{record.package} plugin already installed.")
                continue
            self._clone(record.clone_url, record.package, target, report)

    def _install_strict(self, args: Sequence[str], report: Report) -> None:
        for arg in args:
            if not is_url(arg) or not self.validator.has_plugin_marker(arg):
                log.info("plugin_url_invalid", url=arg, strict=True)
                report.fail(f"{arg} is not a valid plugin Git repository.")
                return

            _, plugin = split_plugin_url(arg)
            target = self._target_dir(plugin, report)
            if target is None:
                report.failed = True
                return
            if target.is_dir():
                report.notice(f"{plugin} plugin already installed.")
                continue
            self._clone(arg, plugin, target, report)

    def _clone(self, url: str, plugin: str, target: Path, report: Report) -> bool:
        try:
            output = self.sync.clone(url, target)
        except SyncError as e:
            for line in e.output:
                report.notice(line)
            log.info("plugin_install_failed", plugin=plugin, url=url, error=str(e))
            report.error(f"Unable to install {plugin} plugin. {e}")
            return False

        for line in output:
            report.notice(line)
        log.info("plugin_installed", plugin=plugin, url=url, path=str(target))
        report.notice(f"{plugin} plugin was installed successfully.")
        return True

    def _target_dir(self, plugin: str, report: Report) -> Optional[Path]:
        try:
            return self.paths.plugin_dir(plugin)
        except ValidationError as e:
            report.error(str(e))
            return None

    # ------------------------------------------------------------------
    # Show
    # ------------------------------------------------------------------

    def show(self) -> Report:
        """List installed plugins, with titles where a repository knows them."""
        report = Report()
        plugins = self.paths.installed_plugins()
        if not plugins:
            report.notice("No plugins installed.")
            return report

        repositories = self.store.list_urls()
        report.notice(f"Plugins are installed in {self.paths.root}.")
        report.notice("The following plugins are installed:")
        for plugin in plugins:
            report.notice(self.describe_plugin(plugin, repositories))
        report.notice("Use 'terminus plugin search' to find more plugins.")
        report.notice("Use 'terminus plugin install' to add more plugins.")
        return report

    def describe_plugin(self, plugin: str, repositories: Sequence[str]) -> str:
        """Display title for an installed plugin.

        The first repository hosting a live page for the plugin supplies the
        title; without one the plugin's directory name is used.
        """
        for repository in repositories:
            if self.validator.is_live_url(f"{repository}/{plugin}"):
                return self.validator.is_plugin_at(repository, plugin) or plugin
        return plugin

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, args: Sequence[str]) -> Report:
        """Pull the latest version of plugins.

        Args:
            args: ``["all"]`` or a list of installed plugin names

        Raises:
            UsageError: If no arguments were given
        """
        if not args:
            raise UsageError(UPDATE_USAGE)

        report = Report()
        if args[0] == "all":
            plugins = self.paths.installed_plugins()
            if not plugins:
                report.notice("No plugins installed.")
                return report
        else:
            plugins = list(args)

        for plugin in plugins:
            self._update_plugin(plugin, report)
        return report

    def _update_plugin(self, plugin: str, report: Report) -> None:
        target = self._target_dir(plugin, report)
        if target is None:
            return
        if not target.is_dir():
            report.error(f"{plugin} plugin is not installed.")
            return

        report.notice(f"Updating {plugin} plugin...")
        if not self.paths.has_sync_metadata(plugin):
            log.info("plugin_update_unmanaged", plugin=plugin)
            report.error(f"Unable to update {plugin} plugin. Git repository does not exist.")
            report.error(
                "The recommended way to install plugins"
                " is git clone <URL to plugin Git repository>."
            )
            report.error(f"See {WIKI_URL}.")
            return

        try:
            output = self.sync.pull(target)
        except SyncError as e:
            for line in e.output:
                report.notice(line)
            log.info("plugin_update_failed", plugin=plugin, error=str(e))
            report.error(f"Unable to update {plugin} plugin. {e}")
            return

        for line in output:
            report.notice(line)
        log.info("plugin_updated", plugin=plugin)

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, args: Sequence[str]) -> Report:
        """Remove installed plugins.

        Raises:
            UsageError: If no arguments were given
        """
        if not args:
            raise UsageError(UNINSTALL_USAGE)

        report = Report()
        for plugin in args:
            target = self._target_dir(plugin, report)
            if target is None:
                continue
            if not target.is_dir():
                report.error(f"{plugin} plugin is not installed.")
                continue

            try:
                shutil.rmtree(target)
            except OSError as e:
                log.info("plugin_uninstall_failed", plugin=plugin, error=str(e))
                report.error(f"Unable to remove {plugin} plugin. {e}")
                continue

            log.info("plugin_uninstalled", plugin=plugin, path=str(target))
            report.notice(f"{plugin} plugin was removed successfully.")
        return report

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, args: Sequence[str]) -> tuple[Report, list[PluginRecord]]:
        """Search the registry for plugins.

        Args:
            args: Exactly one partial or complete plugin name

        Returns:
            Tuple of (report, matching records)

        Raises:
            UsageError: Unless exactly one argument was given
        """
        if len(args) != 1:
            raise UsageError(SEARCH_USAGE)

        report = Report()
        records = self.registry.search(args[0])
        if not records:
            report.notice("No plugins were found.")
        else:
            report.notice("The following plugins were found:")
        return report, records

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def repository(self, subcommand: Optional[str], args: Sequence[str] = ()) -> Report:
        """Add, list or remove plugin repositories.

        Args:
            subcommand: "add", "list" or "remove"
            args: Repository URLs for add/remove

        Raises:
            UsageError: On an unknown subcommand or missing URLs
            PersistenceError: If the repositories file cannot be written
        """
        if subcommand not in REPOSITORY_COMMANDS:
            raise UsageError(REPOSITORY_USAGE)
        if subcommand != "list" and not args:
            raise UsageError(REPOSITORY_USAGE)

        report = Report()
        if subcommand == "add":
            for url in args:
                self._add_repository(url, report)
        elif subcommand == "remove":
            for url in args:
                self._remove_repository(url, report)
        else:
            self._list_repositories(report)
        return report

    def _add_repository(self, url: str, report: Report) -> None:
        try:
            added = self.store.add(url)
        except ValidationError as e:
            report.error(str(e))
            return
        except AlreadyExistsError as e:
            report.notice(str(e))
            return

        if added:
            report.notice("Plugin repository was added successfully.")
        else:
            report.notice(f"Unable to add {url}. Repository URL has no path.")

    def _remove_repository(self, url: str, report: Report) -> None:
        try:
            self.store.remove(url)
        except NotFoundError as e:
            report.notice(str(e))
            return
        report.notice("Plugin repository was removed successfully.")

    def _list_repositories(self, report: Report) -> None:
        urls = self.store.list_urls()
        if not urls:
            report.error("No plugin repositories exist.")
            return

        report.notice(f"Plugin repositories are stored in {self.store.path}.")
        report.notice("The following plugin repositories are available:")
        for url in urls:
            report.notice(url)
        report.notice(
            "The 'terminus plugin show' command looks up plugin titles in these repositories."
        )
