"""Persistent list of plugin repositories.

Repositories are stored in ``<plugins root>/repositories.yml``, grouped by
host so the file stays short and easy to edit by hand:

    # Terminus plugin repositories
    #
    # List of well-known or custom plugin Git repositories
    ---
    https://github.com:
    - org/terminus-plugins
"""

import os
import tempfile
from pathlib import Path
import structlog
import yaml

from tpm.errors import (
    AlreadyExistsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from tpm.validator import Validator, has_sub_path, split_host_path

log = structlog.get_logger()

HEADER = (
    "# Terminus plugin repositories\n"
    "#\n"
    "# List of well-known or custom plugin Git repositories\n"
    "---"
)

RepositoryMap = dict[str, list[str]]


class RepositoryStore:
    """Reads and writes the repositories file.

    Every mutation re-reads the file first, so manual edits made between
    invocations are picked up. Writes replace the file atomically.
    """

    def __init__(self, path: Path, validator: Validator):
        """Initialize the store.

        Args:
            path: Location of repositories.yml
            validator: Used by add() to check that a URL is live
        """
        self.path = Path(path)
        self.validator = validator

    def load(self) -> RepositoryMap:
        """Load the repository map, creating a header-only file if absent.

        Raises:
            PersistenceError: If the file cannot be read or is malformed
        """
        if not self.path.exists():
            self._write(HEADER)
            log.info("repositories_file_created", path=str(self.path))
            return {}

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Unable to read {self.path}: {e}") from e

        if content.rstrip("\n") == HEADER:
            return {}

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise PersistenceError(f"Unable to parse {self.path}: {e}") from e

        return _coerce_map(data, self.path)

    def list_urls(self) -> list[str]:
        """Flatten the map into full repository URLs, in file order."""
        return [
            f"{host}/{path}"
            for host, paths in self.load().items()
            for path in paths
        ]

    def add(self, url: str) -> bool:
        """Add a repository URL.

        Args:
            url: Repository URL, e.g. https://github.com/org

        Returns:
            True if added, False if the URL has no path and was ignored

        Raises:
            ValidationError: If the URL is not live
            AlreadyExistsError: If its host and path are already listed
            PersistenceError: If the file cannot be written
        """
        if not self.validator.is_live_url(url):
            raise ValidationError(f"{url} is not a valid URL.")

        host, path = split_host_path(url)
        repositories = self.load()
        if path in repositories.get(host, []):
            raise AlreadyExistsError(f"Unable to add {url}. Repository already added.")

        if not has_sub_path(url):
            log.info("repository_root_url_ignored", url=url)
            return False

        repositories.setdefault(host, []).append(path)
        self.persist(repositories, op="add")

        log.info("repository_added", url=url)
        return True

    def remove(self, url: str) -> None:
        """Remove a repository URL.

        Raises:
            NotFoundError: If the URL is not listed
            PersistenceError: If the file cannot be written
        """
        repositories = self.load()
        for host, paths in repositories.items():
            for path in paths:
                if f"{host}/{path}" == url:
                    paths.remove(path)
                    self.persist(repositories, op="remove")
                    log.info("repository_removed", url=url)
                    return

        raise NotFoundError(f"Unable to remove {url}. Repository does not exist.")

    def persist(self, repositories: RepositoryMap, op: str = "save") -> None:
        """Write the header and the map, replacing the whole file.

        Hosts without paths are dropped.

        Raises:
            PersistenceError: If the file cannot be written
        """
        body = {host: list(paths) for host, paths in repositories.items() if paths}
        content = HEADER + "\n"
        if body:
            content += yaml.safe_dump(body, sort_keys=False, default_flow_style=False)

        try:
            self._write(content)
        except PersistenceError as e:
            raise PersistenceError(f"Unable to {op} plugin repository.\n{e}") from e

    def _write(self, content: str) -> None:
        """Atomically replace the file with ``content``."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".repositories.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            log.error("repositories_write_failed", path=str(self.path), error=str(e))
            raise PersistenceError(str(e)) from e


def _coerce_map(data, path: Path) -> RepositoryMap:
    """Validate the parsed YAML body and normalize it to host -> [paths]."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PersistenceError(f"{path} must contain a mapping of hosts to paths")

    repositories: RepositoryMap = {}
    for host, paths in data.items():
        if paths is None:
            paths = []
        elif isinstance(paths, str):
            paths = [paths]
        elif not isinstance(paths, list):
            raise PersistenceError(f"{path}: entries for {host} must be a list")
        repositories[str(host)] = [str(p) for p in paths]
    return repositories
