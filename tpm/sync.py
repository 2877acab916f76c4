"""Repository sync: cloning and pulling plugin repositories.

The manager only depends on the ``RepositorySync`` protocol, so tests can
substitute an in-memory fake for the git-backed implementation.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol
import structlog

from tpm.errors import SyncError

log = structlog.get_logger()


class RepositorySync(Protocol):
    """Clones and updates plugin repositories."""

    def clone(self, url: str, dest_dir: Path) -> list[str]:
        """Clone ``url`` into ``dest_dir``, returning the output lines."""
        ...

    def pull(self, repo_dir: Path) -> list[str]:
        """Pull the latest changes in ``repo_dir``, returning the output lines."""
        ...


class GitSync:
    """RepositorySync backed by the git command line client."""

    def __init__(self, git: str = "git", timeout: Optional[float] = None):
        """Initialize git sync.

        Args:
            git: git executable name or path
            timeout: Seconds to wait for a git command (None waits forever)
        """
        self.git = git
        self.timeout = timeout

    def available(self) -> bool:
        """Check if git is available."""
        return shutil.which(self.git) is not None

    def clone(self, url: str, dest_dir: Path) -> list[str]:
        """Clone a plugin repository.

        Args:
            url: Git repository URL
            dest_dir: Directory to clone into (must not exist)

        Returns:
            Output lines printed by git

        Raises:
            SyncError: If git is missing or the clone fails
        """
        Path(dest_dir).parent.mkdir(parents=True, exist_ok=True)
        log.info("git_clone", url=url, dest=str(dest_dir))
        return self._run(["clone", url, str(dest_dir)], action="clone")

    def pull(self, repo_dir: Path) -> list[str]:
        """Pull the latest changes of a cloned plugin.

        Raises:
            SyncError: If git is missing or the pull fails
        """
        log.info("git_pull", path=str(repo_dir))
        return self._run(["-C", str(repo_dir), "pull"], action="pull")

    def _run(self, args: list[str], action: str) -> list[str]:
        cmd = [self.git, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
                env=_git_env(),
            )
        except FileNotFoundError as e:
            raise SyncError("git command not found. Please install git.") from e
        except subprocess.TimeoutExpired as e:
            raise SyncError(f"git {action} timed out after {self.timeout} seconds") from e

        output = _lines(result.stdout) + _lines(result.stderr)

        if result.returncode != 0:
            log.warning("git_failed", action=action, returncode=result.returncode)
            raise SyncError(f"git {action} failed (exit {result.returncode})", output)

        return output


def _git_env() -> dict:
    # Never block on a credential prompt for private or missing repositories
    return {**os.environ, "GIT_TERMINAL_PROMPT": "0"}


def _lines(text: Optional[str]) -> list[str]:
    return [line.rstrip() for line in (text or "").splitlines() if line.strip()]
