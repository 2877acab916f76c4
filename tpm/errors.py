"""Error types for the plugin manager.

Per-item failures (a bad URL, a plugin that is not installed) are caught by
the manager and recorded in its report so sibling items keep processing.
Usage and persistence errors abort the whole invocation and are turned into
a failure exit status by the CLI.
"""

from typing import Optional


class TpmError(Exception):
    """Base exception for plugin manager errors."""

    pass


class UsageError(TpmError):
    """Missing or invalid command arguments.

    The message is the usage string for the command.
    """

    pass


class ValidationError(TpmError):
    """A URL failed the liveness or plugin identity check."""

    pass


class NotFoundError(TpmError):
    """A referenced plugin or repository does not exist locally."""

    pass


class AlreadyExistsError(TpmError):
    """A plugin is already installed or a repository is already listed.

    Treated as a no-op, never as a failure.
    """

    pass


class PersistenceError(TpmError):
    """The repositories file could not be read or written."""

    pass


class SyncError(TpmError):
    """A repository sync (clone or pull) failed.

    Attributes:
        output: Lines the sync process printed before failing
    """

    def __init__(self, message: str, output: Optional[list[str]] = None):
        super().__init__(message)
        self.output = output or []
