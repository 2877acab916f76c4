"""Plugin storage directory resolution."""

from pathlib import Path
import structlog

from tpm.config import TpmConfig
from tpm.errors import ValidationError

log = structlog.get_logger()

REPOSITORIES_FILE = "repositories.yml"
SYNC_METADATA_DIR = ".git"


class PluginPaths:
    """Resolves the plugins root and the directories beneath it.

    Every installed plugin is a subdirectory of the root. A nested ``.git``
    directory means the plugin was cloned and can be updated with a pull.

    Example:
        paths = PluginPaths(TpmConfig.from_env())
        paths.root                  # ~/terminus/plugins
        paths.plugin_dir("hello")   # ~/terminus/plugins/hello
        paths.installed_plugins()   # ["hello", ...]
    """

    def __init__(self, config: TpmConfig):
        """Initialize the resolver.

        Args:
            config: Plugin manager configuration
        """
        self.config = config

    @property
    def root(self) -> Path:
        """The plugins root, created if it does not exist yet."""
        if self.config.plugins_root_override is not None:
            root = Path(self.config.plugins_root_override).expanduser()
        else:
            root = Path(self.config.home_dir) / "terminus" / "plugins"

        try:
            root.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            log.warning("plugins_root_create_failed", path=str(root), error=str(e))

        return root

    @property
    def repositories_file(self) -> Path:
        return self.root / REPOSITORIES_FILE

    def plugin_dir(self, name: str = "") -> Path:
        """Get the directory for a plugin.

        Args:
            name: Plugin name (empty for the root itself)

        Returns:
            Path to the plugin directory

        Raises:
            ValidationError: If the name would point outside the root
        """
        if not name:
            return self.root
        check_plugin_name(name)
        return self.root / name

    def installed_plugins(self) -> list[str]:
        """List installed plugin names, sorted, hidden entries excluded."""
        root = self.root
        if not root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def is_installed(self, name: str) -> bool:
        return self.plugin_dir(name).is_dir()

    def has_sync_metadata(self, name: str) -> bool:
        return (self.plugin_dir(name) / SYNC_METADATA_DIR).is_dir()


def check_plugin_name(name: str) -> str:
    """Reject plugin names that are not a single plain path component.

    Args:
        name: Plugin name

    Returns:
        The name, unchanged

    Raises:
        ValidationError: If the name is empty, hidden, or contains separators
    """
    if (
        not name
        or name.startswith(".")
        or "/" in name
        or "\\" in name
        or name != Path(name).name
    ):
        raise ValidationError(f"{name!r} is not a valid plugin name.")
    return name
