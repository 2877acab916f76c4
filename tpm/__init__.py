"""tpm - Terminus plugin manager.

Installs, updates, removes and discovers Terminus plugins, and keeps the
list of plugin repositories used for discovery.
"""

__version__ = "1.0.0"

from tpm.config import TpmConfig
from tpm.manager import PluginManager, Report

__all__ = [
    "__version__",
    "PluginManager",
    "Report",
    "TpmConfig",
]
