"""Configuration for the plugin manager with validation."""

import os
from pathlib import Path
from typing import Mapping, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
import structlog

log = structlog.get_logger()

PLUGINS_DIR_ENV = "TERMINUS_PLUGINS_DIR"
LOG_LEVEL_ENV = "TPM_LOG_LEVEL"

DEFAULT_REGISTRY_URL = "https://terminus-plugins.firebaseio.com/"
DEFAULT_REGISTRY_PATH = "/plugins"


class TpmConfig(BaseModel):
    """Settings for path resolution, network access and install policy.

    Everything the manager would otherwise read from the environment lives
    here so tests can build a config pointing at a temporary directory.
    """

    model_config = ConfigDict(validate_assignment=True)

    # Paths
    plugins_root_override: Optional[Path] = None
    home_dir: Path = Field(default_factory=Path.home)
    is_windows: bool = Field(default_factory=lambda: os.name == "nt")

    # Registry
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_path: str = DEFAULT_REGISTRY_PATH

    # Network
    http_timeout: float = Field(gt=0, le=300, default=5.0)
    user_agent: str = "tpm-plugin-manager"

    # Seconds a git clone or pull may take
    sync_timeout: float = Field(gt=0, default=300.0)

    # Install policy: fail the whole invocation on the first invalid URL
    strict_install: bool = False

    # Logging
    log_level: str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR)$")
    log_file: Optional[Path] = None

    @field_validator("registry_url")
    @classmethod
    def registry_url_is_http(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("registry_url must be an http(s) URL")
        return v

    @field_validator("registry_path")
    @classmethod
    def registry_path_is_absolute(cls, v):
        if not v.startswith("/"):
            v = "/" + v
        return v.rstrip("/") or "/"

    @field_validator("log_level", mode="before")
    @classmethod
    def log_level_upper(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def registry_endpoint(self) -> str:
        """Full URL of the registry listing (Firebase REST wants ``.json``)."""
        return self.registry_url.rstrip("/") + self.registry_path + ".json"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "TpmConfig":
        """Build a config from environment variables.

        ``TERMINUS_PLUGINS_DIR`` overrides the plugins root. Without it the
        root lives under the user's home directory, which on Windows is
        ``HOME`` inside an MSYS/MinGW shell and ``HOMEDRIVE``+``HOMEPATH``
        everywhere else.

        Args:
            environ: Environment mapping (defaults to ``os.environ``)
            **overrides: Field values taking precedence over the environment

        Returns:
            TpmConfig instance
        """
        env = os.environ if environ is None else environ
        is_windows = overrides.pop("is_windows", os.name == "nt")

        data: dict = {"is_windows": is_windows}

        override = env.get(PLUGINS_DIR_ENV)
        if override:
            data["plugins_root_override"] = Path(override).expanduser()

        home = _home_from_env(env, is_windows)
        if home:
            data["home_dir"] = Path(home)

        if env.get(LOG_LEVEL_ENV):
            data["log_level"] = env[LOG_LEVEL_ENV]

        data.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**data)
        log.debug(
            "config_from_env",
            plugins_root_override=str(config.plugins_root_override or ""),
            home_dir=str(config.home_dir),
            is_windows=config.is_windows,
        )
        return config


def _home_from_env(env: Mapping[str, str], is_windows: bool) -> Optional[str]:
    """Pick the home directory the way terminus does on each platform."""
    if not is_windows:
        return env.get("HOME")

    system = env.get("MSYSTEM", "")[:4].upper()
    if system == "MING" and env.get("HOME"):
        return env["HOME"]

    homepath = env.get("HOMEPATH")
    if not homepath:
        return env.get("USERPROFILE")
    return env.get("HOMEDRIVE", "") + homepath
