"""Configuration for the module cache, project layout and remote hosts"""

import configparser
import os
import platform
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from pathlib import Path

APP_NAME = "gitmod"
SECTION = APP_NAME
ENV_PREFIX = "GITMOD_"

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")


default_cfg = {
    "cache_home": "~/.modules",
    "modules_local": "modules",
    "search_api_host": "api.github.com",
    "protocol": "git",
    "host": "github.com",
    "default_branch": "master",
    "log_file": f"{APP_NAME}.log",
    "network_timeout": "600",
    "self_repo": f"{APP_NAME}/{APP_NAME}",
    "verbose": "false",
}

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/gitmod").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    A dict-like accessor for configuration files.

    Missing sections or keys fall back to the supplied default instead of
    raising.

    Usage:
        config = ConfigAccessor()
        value = config.get('gitmod', 'cache_home', default='~/.modules')
    """

    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None:
            self.config_path = get_config_file()
        else:
            self.config_path = config_path

        self.config = configparser.ConfigParser()
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default

    def set(self, section: str, key: str, value: str) -> None:
        if not self.config.has_section(section):
            self.config.add_section(section)

        self.config[section][key] = value

    def save(self) -> None:
        """
        Save the current configuration to the config file.

        Fails gracefully if the file cannot be written (e.g., read-only filesystem).
        """
        import logging

        logger = logging.getLogger(__name__)

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as configfile:
                self.config.write(configfile)
        except (OSError, IOError) as e:
            logger.warning(
                f"Could not save configuration to {self.config_path}: {e}. "
                "Configuration changes will not persist."
            )


# Create a global config accessor instance
config = ConfigAccessor()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Resolved configuration used by every command."""

    cache_home: Path
    modules_local: str
    search_api_host: str
    protocol: str
    host: str
    default_branch: str
    log_file: str
    network_timeout: Optional[float]
    self_repo: str
    verbose: bool = False


def _lookup(
    key: str, accessor: ConfigAccessor, environ: Mapping[str, str]
) -> str:
    env_value = environ.get(ENV_PREFIX + key.upper())
    if env_value is not None and env_value != "":
        return env_value
    return accessor.get(SECTION, key, default_cfg[key])


def load_settings(
    accessor: Optional[ConfigAccessor] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """
    Build Settings with the precedence overrides > environment > config file > defaults.

    Args:
        accessor: Config file accessor (defaults to the global one)
        environ: Environment mapping (defaults to os.environ)
        **overrides: Explicit values, e.g. verbose=True from the command line

    Returns:
        Frozen Settings instance
    """
    if accessor is None:
        accessor = config
    if environ is None:
        environ = os.environ

    values = {key: _lookup(key, accessor, environ) for key in default_cfg}

    timeout = float(values["network_timeout"])
    settings = Settings(
        cache_home=Path(values["cache_home"]).expanduser(),
        modules_local=values["modules_local"].strip("/"),
        search_api_host=values["search_api_host"],
        protocol=values["protocol"],
        host=values["host"].rstrip("/"),
        default_branch=values["default_branch"],
        log_file=values["log_file"],
        network_timeout=timeout if timeout > 0 else None,
        self_repo=values["self_repo"],
        verbose=_as_bool(values["verbose"]),
    )

    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        settings = replace(settings, **overrides)
    return settings
