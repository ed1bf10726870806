"""Application-wide configuration constants and the INI config loader."""

import configparser
import logging
from pathlib import Path

from pydantic import BaseModel

from lanlauncher.errors import ConfigError

logger = logging.getLogger(__name__)

# --- Discovery ---
CLIENT_SERVICE_TYPE = "_oe-doom-client._udp"
HOST_SERVICE_TYPE = "_oe-doom-host._udp"
DISCOVERY_DOMAIN = "local"

WAD_KEY = "wad"
CAN_HOST_KEY = "can-host"

RESOLVE_TIMEOUT = 3.0  # seconds

# --- Identity ---
APP_ID = "oe-zdoom-launcher-v1"
MACHINE_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))

# --- Defaults ---
DEFAULT_CONFIG_PATH = "/etc/oe-zdoom/config.ini"
DEFAULT_ZDOOM = "zdoom"
DEFAULT_PORT = 5029
DEFAULT_MP_WAD = "freedm.wad"
DEFAULT_MP_MAP = "MAP01"
DEFAULT_SP_WAD = "freedoom1.wad"
DEFAULT_SOURCE_WAIT = 30  # seconds of discovery silence before an election
DEFAULT_TERMINATE_TIMEOUT = 5.0  # seconds

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8766


class LauncherConfig(BaseModel):
    """Effective launcher settings."""
    port: int = DEFAULT_PORT
    zdoom: str = DEFAULT_ZDOOM
    mp_wad: str = DEFAULT_MP_WAD
    mp_map: str = DEFAULT_MP_MAP
    mp_config: str | None = None
    sp_wad: str = DEFAULT_SP_WAD
    sp_config: str | None = None
    can_host: bool = True
    source_wait: float = DEFAULT_SOURCE_WAIT
    terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT

    api_enabled: bool = True
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT


# (section, key, field) for plain string settings
_STRING_KEYS = [
    ("launcher", "zdoom", "zdoom"),
    ("multiplayer", "wad", "mp_wad"),
    ("multiplayer", "map", "mp_map"),
    ("multiplayer", "config", "mp_config"),
    ("singleplayer", "wad", "sp_wad"),
    ("singleplayer", "config", "sp_config"),
    ("api", "host", "api_host"),
]

# Non-positive or non-numeric values leave the default in place
_POSITIVE_INT_KEYS = [
    ("multiplayer", "port", "port"),
    ("multiplayer", "wait", "source_wait"),
    ("launcher", "terminate-timeout", "terminate_timeout"),
    ("api", "port", "api_port"),
]


def _positive_int(parser: configparser.ConfigParser, section: str, key: str) -> int | None:
    try:
        value = parser.getint(section, key, fallback=None)
    except ValueError:
        logger.warning(f"Ignoring non-integer [{section}] {key}")
        return None
    if value is None or value <= 0:
        return None
    return value


def _flag(parser: configparser.ConfigParser, section: str, key: str, default: bool) -> bool:
    try:
        return parser.getboolean(section, key, fallback=default)
    except ValueError:
        logger.warning(f"Invalid boolean for [{section}] {key}, using {default}")
        return default


def parse_config(text: str, source: str = "<string>") -> LauncherConfig:
    """Build a LauncherConfig from INI text.

    Raises ConfigError when the text is not valid INI.
    """
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read_string(text, source=source)
    except configparser.Error as e:
        raise ConfigError(f"Cannot parse {source}: {e}") from e

    values = {}
    for section, key, field in _STRING_KEYS:
        value = parser.get(section, key, fallback=None)
        if value is not None:
            values[field] = value

    for section, key, field in _POSITIVE_INT_KEYS:
        value = _positive_int(parser, section, key)
        if value is not None:
            values[field] = value

    values["can_host"] = _flag(parser, "multiplayer", "can-host", True)
    values["api_enabled"] = _flag(parser, "api", "enabled", True)

    return LauncherConfig(**values)


def load_config(path: str | None = None) -> LauncherConfig:
    """
    Load the launcher configuration.

    An unreadable file at an explicitly requested path is an error, while a
    missing default file just means defaults apply.
    """
    config_path = path or DEFAULT_CONFIG_PATH
    try:
        text = Path(config_path).read_text(encoding="utf-8")
    except OSError as e:
        if config_path == DEFAULT_CONFIG_PATH:
            logger.warning(f"Cannot open {config_path}: {e}. Using defaults.")
            return LauncherConfig()
        raise ConfigError(f"Cannot open {config_path}: {e}") from e

    config = parse_config(text, source=config_path)
    logger.info(f"Loaded configuration from {config_path}")
    return config
