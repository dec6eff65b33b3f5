"""
Central settings for skillli.

Reads configuration from ``~/.config/skillli/config.toml`` (POSIX) or
``%APPDATA%/skillli/config.toml`` (Windows).  Environment variables
override config-file values.

Usage::

    from .settings import get_settings
    settings = get_settings()
    print(settings.registry_url)
"""

import logging
import os
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .constants import DEFAULT_REGISTRY_URL, LOCAL_INDEX_PATH

logger = logging.getLogger(__name__)

# Use stdlib tomllib on 3.11+, tomli on older versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

_VALID_SOURCES = ("registry", "github", "npm", "web")


def _default_config_dir() -> Path:
    """Return the platform-appropriate config directory."""
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming"))
        return Path(appdata) / "skillli"
    return Path.home() / ".config" / "skillli"


def _default_config_path() -> Path:
    return _default_config_dir() / "config.toml"


@dataclass
class Settings:
    """Resolved skillli settings (config file + env var overrides)."""

    # [registry]
    registry_url: str = DEFAULT_REGISTRY_URL
    index_path: Path = LOCAL_INDEX_PATH

    # [github]
    github_token: str = ""

    # [trawl]
    trawl_sources: List[str] = field(default_factory=lambda: ["registry", "github"])
    trawl_max_results: int = 10
    trawl_domains: List[str] = field(default_factory=list)
    request_timeout: float = 10.0

    # Path to the config file that was loaded (empty string if none)
    _config_file: str = ""


# Module-level singleton
_settings: Optional[Settings] = None


def _parse_sources(raw: object) -> List[str]:
    """Keep only known trawl source names, preserving order."""
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        return []
    sources: List[str] = []
    for entry in raw:
        name = str(entry).strip().lower()
        if name in _VALID_SOURCES and name not in sources:
            sources.append(name)
        elif name:
            logger.debug("ignoring unknown trawl source: %s", name)
    return sources


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from config file, then apply env var overrides."""
    settings = Settings()
    path = config_path or _default_config_path()

    # --- Read config file ---
    if path.is_file():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            settings._config_file = str(path)

            registry = data.get("registry", {})
            if registry.get("url"):
                settings.registry_url = str(registry["url"]).strip()
            if registry.get("index_path"):
                settings.index_path = Path(str(registry["index_path"])).expanduser()

            github = data.get("github", {})
            settings.github_token = str(github.get("token", "")).strip()

            trawl = data.get("trawl", {})
            sources = _parse_sources(trawl.get("sources"))
            if sources:
                settings.trawl_sources = sources
            if "max_results" in trawl:
                settings.trawl_max_results = int(trawl["max_results"])
            if "timeout" in trawl:
                settings.request_timeout = float(trawl["timeout"])
            domains = trawl.get("domains")
            if isinstance(domains, list):
                settings.trawl_domains = [str(d).strip() for d in domains if str(d).strip()]

            logger.debug("Loaded settings from %s", path)
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError):
            logger.warning("Failed to parse config file %s", path, exc_info=True)

    # --- Env var overrides (take priority over config file) ---
    env_registry = os.environ.get("SKILLLI_REGISTRY_URL", "").strip()
    if env_registry:
        settings.registry_url = env_registry

    env_token = os.environ.get("GITHUB_TOKEN", "").strip()
    if env_token:
        settings.github_token = env_token

    env_sources = _parse_sources(os.environ.get("SKILLLI_TRAWL_SOURCES", ""))
    if env_sources:
        settings.trawl_sources = env_sources

    env_timeout = os.environ.get("SKILLLI_TIMEOUT", "").strip()
    if env_timeout:
        try:
            settings.request_timeout = float(env_timeout)
        except ValueError:
            logger.warning("Ignoring non-numeric SKILLLI_TIMEOUT=%r", env_timeout)

    return settings


def get_settings() -> Settings:
    """Return the cached Settings singleton, loading on first call."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton so the next ``get_settings()`` reloads from disk."""
    global _settings
    _settings = None


# ---------------------------------------------------------------------------
# Default config template
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_TOML = """\
# skillli configuration

[registry]
# Remote catalog fetched by `skillli sync`
url = "https://raw.githubusercontent.com/skillli/registry/main/index.json"

[github]
# GitHub token for higher API rate limits during trawling
token = ""

[trawl]
# Sources queried by default: registry, github, npm, web
sources = ["registry", "github"]
max_results = 10
timeout = 10.0
# Hosts probed for /.well-known/skills/index.json when "web" is enabled
domains = []
"""
