"""
Shared constants for the skillli core.
"""

from pathlib import Path

VERSION = "0.1.0"

SKILLLI_DIR = Path.home() / ".skillli"
LOCAL_INDEX_PATH = SKILLLI_DIR / "index.json"

DEFAULT_REGISTRY_URL = "https://raw.githubusercontent.com/skillli/registry/main/index.json"

SKILL_FILENAME = "SKILL.md"

MAX_SKILL_SIZE_BYTES = 5 * 1024 * 1024  # 5 MiB
MAX_SKILL_MD_LINES = 500

MAX_TAGS = 20
MAX_TAG_LENGTH = 50

# Directories skipped when walking a skill bundle
IGNORED_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv"})

GITHUB_SEARCH_URL = "https://api.github.com/search/repositories"
NPM_SEARCH_URL = "https://registry.npmjs.org/-/v1/search"
WELL_KNOWN_SKILLS_PATH = "/.well-known/skills/index.json"

USER_AGENT = f"skillli/{VERSION}"
