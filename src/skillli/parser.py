"""
SKILL.md parsing.

A skill file is UTF-8 text that starts with a ``---`` fenced YAML
frontmatter block followed by the markdown body.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

from .constants import SKILL_FILENAME
from .errors import SkillValidationError
from .models import ParsedSkill
from .schema import validate_metadata

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?(.*)\Z",
    re.DOTALL | re.MULTILINE,
)


def split_frontmatter(text: str) -> Tuple[str, str]:
    """Return ``(raw_frontmatter, body)``; frontmatter is empty when absent."""
    text = text.lstrip("\ufeff")
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return "", text
    return match.group(1), match.group(2)


def _load_frontmatter(raw_frontmatter: str, file_path: str) -> Any:
    if not raw_frontmatter.strip():
        return {}
    try:
        return yaml.safe_load(raw_frontmatter)
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML frontmatter in %s: %s", file_path, exc)
        raise SkillValidationError(
            f"Invalid YAML frontmatter in {file_path}", [f"<frontmatter>: {exc}"]
        ) from exc


def parse_skill_content(text: str, file_path: str = "<inline>") -> ParsedSkill:
    """Parse and validate the text of a SKILL.md file."""
    raw_frontmatter, body = split_frontmatter(text)
    data = _load_frontmatter(raw_frontmatter, file_path)
    metadata = validate_metadata(data)
    return ParsedSkill(
        metadata=metadata,
        content=body.strip(),
        raw_frontmatter=raw_frontmatter,
        file_path=file_path,
    )


def parse_skill_file(path: Union[str, Path]) -> ParsedSkill:
    """Read and parse a SKILL.md file from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SkillValidationError(f"Cannot read skill file {path}", [str(exc)]) from exc
    skill = parse_skill_content(text, str(path))
    logger.debug("Parsed skill %r from %s", skill.metadata.name, path)
    return skill


def parse_skill_directory(directory: Union[str, Path]) -> ParsedSkill:
    """Parse the SKILL.md at the root of a skill bundle directory."""
    skill_file = Path(directory) / SKILL_FILENAME
    if not skill_file.is_file():
        raise SkillValidationError(f"No {SKILL_FILENAME} found in {directory}")
    return parse_skill_file(skill_file)


def extract_manifest(skill: ParsedSkill) -> Dict[str, Any]:
    """Build the registry-facing manifest for a parsed skill."""
    meta = skill.metadata
    now = datetime.now(timezone.utc).isoformat()
    return {
        "name": meta.name,
        "version": meta.version,
        "description": meta.description,
        "author": meta.author,
        "license": meta.license,
        "tags": list(meta.tags),
        "category": meta.category.value if meta.category else None,
        "repository": meta.repository,
        "trust_level": meta.trust_level.value,
        "checksum": meta.checksum,
        "created_at": now,
        "updated_at": now,
    }
