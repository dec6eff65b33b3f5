"""
Skill metadata normalisation and validation.

Raw frontmatter goes through three ordered layers before it becomes a
``SkillMetadata``:

1. registry fields extracted from the ``metadata`` sub-map,
2. top-level frontmatter fields (always win over layer 1),
3. model defaults (``trust-level: community``, ``user-invocable: true`` ...).

Validation failures are collected into a single ``SkillValidationError``
whose details read ``"<field path>: <reason>"``.
"""

import logging
import re
from typing import Annotated, Any, Dict, List, Mapping, Optional, Set, Union

from pydantic import AnyUrl, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .constants import MAX_TAG_LENGTH, MAX_TAGS
from .errors import SkillValidationError
from .models import (
    FrontmatterModel,
    Quiz,
    SkillCategory,
    SkillMetadata,
    TrustLevel,
)

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# metadata sub-map key -> frontmatter key it feeds
_METADATA_FIELD_KEYS: Dict[str, str] = {
    "version": "version",
    "author": "author",
    "category": "category",
    "trust-level": "trust-level",
    "repository": "repository",
    "homepage": "homepage",
    "min-skillli-version": "min-skillli-version",
    "min-client-version": "min-skillli-version",
    "license": "license",
    "tags": "tags",
}


# ─── Layer resolution ─────────────────────────────────────────────────────────


def extract_metadata_fields(metadata: Any) -> Dict[str, Any]:
    """Pull known registry keys out of a frontmatter ``metadata`` map."""
    if not isinstance(metadata, Mapping):
        return {}
    extracted: Dict[str, Any] = {}
    for source_key, target_key in _METADATA_FIELD_KEYS.items():
        if source_key in metadata and target_key not in extracted:
            extracted[target_key] = metadata[source_key]
    return extracted


def resolve_layers(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge the metadata sub-map layer under the top-level layer.

    Known top-level keys whose value is ``None`` (an empty YAML key) do not
    shadow a value from the sub-map; unknown keys pass through unchanged.
    The ``metadata`` map itself is kept as-is so downstream consumers
    still see it.
    """
    known = _frontmatter_keys()
    layers = [
        extract_metadata_fields(raw.get("metadata")),
        {
            key: value
            for key, value in raw.items()
            if value is not None or key not in known
        },
    ]
    resolved: Dict[str, Any] = {}
    for layer in layers:
        resolved.update(layer)
    return resolved


def normalize_tags(value: Any) -> List[str]:
    """Accept a list of strings or a comma-separated string.

    Raises ``ValueError`` when the result exceeds the tag limits.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: List[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ValueError("must be a list of strings or a comma-separated string")

    tags: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise ValueError(f"tag {item!r} is not a string")
        tag = item.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"tag {tag[:20]!r}... exceeds {MAX_TAG_LENGTH} characters")
        tags.append(tag)

    if len(tags) > MAX_TAGS:
        raise ValueError(f"at most {MAX_TAGS} tags allowed, got {len(tags)}")
    return tags


_URL_ADAPTER = TypeAdapter(AnyUrl)


# ─── Frontmatter model ────────────────────────────────────────────────────────


class SkillFrontmatter(FrontmatterModel):
    """Resolved frontmatter as written (kebab-case keys)."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    name: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=1024)

    license: Optional[str] = None
    compatibility: Optional[
        Union[Annotated[str, Field(max_length=500)], List[str]]
    ] = None
    metadata: Optional[Dict[str, str]] = None
    allowed_tools: Optional[Union[str, List[str]]] = None

    argument_hint: Optional[str] = None
    disable_model_invocation: bool = False
    user_invocable: bool = True
    model: Optional[str] = None
    context: Optional[str] = None
    agent: Optional[str] = None
    hooks: Optional[Any] = None

    version: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[SkillCategory] = None
    repository: Optional[str] = None
    homepage: Optional[str] = None
    min_required_client_version: Optional[str] = Field(
        None, alias="min-skillli-version"
    )
    trust_level: TrustLevel = TrustLevel.COMMUNITY
    checksum: Optional[str] = None

    quiz: List[Quiz] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise PydanticCustomError(
                "skill_name",
                "must be lowercase alphanumeric with single hyphens, "
                "no leading, trailing or consecutive hyphens",
            )
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SEMVER_PATTERN.match(value):
            raise PydanticCustomError(
                "semver", "must be valid semver (major.minor.patch)"
            )
        return value

    @field_validator("repository", "homepage")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError as exc:
            raise PydanticCustomError("url", "must be a valid URL") from exc
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> List[str]:
        try:
            return normalize_tags(value)
        except ValueError as exc:
            raise PydanticCustomError("tags", str(exc)) from exc

    @field_validator("quiz", mode="before")
    @classmethod
    def _wrap_single_quiz(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return [value]
        return value


def _frontmatter_keys() -> Set[str]:
    """Every key ``SkillFrontmatter`` declares, by alias and by name."""
    keys: Set[str] = set()
    for name, field in SkillFrontmatter.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
    return keys


# ─── Public API ───────────────────────────────────────────────────────────────


def _format_issue(error: Mapping[str, Any]) -> str:
    path = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
    return f"{path}: {error.get('msg', 'invalid value')}"


def validate_metadata(raw: Any) -> SkillMetadata:
    """Validate raw frontmatter and return the canonical ``SkillMetadata``.

    Raises ``SkillValidationError`` listing every violated field.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise SkillValidationError(
            "Invalid skill metadata",
            [f"<root>: frontmatter must be a mapping, got {type(raw).__name__}"],
        )

    try:
        frontmatter = SkillFrontmatter.model_validate(resolve_layers(raw))
    except ValidationError as exc:
        details = [_format_issue(err) for err in exc.errors()]
        logger.debug("Metadata validation failed: %s", details)
        raise SkillValidationError("Invalid skill metadata", details) from exc

    known = frontmatter.model_dump(include=set(SkillFrontmatter.model_fields))
    return SkillMetadata(**known, extensions=dict(frontmatter.model_extra or {}))
