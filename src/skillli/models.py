"""
Data models for the skillli core.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def to_kebab(name: str) -> str:
    """Frontmatter keys are the kebab-case form of attribute names."""
    return name.replace("_", "-")


class SkillCategory(str, Enum):
    """Registry categories for skills."""

    DEVELOPMENT = "development"
    CREATIVE = "creative"
    ENTERPRISE = "enterprise"
    DATA = "data"
    DEVOPS = "devops"
    OTHER = "other"


class TrustLevel(str, Enum):
    """Provenance tier of a skill."""

    COMMUNITY = "community"
    VERIFIED = "verified"
    OFFICIAL = "official"


class Severity(str, Enum):
    """Severity of a safeguard check."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class TrawlSource(str, Enum):
    """Sources the discovery trawler can query."""

    REGISTRY = "registry"
    GITHUB = "github"
    NPM = "npm"
    WEB = "web"


class MatchField(str, Enum):
    """Entry fields a search hit can match on."""

    NAME = "name"
    DESCRIPTION = "description"
    TAGS = "tags"
    CATEGORY = "category"


# ─── Quiz gates ───────────────────────────────────────────────────────────────


class FrontmatterModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_kebab, populate_by_name=True)


class QuizOption(FrontmatterModel):
    """A single answer option."""

    label: str = Field(min_length=1, description="Option text")
    correct: bool = Field(False, description="Whether this option is correct")


class QuizBranch(FrontmatterModel):
    """What happens after a question is answered."""

    goto: Optional[str] = Field(None, description="Section anchor to jump to")
    load_skill: Optional[str] = Field(None, description="Another skill to load")
    load_reference: Optional[str] = Field(
        None, description="Reference document to load"
    )
    message: Optional[str] = Field(None, description="Message to display")


class QuizQuestion(FrontmatterModel):
    """A multiple-choice comprehension question."""

    question: str = Field(min_length=1, description="Question text")
    options: List[QuizOption] = Field(min_length=2, description="Answer options")
    explanation: Optional[str] = Field(None, description="Shown after answering")
    on_correct: QuizBranch = Field(default_factory=QuizBranch)
    on_incorrect: QuizBranch = Field(default_factory=QuizBranch)


class Quiz(FrontmatterModel):
    """An optional comprehension check embedded in a skill."""

    title: Optional[str] = None
    description: Optional[str] = None
    gate: bool = Field(
        False, description="Must be answered before the rest of the body is used"
    )
    passing_score: int = Field(100, ge=0, le=100, description="Percent to pass")
    questions: List[QuizQuestion] = Field(min_length=1)


# ─── Skills ───────────────────────────────────────────────────────────────────


class SkillMetadata(BaseModel):
    """Canonical, fully-resolved skill description."""

    name: str = Field(description="Skill identity key")
    description: str = Field(description="What the skill does")

    license: Optional[str] = None
    compatibility: Optional[Union[str, List[str]]] = None
    allowed_tools: Optional[Union[str, List[str]]] = None
    metadata: Optional[Dict[str, str]] = Field(
        None, description="Open metadata map, preserved verbatim"
    )

    # Agent runtime extensions
    argument_hint: Optional[str] = None
    disable_model_invocation: bool = False
    user_invocable: bool = True
    model: Optional[str] = None
    context: Optional[str] = None
    agent: Optional[str] = None
    hooks: Optional[Any] = None

    # Registry extensions
    version: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[SkillCategory] = None
    repository: Optional[str] = None
    homepage: Optional[str] = None
    min_required_client_version: Optional[str] = None
    trust_level: TrustLevel = TrustLevel.COMMUNITY
    checksum: Optional[str] = None

    quiz: List[Quiz] = Field(default_factory=list)

    extensions: Dict[str, Any] = Field(
        default_factory=dict, description="Unknown frontmatter keys, verbatim"
    )

    model_config = ConfigDict(protected_namespaces=())


class ParsedSkill(BaseModel):
    """Validated metadata plus the trimmed markdown body."""

    metadata: SkillMetadata
    content: str = Field(description="Markdown body, trimmed")
    raw_frontmatter: str = Field("", description="Frontmatter text as written")
    file_path: str = Field("<inline>", description="Where the skill was read from")

    model_config = ConfigDict(frozen=True)


class SafeguardCheck(BaseModel):
    """Outcome of one static check."""

    name: str
    passed: bool
    severity: Severity
    message: str


class SafeguardResult(BaseModel):
    """Aggregate verdict over all safeguard checks."""

    passed: bool = Field(description="False only if an error-severity check failed")
    score: int = Field(ge=0, le=100, description="Informational trust score")
    checks: List[SafeguardCheck] = Field(default_factory=list)


# ─── Registry ─────────────────────────────────────────────────────────────────


class _IndexModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class RatingInfo(_IndexModel):
    """Aggregate star rating of a published skill."""

    average: float = Field(0.0, ge=0, le=5)
    count: int = Field(0, ge=0)
    distribution: List[int] = Field(
        default_factory=lambda: [0, 0, 0, 0, 0],
        min_length=5,
        max_length=5,
        description="Count of 1..5 star ratings",
    )


class RatingSubmission(_IndexModel):
    """A single user rating."""

    skill_name: str
    rating: int = Field(ge=1, le=5)
    user_id: str
    comment: Optional[str] = None
    timestamp: str


class RegistryEntry(_IndexModel):
    """Catalog record of a published skill."""

    name: str
    description: str
    trust_level: TrustLevel = TrustLevel.COMMUNITY
    downloads: int = Field(0, ge=0)
    rating: RatingInfo = Field(default_factory=RatingInfo)
    published_at: str = ""
    updated_at: str = ""

    version: Optional[str] = None
    author: Optional[str] = None
    license: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[SkillCategory] = None
    repository: Optional[str] = None
    homepage: Optional[str] = None
    min_required_client_version: Optional[str] = None
    checksum: Optional[str] = None


class PartialRegistryEntry(_IndexModel):
    """Loosely-typed catalog record produced by remote discovery sources."""

    name: Optional[str] = None
    description: Optional[str] = None
    trust_level: Optional[TrustLevel] = None
    downloads: Optional[int] = None
    rating: Optional[RatingInfo] = None
    published_at: Optional[str] = None
    updated_at: Optional[str] = None
    version: Optional[str] = None
    author: Optional[str] = None
    license: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[SkillCategory] = None
    repository: Optional[str] = None
    homepage: Optional[str] = None
    min_required_client_version: Optional[str] = None
    checksum: Optional[str] = None


class LocalIndex(_IndexModel):
    """Locally cached registry index, keyed by skill name."""

    version: str = "1.0.0"
    last_updated: str = ""
    skills: Dict[str, RegistryEntry] = Field(default_factory=dict)


# ─── Search & discovery ───────────────────────────────────────────────────────


class SearchOptions(BaseModel):
    """Query and hard filters for a local index search."""

    query: str = ""
    tags: Optional[List[str]] = None
    category: Optional[SkillCategory] = None
    trust_level: Optional[TrustLevel] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    limit: int = Field(20, ge=0)
    offset: int = Field(0, ge=0)


class SearchResult(BaseModel):
    """A scored local index hit."""

    entry: RegistryEntry
    relevance_score: float = Field(ge=0)
    matched_on: List[MatchField] = Field(default_factory=list)


class TrawlOptions(BaseModel):
    """Which sources to trawl and how many results to keep."""

    sources: List[TrawlSource] = Field(
        default_factory=lambda: [TrawlSource.REGISTRY, TrawlSource.GITHUB]
    )
    max_results: int = Field(10, ge=0)
    domains: Optional[List[str]] = None


class TrawlResult(BaseModel):
    """A discovery hit from any source."""

    source: TrawlSource
    skill: PartialRegistryEntry
    confidence: float = Field(ge=0, le=1)
    url: str
