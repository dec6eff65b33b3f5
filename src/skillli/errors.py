"""
Exception hierarchy for the skillli core.

Safeguard findings are never raised; they are returned as
``SafeguardCheck`` records.  Trawl source failures are raised as
``SourceUnavailableError`` inside a single source and caught there.
"""

from typing import List, Optional


class SkillliError(Exception):
    """Base class for every error raised by skillli."""


class SkillValidationError(SkillliError):
    """Skill metadata or frontmatter failed validation.

    ``details`` holds one ``"<field path>: <reason>"`` line per violation.
    """

    def __init__(self, message: str, details: Optional[List[str]] = None) -> None:
        self.details: List[str] = list(details or [])
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.details:
            return base
        return base + "\n" + "\n".join(f"  - {d}" for d in self.details)


class SkillNotFoundError(SkillliError):
    """The requested skill is not present in the local index."""

    def __init__(self, skill_name: str) -> None:
        self.skill_name = skill_name
        super().__init__(f"Skill not found: {skill_name}")


class RegistryError(SkillliError):
    """The remote catalog could not be reached and no local fallback exists."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        self.url = url
        super().__init__(message)


class SourceUnavailableError(SkillliError):
    """A single trawl source failed; always recovered at the source boundary."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Source {source} unavailable: {reason}")
