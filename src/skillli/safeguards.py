"""
Static safety checks and trust scoring for skill bundles.

Checks never raise: every finding is returned as a ``SafeguardCheck`` and
only failed ``error``-severity checks flip the overall verdict.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterator, List, Optional, Pattern, Tuple, Union

from .constants import IGNORED_DIRS, MAX_SKILL_MD_LINES, MAX_SKILL_SIZE_BYTES
from .models import (
    ParsedSkill,
    RegistryEntry,
    SafeguardCheck,
    SafeguardResult,
    Severity,
    TrustLevel,
)

logger = logging.getLogger(__name__)

# (compiled regex, label) pairs; every pattern is evaluated independently.
PROHIBITED_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\beval\s*\("), "eval()"),
    (re.compile(r"\bexec\s*\("), "exec()"),
    (re.compile(r"\bexecSync\s*\("), "execSync()"),
    (re.compile(r"\bchild_process\b"), "child_process"),
    (
        re.compile(r"\bsubprocess\.(?:run|call|check_call|check_output|Popen)\b"),
        "subprocess",
    ),
    (re.compile(r"\bProcess\.kill\b", re.IGNORECASE), "Process.kill"),
    (re.compile(r"rm\s+-rf\s+/"), "rm -rf /"),
    (
        re.compile(r"password\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE),
        "hardcoded password",
    ),
    (
        re.compile(r"api[_-]?key\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE),
        "hardcoded API key",
    ),
    (re.compile(r"[A-Za-z0-9+/]{100,}={0,2}"), "large base64 blob"),
]

ALLOWED_SCRIPT_EXTENSIONS = frozenset({".sh", ".py", ".js", ".ts"})

# Trust score weights
_REPOSITORY_POINTS = 10
_LICENSE_POINTS = 10
_VERSION_POINTS = 5
_AUTHOR_POINTS = 5
_TRUST_LEVEL_POINTS = {TrustLevel.VERIFIED: 15, TrustLevel.OFFICIAL: 20}
_RATING_THRESHOLD = 3.5
_RATING_POINTS = 15
_DOWNLOAD_TIERS: List[Tuple[int, int]] = [(100, 5), (1000, 5)]
_CLEAN_PATTERNS_POINTS = 20
_LINE_COUNT_POINTS = 15
_MAX_TRUST_SCORE = 100


def _iter_files(root: Path) -> Iterator[Path]:
    """Yield every file under *root*, skipping VCS and dependency caches."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


# ─── Individual checks ────────────────────────────────────────────────────────


def check_schema(skill: ParsedSkill) -> SafeguardCheck:
    """A ``ParsedSkill`` only exists once its metadata has validated."""
    return SafeguardCheck(
        name="schema-validation",
        passed=True,
        severity=Severity.INFO,
        message=f"SKILL.md metadata for {skill.metadata.name!r} is valid",
    )


def check_line_count(content: str) -> SafeguardCheck:
    lines = len(content.split("\n"))
    passed = lines <= MAX_SKILL_MD_LINES
    return SafeguardCheck(
        name="line-count",
        passed=passed,
        severity=Severity.INFO if passed else Severity.WARNING,
        message=(
            f"SKILL.md has {lines} lines (max {MAX_SKILL_MD_LINES})"
            if passed
            else f"SKILL.md has {lines} lines, exceeds max of {MAX_SKILL_MD_LINES}"
        ),
    )


def check_prohibited_patterns(content: str) -> SafeguardCheck:
    found = [label for pattern, label in PROHIBITED_PATTERNS if pattern.search(content)]
    passed = not found
    return SafeguardCheck(
        name="prohibited-patterns",
        passed=passed,
        severity=Severity.INFO if passed else Severity.ERROR,
        message=(
            "No prohibited patterns detected"
            if passed
            else f"Prohibited patterns found: {', '.join(found)}"
        ),
    )


def check_script_safety(skill_dir: Union[str, Path]) -> SafeguardCheck:
    scripts_dir = Path(skill_dir) / "scripts"
    if not scripts_dir.is_dir():
        return SafeguardCheck(
            name="script-safety",
            passed=True,
            severity=Severity.INFO,
            message="No scripts directory found",
        )

    bad_files = [
        path.relative_to(scripts_dir).as_posix()
        for path in _iter_files(scripts_dir)
        if path.suffix.lower() not in ALLOWED_SCRIPT_EXTENSIONS
    ]
    passed = not bad_files
    return SafeguardCheck(
        name="script-safety",
        passed=passed,
        severity=Severity.INFO if passed else Severity.ERROR,
        message=(
            "All scripts use allowed extensions"
            if passed
            else f"Disallowed script types: {', '.join(bad_files)}"
        ),
    )


def _file_size(path: Path) -> int:
    """Size of a regular file; dangling links and unreadable entries count as 0."""
    try:
        if not path.is_file():
            logger.debug("Skipping non-regular file %s", path)
            return 0
        return path.stat().st_size
    except OSError as exc:
        logger.warning("Could not stat %s: %s", path, exc)
        return 0


def check_file_size(skill_dir: Union[str, Path]) -> SafeguardCheck:
    total = sum(_file_size(path) for path in _iter_files(Path(skill_dir)))
    passed = total <= MAX_SKILL_SIZE_BYTES
    max_mb = MAX_SKILL_SIZE_BYTES / 1024 / 1024
    return SafeguardCheck(
        name="file-size",
        passed=passed,
        severity=Severity.INFO if passed else Severity.WARNING,
        message=(
            f"Total size: {total / 1024:.1f}KB (max {max_mb:g}MB)"
            if passed
            else f"Total size {total / 1024 / 1024:.1f}MB exceeds max of {max_mb:g}MB"
        ),
    )


# ─── Aggregate ────────────────────────────────────────────────────────────────


def run_safeguards(
    skill: ParsedSkill, skill_dir: Optional[Union[str, Path]] = None
) -> SafeguardResult:
    """Run every applicable check over *skill* (and its bundle directory)."""
    checks = [
        check_schema(skill),
        check_line_count(skill.content),
        check_prohibited_patterns(f"{skill.content}\n{skill.raw_frontmatter}"),
    ]
    if skill_dir is not None:
        checks.append(check_script_safety(skill_dir))
        checks.append(check_file_size(skill_dir))

    passed = all(c.passed or c.severity != Severity.ERROR for c in checks)
    score = compute_trust_score(skill)

    logger.info(
        "run_safeguards(%s): passed=%s score=%d failed=%s",
        skill.metadata.name,
        passed,
        score,
        [c.name for c in checks if not c.passed],
    )
    return SafeguardResult(passed=passed, score=score, checks=checks)


def compute_trust_score(
    skill: ParsedSkill, registry_entry: Optional[RegistryEntry] = None
) -> int:
    """Additive 0-100 trust heuristic.

    Signals
    -------
    - repository, license                        10 each
    - version, author                             5 each
    - trust level (verified / official)          15 / 20
    - registry rating >= 3.5                       15
    - registry downloads > 100, > 1000            5 + 5
    - no prohibited patterns in the body           20
    - body within the line ceiling                 15
    Total is capped at 100.
    """
    meta = skill.metadata
    score = 0

    if meta.repository:
        score += _REPOSITORY_POINTS
    if meta.license:
        score += _LICENSE_POINTS
    if meta.version:
        score += _VERSION_POINTS
    if meta.author:
        score += _AUTHOR_POINTS
    score += _TRUST_LEVEL_POINTS.get(meta.trust_level, 0)

    if registry_entry is not None:
        if registry_entry.rating.average >= _RATING_THRESHOLD:
            score += _RATING_POINTS
        for threshold, points in _DOWNLOAD_TIERS:
            if registry_entry.downloads > threshold:
                score += points

    if check_prohibited_patterns(skill.content).passed:
        score += _CLEAN_PATTERNS_POINTS
    if check_line_count(skill.content).passed:
        score += _LINE_COUNT_POINTS

    return min(score, _MAX_TRUST_SCORE)
