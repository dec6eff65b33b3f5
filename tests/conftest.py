"""
Pytest configuration and shared fixtures for skillli tests.
"""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from skillli.models import LocalIndex, RatingInfo, RegistryEntry
from skillli.settings import reset_settings


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, temp_dir):
    """Keep the user's config file and env vars out of every test."""
    for var in ("SKILLLI_REGISTRY_URL", "GITHUB_TOKEN", "SKILLLI_TRAWL_SOURCES", "SKILLLI_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "skillli.settings._default_config_path", lambda: temp_dir / "missing.toml"
    )
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def sample_index():
    """A small local index covering every category used in tests."""
    entries = [
        RegistryEntry(
            name="code-reviewer",
            description="Reviews pull requests and suggests code improvements",
            version="1.2.0",
            author="alice",
            tags=["review", "code", "quality"],
            category="development",
            trust_level="verified",
            downloads=1500,
            rating=RatingInfo(average=4.6, count=30, distribution=[0, 1, 2, 7, 20]),
            repository="https://github.com/alice/code-reviewer",
        ),
        RegistryEntry(
            name="api-designer",
            description="Designs REST and GraphQL APIs from requirements",
            version="0.3.1",
            author="bob",
            tags=["api", "rest", "graphql"],
            category="development",
            trust_level="community",
            downloads=120,
            rating=RatingInfo(average=3.9, count=10, distribution=[0, 1, 2, 3, 4]),
        ),
        RegistryEntry(
            name="api-docs-writer",
            description="Writes reference docs for an existing api",
            tags=["api", "docs"],
            category="creative",
            downloads=40,
            rating=RatingInfo(average=4.0, count=2, distribution=[0, 0, 0, 2, 0]),
        ),
        RegistryEntry(
            name="k8s-deployer",
            description="Deploys containers to Kubernetes clusters",
            tags=["kubernetes", "deploy"],
            category="devops",
            trust_level="official",
            downloads=9000,
            rating=RatingInfo(average=4.8, count=100, distribution=[0, 0, 5, 10, 85]),
        ),
        RegistryEntry(
            name="csv-analyst",
            description="Explores CSV data and produces summary statistics",
            tags=["csv", "data", "analysis"],
            category="data",
            downloads=300,
            rating=RatingInfo(average=4.5, count=8, distribution=[0, 0, 1, 2, 5]),
        ),
        RegistryEntry(
            name="sql-helper",
            description="Writes and explains SQL queries over data warehouses",
            tags=["sql", "data"],
            category="data",
            downloads=0,
            rating=RatingInfo(average=3.0, count=1, distribution=[0, 0, 1, 0, 0]),
        ),
    ]
    return LocalIndex(
        last_updated="2026-01-01T00:00:00Z",
        skills={entry.name: entry for entry in entries},
    )


@pytest.fixture
def make_skill_dir(temp_dir):
    """Factory fixture that writes a skill bundle and returns its directory."""

    def _make(name="demo-skill", frontmatter=None, body="# Demo\n\nDo the thing.", files=None):
        skill_dir = temp_dir / name
        skill_dir.mkdir(parents=True, exist_ok=True)
        fm = frontmatter or f"name: {name}\ndescription: A demo skill\n"
        (skill_dir / "SKILL.md").write_text(f"---\n{fm}---\n{body}\n", encoding="utf-8")
        for rel_path, content in (files or {}).items():
            path = skill_dir / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return skill_dir

    return _make


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx.AsyncClient for trawler and registry tests."""
    client = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def make_response():
    """Factory for mock httpx responses with a JSON payload."""

    def _make(payload, status_code=200):
        response = MagicMock()
        response.status_code = status_code
        response.raise_for_status = MagicMock()
        response.json.return_value = payload
        return response

    return _make

