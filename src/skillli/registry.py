"""
Access to the remote skill catalog and the local index value.

``fetch_index`` downloads the catalog over HTTP and falls back to the
caller's local copy when the remote is unreachable.  Reading and writing
the index on disk stays with the caller; ``load_index_file`` and
``dump_index`` only convert between JSON text and ``LocalIndex``.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import httpx
from pydantic import ValidationError

from .constants import USER_AGENT
from .errors import RegistryError, SkillNotFoundError
from .models import LocalIndex, RegistryEntry
from .settings import get_settings

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def fetch_index(
    url: Optional[str] = None,
    fallback: Optional[LocalIndex] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> LocalIndex:
    """Download the remote catalog and stamp ``last_updated``.

    Any failure (transport error, HTTP status, malformed payload) returns
    *fallback* when it holds at least one skill, otherwise raises
    ``RegistryError`` naming the URL.
    """
    settings = get_settings()
    url = url or settings.registry_url
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=settings.request_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    try:
        resp = await client.get(url)
        resp.raise_for_status()
        index = LocalIndex.model_validate(resp.json())
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        if fallback is not None and fallback.skills:
            logger.warning(
                "Registry fetch from %s failed (%s); using local index with %d skills",
                url,
                exc,
                len(fallback.skills),
            )
            return fallback
        raise RegistryError(f"Could not fetch registry index from {url}: {exc}", url=url) from exc
    finally:
        if owns_client:
            await client.aclose()

    index.last_updated = _now_iso()
    logger.info("Fetched registry index from %s: %d skills", url, len(index.skills))
    return index


def get_skill_entry(index: LocalIndex, name: str) -> RegistryEntry:
    try:
        return index.skills[name]
    except KeyError:
        raise SkillNotFoundError(name) from None


def load_index_file(path: Union[str, Path]) -> LocalIndex:
    """Read a JSON index file; a missing file yields an empty index."""
    path = Path(path)
    if not path.is_file():
        logger.debug("No local index at %s", path)
        return LocalIndex()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return LocalIndex.model_validate(data)
    except (OSError, ValueError, ValidationError) as exc:
        raise RegistryError(f"Could not read local index {path}: {exc}", url=str(path)) from exc


def dump_index(index: LocalIndex) -> str:
    """Serialise *index* to camelCase JSON."""
    return json.dumps(index.model_dump(mode="json", by_alias=True), indent=2)
