"""
Discovery trawler.

Fans the same query out to the local index and to remote catalogs (GitHub
repository search, the npm registry search and, optionally, well-known
skill endpoints on caller-named hosts), then deduplicates and re-ranks the
union.  Every source runs concurrently and turns its own failures into an
empty result list, so one broken source never affects the others.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from .constants import (
    GITHUB_SEARCH_URL,
    NPM_SEARCH_URL,
    USER_AGENT,
    WELL_KNOWN_SKILLS_PATH,
)
from .errors import SourceUnavailableError
from .models import (
    LocalIndex,
    PartialRegistryEntry,
    RegistryEntry,
    TrawlOptions,
    TrawlResult,
    TrawlSource,
)
from .ranker import deduplicate_results, query_tokens, rank_results
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

_PER_SOURCE_LIMIT = 10

_GITHUB_BASE_CONFIDENCE = 0.3
_GITHUB_STAR_TIERS = [(10, 0.2), (100, 0.2)]
_GITHUB_MAX_CONFIDENCE = 0.9

_NPM_SCORE_FACTOR = 0.7
_NPM_MAX_CONFIDENCE = 0.85

_WEB_BASE_CONFIDENCE = 0.3
_WEB_MATCH_WEIGHT = 0.5
_WEB_MAX_CONFIDENCE = 0.8


def _match_ratio(tokens: Sequence[str], text: str) -> float:
    """Fraction of *tokens* found as substrings of *text*."""
    if not tokens:
        return 0.0
    lower = text.lower()
    hits = sum(1 for token in tokens if token in lower)
    return min(hits / len(tokens), 1.0)


def _entry_text(name: Optional[str], description: Optional[str], tags: Optional[List[str]]) -> str:
    return f"{name or ''} {description or ''} {' '.join(tags or [])}"


def _as_list(value: Any) -> List[Any]:
    """Payload collections: a list as-is, a mapping's values, anything else empty."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    if value:
        logger.debug("Ignoring non-list payload collection of type %s", type(value).__name__)
    return []


# ---------------------------------------------------------------------------
# Strategy base
# ---------------------------------------------------------------------------

class _TrawlStrategy:
    """One discovery source.  ``search`` never raises."""

    source: TrawlSource

    async def search(self, query: str) -> List[TrawlResult]:
        try:
            results = await self._search(query)
        except httpx.TimeoutException:
            logger.warning("Trawl source %s timed out for %r", self.source.value, query)
            return []
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Trawl source %s HTTP %s for %r",
                self.source.value,
                exc.response.status_code,
                query,
            )
            return []
        except (httpx.HTTPError, SourceUnavailableError) as exc:
            logger.warning("Trawl source %s failed for %r: %s", self.source.value, query, exc)
            return []
        except Exception:
            logger.exception("Unexpected error in trawl source %s", self.source.value)
            return []

        logger.debug("Trawl source %s returned %d results", self.source.value, len(results))
        return results

    async def _search(self, query: str) -> List[TrawlResult]:
        raise NotImplementedError


class _RemoteStrategy(_TrawlStrategy):
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        resp = await self._client.get(url, **kwargs)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise SourceUnavailableError(self.source.value, f"invalid JSON from {url}") from exc
        if not isinstance(data, dict):
            raise SourceUnavailableError(self.source.value, f"unexpected payload from {url}")
        return data


# ---------------------------------------------------------------------------
# Local index
# ---------------------------------------------------------------------------

class _RegistryStrategy(_TrawlStrategy):
    """Substring matching over the locally cached registry index."""

    source = TrawlSource.REGISTRY

    def __init__(self, index: LocalIndex) -> None:
        self._index = index

    async def _search(self, query: str) -> List[TrawlResult]:
        tokens = query_tokens(query)
        results: List[TrawlResult] = []
        for entry in self._index.skills.values():
            confidence = _match_ratio(tokens, _entry_text(entry.name, entry.description, entry.tags))
            if confidence <= 0:
                continue
            results.append(
                TrawlResult(
                    source=self.source,
                    skill=_partial_from_entry(entry),
                    confidence=confidence,
                    url=entry.repository or f"skillli://registry/{entry.name}",
                )
            )
        return results


def _partial_from_entry(entry: RegistryEntry) -> PartialRegistryEntry:
    return PartialRegistryEntry.model_validate(entry.model_dump())


# ---------------------------------------------------------------------------
# GitHub repository search
# ---------------------------------------------------------------------------

class _GithubStrategy(_RemoteStrategy):
    """Repositories whose tree contains a SKILL.md matching the query."""

    source = TrawlSource.GITHUB

    def __init__(self, client: httpx.AsyncClient, token: str = "") -> None:
        super().__init__(client)
        self._token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    @staticmethod
    def _confidence(stars: int) -> float:
        confidence = _GITHUB_BASE_CONFIDENCE
        for threshold, bonus in _GITHUB_STAR_TIERS:
            if stars > threshold:
                confidence += bonus
        return min(confidence, _GITHUB_MAX_CONFIDENCE)

    async def _search(self, query: str) -> List[TrawlResult]:
        data = await self._get_json(
            GITHUB_SEARCH_URL,
            params={"q": f"{query} SKILL.md in:path", "per_page": _PER_SOURCE_LIMIT},
            headers=self._headers(),
        )
        results: List[TrawlResult] = []
        for repo in _as_list(data.get("items")):
            try:
                results.append(self._result(repo))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed GitHub item: %s", exc)
        return results

    def _result(self, repo: Dict[str, Any]) -> TrawlResult:
        full_name = repo["full_name"]
        owner, _, repo_name = full_name.rpartition("/")
        return TrawlResult(
            source=self.source,
            skill=PartialRegistryEntry(
                name=repo_name or full_name,
                description=repo.get("description") or "",
                author=owner or None,
                repository=repo["html_url"],
                tags=repo.get("topics") or [],
            ),
            confidence=self._confidence(repo.get("stargazers_count") or 0),
            url=repo["html_url"],
        )


# ---------------------------------------------------------------------------
# npm registry search
# ---------------------------------------------------------------------------

class _NpmStrategy(_RemoteStrategy):
    """Skill/agent flavoured packages from the npm registry."""

    source = TrawlSource.NPM

    async def _search(self, query: str) -> List[TrawlResult]:
        data = await self._get_json(
            NPM_SEARCH_URL,
            params={"text": f"{query} skill agent claude", "size": _PER_SOURCE_LIMIT},
        )
        results: List[TrawlResult] = []
        for obj in _as_list(data.get("objects")):
            try:
                results.append(self._result(obj))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed npm item: %s", exc)
        return results

    def _result(self, obj: Dict[str, Any]) -> TrawlResult:
        pkg = obj["package"]
        links = pkg.get("links") or {}
        final = float((obj.get("score") or {}).get("final", 0.0))
        confidence = max(0.0, min(final * _NPM_SCORE_FACTOR, _NPM_MAX_CONFIDENCE))
        return TrawlResult(
            source=self.source,
            skill=PartialRegistryEntry(
                name=pkg["name"],
                description=pkg.get("description") or "",
                version=pkg.get("version"),
                repository=links.get("repository") or "",
                tags=pkg.get("keywords") or [],
            ),
            confidence=confidence,
            url=links.get("npm") or f"https://www.npmjs.com/package/{pkg['name']}",
        )


# ---------------------------------------------------------------------------
# Well-known endpoints on caller-specified hosts
# ---------------------------------------------------------------------------

class _WebStrategy(_RemoteStrategy):
    """Probes ``/.well-known/skills/index.json`` on each configured host."""

    source = TrawlSource.WEB

    def __init__(self, client: httpx.AsyncClient, domains: Sequence[str]) -> None:
        super().__init__(client)
        self._domains = list(domains)

    @staticmethod
    def _endpoint(domain: str) -> str:
        base = domain.strip().rstrip("/")
        if "://" not in base:
            base = f"https://{base}"
        return f"{base}{WELL_KNOWN_SKILLS_PATH}"

    async def _search(self, query: str) -> List[TrawlResult]:
        tokens = query_tokens(query)
        if not tokens or not self._domains:
            return []
        per_domain = await asyncio.gather(
            *(self._probe(domain, tokens) for domain in self._domains)
        )
        return [result for results in per_domain for result in results]

    async def _probe(self, domain: str, tokens: Sequence[str]) -> List[TrawlResult]:
        url = self._endpoint(domain)
        try:
            data = await self._get_json(url)
        except (httpx.HTTPError, httpx.InvalidURL, SourceUnavailableError) as exc:
            logger.warning("Well-known probe of %s failed: %s", url, exc)
            return []
        except Exception:
            logger.exception("Unexpected error probing %s", url)
            return []

        results: List[TrawlResult] = []
        for raw in _as_list(data.get("skills")):
            try:
                skill = PartialRegistryEntry.model_validate(raw)
            except ValidationError:
                logger.debug("Skipping malformed well-known entry from %s", url)
                continue
            ratio = _match_ratio(tokens, _entry_text(skill.name, skill.description, skill.tags))
            if ratio <= 0:
                continue
            results.append(
                TrawlResult(
                    source=self.source,
                    skill=skill,
                    confidence=min(
                        _WEB_BASE_CONFIDENCE + _WEB_MATCH_WEIGHT * ratio, _WEB_MAX_CONFIDENCE
                    ),
                    url=skill.homepage or skill.repository or url,
                )
            )
        return results


# ---------------------------------------------------------------------------
# SkillTrawler
# ---------------------------------------------------------------------------

class SkillTrawler:
    """Concurrent multi-source skill discovery.

    Usage::

        async with SkillTrawler(index) as trawler:
            results = await trawler.trawl("code review")
            for r in results:
                print(r.source, r.skill.name, r.confidence)
    """

    def __init__(
        self,
        index: Optional[LocalIndex] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._index = index if index is not None else LocalIndex()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=self._settings.request_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    # -- context manager ------------------------------------------------------

    async def __aenter__(self) -> "SkillTrawler":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    # -- public API -----------------------------------------------------------

    def default_options(self) -> TrawlOptions:
        """Trawl options derived from settings."""
        return TrawlOptions(
            sources=self._settings.trawl_sources,
            max_results=self._settings.trawl_max_results,
            domains=self._settings.trawl_domains or None,
        )

    def _strategies(self, options: TrawlOptions) -> List[_TrawlStrategy]:
        strategies: List[_TrawlStrategy] = []
        if TrawlSource.REGISTRY in options.sources:
            strategies.append(_RegistryStrategy(self._index))
        if TrawlSource.GITHUB in options.sources:
            strategies.append(_GithubStrategy(self._client, self._settings.github_token))
        if TrawlSource.NPM in options.sources:
            strategies.append(_NpmStrategy(self._client))
        if TrawlSource.WEB in options.sources and options.domains:
            strategies.append(_WebStrategy(self._client, options.domains))
        return strategies

    async def trawl(
        self, query: str, options: Optional[TrawlOptions] = None
    ) -> List[TrawlResult]:
        """Query every selected source in parallel, deduplicate, and rank."""
        options = options or self.default_options()
        strategies = self._strategies(options)
        logger.info(
            "Trawl started for %r across %s",
            query,
            [s.source.value for s in strategies],
        )

        outcomes = await asyncio.gather(
            *(strategy.search(query) for strategy in strategies),
            return_exceptions=True,
        )

        collected: List[TrawlResult] = []
        for strategy, outcome in zip(strategies, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Trawl source %s failed: %s", strategy.source.value, outcome)
                continue
            collected.extend(outcome)

        ranked = rank_results(deduplicate_results(collected), query)
        results = ranked[: options.max_results]
        logger.info("Trawl for %r: %d candidates, returning %d", query, len(collected), len(results))
        return results


# ---------------------------------------------------------------------------
# Convenience module-level async function
# ---------------------------------------------------------------------------

async def trawl(
    query: str,
    options: Optional[TrawlOptions] = None,
    index: Optional[LocalIndex] = None,
) -> List[TrawlResult]:
    """Trawl every selected source for *query* and return ranked results."""
    async with SkillTrawler(index) as trawler:
        return await trawler.trawl(query, options)
