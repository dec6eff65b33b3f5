"""
Command-line harness for the skillli core.

Every command prints the JSON form of what the core returns.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .constants import VERSION
from .errors import SkillliError
from .models import SearchOptions, SkillCategory, TrawlSource, TrustLevel
from .parser import parse_skill_directory, parse_skill_file
from .ratings import format_rating, get_ratings
from .registry import dump_index, fetch_index, load_index_file
from .safeguards import run_safeguards
from .search import search as search_index
from .settings import DEFAULT_CONFIG_TOML, get_settings
from .trawler import SkillTrawler


def _echo_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _load_index(index_path: Optional[str]):
    return load_index_file(Path(index_path) if index_path else get_settings().index_path)


@click.group()
@click.version_option(VERSION, prog_name="skillli")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """skillli - validate, search and discover agent skills."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@main.command()
@click.argument("path", type=click.Path(exists=True))
def validate(path: str):
    """Parse a SKILL.md (or skill directory) and run the safeguards."""
    target = Path(path)
    try:
        if target.is_dir():
            skill = parse_skill_directory(target)
            result = run_safeguards(skill, target)
        else:
            skill = parse_skill_file(target)
            result = run_safeguards(skill)
    except SkillliError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _echo_json(
        {
            "skill": skill.metadata.model_dump(mode="json"),
            "safeguards": result.model_dump(mode="json"),
        }
    )
    if not result.passed:
        sys.exit(1)


@main.command()
@click.argument("query", default="")
@click.option("--index", "index_path", help="Local index JSON file")
@click.option("--tag", "tags", multiple=True, help="Boost entries carrying this tag")
@click.option(
    "--category", type=click.Choice([c.value for c in SkillCategory]), help="Category filter"
)
@click.option(
    "--trust-level", type=click.Choice([t.value for t in TrustLevel]), help="Trust filter"
)
@click.option("--min-rating", type=float, help="Minimum average rating")
@click.option("--limit", default=20, help="Maximum results")
def search(
    query: str,
    index_path: Optional[str],
    tags: Tuple[str, ...],
    category: Optional[str],
    trust_level: Optional[str],
    min_rating: Optional[float],
    limit: int,
):
    """Search the local index."""
    try:
        index = _load_index(index_path)
    except SkillliError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    options = SearchOptions(
        query=query,
        tags=list(tags) or None,
        category=category,
        trust_level=trust_level,
        min_rating=min_rating,
        limit=limit,
    )
    _echo_json([r.model_dump(mode="json") for r in search_index(index, options)])


@main.command()
@click.argument("query")
@click.option("--index", "index_path", help="Local index JSON file")
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice([s.value for s in TrawlSource]),
    help="Source to query (repeatable)",
)
@click.option("--max-results", type=int, help="Maximum results")
@click.option("--domain", "domains", multiple=True, help="Host for well-known probing")
def trawl(
    query: str,
    index_path: Optional[str],
    sources: Tuple[str, ...],
    max_results: Optional[int],
    domains: Tuple[str, ...],
):
    """Discover skills across the local index and remote sources."""

    async def _trawl():
        async with SkillTrawler(_load_index(index_path)) as trawler:
            options = trawler.default_options()
            if sources:
                options.sources = [TrawlSource(s) for s in sources]
            if max_results is not None:
                options.max_results = max_results
            if domains:
                options.domains = list(domains)
            return await trawler.trawl(query, options)

    try:
        results = asyncio.run(_trawl())
    except SkillliError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _echo_json([r.model_dump(mode="json") for r in results])


@main.command()
@click.option("--url", help="Registry index URL")
@click.option("--index", "index_path", help="Local index used as fallback")
@click.option("--output", "-o", help="Write the fetched index to this file")
def sync(url: Optional[str], index_path: Optional[str], output: Optional[str]):
    """Fetch the remote registry index."""
    try:
        fallback = _load_index(index_path)
        index = asyncio.run(fetch_index(url, fallback=fallback))
    except SkillliError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    text = dump_index(index)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        click.echo(f"Wrote {len(index.skills)} skills to {output}")
    else:
        print(text)


@main.command()
@click.argument("name")
@click.option("--index", "index_path", help="Local index JSON file")
def rating(name: str, index_path: Optional[str]):
    """Show the rating of a skill in the local index."""
    try:
        info = get_ratings(_load_index(index_path), name)
    except SkillliError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(format_rating(info))


@main.command()
def config():
    """Print a default config.toml."""
    click.echo(DEFAULT_CONFIG_TOML, nl=False)


if __name__ == "__main__":
    main()
