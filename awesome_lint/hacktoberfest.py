"""List the linked GitHub repositories that carry the hacktoberfest topic."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token

from .checker import MAX_CONCURRENT, github_credentials, make_client
from .models import CheckerError, HttpError, RequestFailed

__all__ = [
    "RepoInfo",
    "Entry",
    "github_repo_links",
    "fetch_repo_info",
    "format_listing",
    "load_results",
    "save_results",
    "run",
    "main",
]

log = logging.getLogger(__name__)

RESULTS_FILE = "hacktoberfest.yaml"
TOPIC = "hacktoberfest"

_REPO_RE = re.compile(r"^https://github.com/(?P<org>[^/]+)/(?P<repo>[^/]+)/?$")
_FRACTION_RE = re.compile(r"^(?P<head>[^.]*)\.(?P<frac>\d+)(?P<tail>.*)$")

Credentials = tuple[str, str]


@dataclass
class RepoInfo:
    """What GitHub reports about a repository."""

    hacktoberfest: bool
    name: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "hacktoberfest": self.hacktoberfest,
            "name": self.name,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RepoInfo:
        return cls(
            hacktoberfest=bool(data["hacktoberfest"]),
            name=str(data["name"]),
            description=str(data["description"]),
        )


@dataclass
class Entry:
    """A repository's information and when it was fetched."""

    updated_at: datetime
    info: RepoInfo

    def to_dict(self) -> dict[str, Any]:
        return {"updated_at": self.updated_at.isoformat(), "info": self.info.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        return cls(
            updated_at=_parse_timestamp(data["updated_at"]),
            info=RepoInfo.from_dict(data["info"]),
        )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    match = _FRACTION_RE.match(text)
    if match:
        frac = match["frac"][:6].ljust(6, "0")
        text = f"{match['head']}.{frac}{match['tail']}"
    return datetime.fromisoformat(text)


def _is_link_text(url: object) -> bool:
    """Any textual destination is accepted, whatever its scheme."""
    return isinstance(url, str)


def _link_targets(tokens: Iterable[Token]) -> Iterator[str]:
    for token in tokens:
        if token.type == "link_open":
            yield str(token.attrGet("href") or "")
        elif token.type == "image":
            yield str(token.attrGet("src") or "")
        if token.children:
            yield from _link_targets(token.children)


def github_repo_links(markdown: str) -> list[str]:
    """Links and images in ``markdown`` that point at a GitHub repository root."""
    parser = MarkdownIt("commonmark")
    # Keep link destinations exactly as written in the document.
    parser.normalizeLink = str
    parser.validateLink = _is_link_text
    return [url for url in _link_targets(parser.parse(markdown)) if _REPO_RE.search(url)]


async def fetch_repo_info(
    client: httpx.AsyncClient, github_url: str, credentials: Credentials | None = None
) -> RepoInfo:
    """Fetch a repository's name, description and hacktoberfest topic.

    Raises HttpError for an unsuccessful status and RequestFailed when the
    request cannot be made.
    """
    log.warning("Downloading Hacktoberfest label for %s", github_url)
    api_url = _REPO_RE.sub(r"https://api.github.com/repos/\g<org>/\g<repo>", github_url)
    try:
        response = await client.get(api_url, auth=credentials)
    except httpx.HTTPError as exc:
        log.warning("Error while getting %s: %s", github_url, exc)
        raise RequestFailed(str(exc)) from exc
    if not response.is_success:
        raise HttpError(response.status_code, None)
    try:
        data = response.json()
        return RepoInfo(
            hacktoberfest=TOPIC in data["topics"],
            name=str(data["full_name"]),
            description=data.get("description") or "",
        )
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"unexpected GitHub response: {response.text!r}") from exc


def format_listing(results: dict[str, Entry]) -> list[str]:
    """Markdown list lines for the hacktoberfest repositories, by URL."""
    return [
        f"* [{results[url].info.name}]({url}) - {results[url].info.description}"
        for url in sorted(results, key=str.lower)
        if results[url].info.hacktoberfest
    ]


def load_results(path: str | Path) -> dict[str, Entry]:
    """Read saved repository data; a missing or unreadable file gives none."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if data is None:
            return {}
        return {str(url): Entry.from_dict(entry) for url, entry in data.items()}
    except (OSError, yaml.YAMLError, ValueError, KeyError, TypeError, AttributeError):
        return {}


def save_results(results: dict[str, Entry], path: str | Path) -> None:
    """Write repository data, ordered by URL."""
    data = {url: results[url].to_dict() for url in sorted(results)}
    Path(path).write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )


async def run(readme_path: str | Path, results_dir: str | Path) -> int:
    """Fetch the repositories the README links to and print the tagged ones.

    Returns the number of repositories that could not be fetched.
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    results_file = results_dir / RESULTS_FILE
    markdown = Path(readme_path).read_text(encoding="utf-8")
    results = load_results(results_file)

    used: set[str] = set()
    pending: list[str] = []
    for url in github_repo_links(markdown):
        if not url.startswith("http") or url in used:
            continue
        used.add(url)
        if url not in results:
            pending.append(url)

    for stale in set(results) - used:
        del results[stale]
    save_results(results, results_file)

    credentials = github_credentials(os.environ)
    slots = asyncio.Semaphore(MAX_CONCURRENT)
    failed = 0
    async with make_client() as client:

        async def fetch(url: str) -> tuple[str, RepoInfo | CheckerError]:
            async with slots:
                try:
                    return url, await fetch_repo_info(client, url, credentials)
                except CheckerError as exc:
                    return url, exc

        tasks = [asyncio.create_task(fetch(url)) for url in pending]
        for next_done in asyncio.as_completed(tasks):
            url, outcome = await next_done
            if isinstance(outcome, RepoInfo):
                print("\u2714 ", end="", flush=True)
                results[url] = Entry(updated_at=datetime.now().astimezone(), info=outcome)
            else:
                print("\u2718 ", end="")
                print(url, flush=True)
                failed += 1
            save_results(results, results_file)
    save_results(results, results_file)
    print()

    if failed == 0:
        print("All listed repos tagged with 'hacktoberfest'")
        for line in format_listing(results):
            print(line)
    return failed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="List linked repositories tagged with hacktoberfest."
    )
    parser.add_argument("readme", nargs="?", default="README.md")
    parser.add_argument("--results-dir", default="results")
    args = parser.parse_args(argv)
    logging.basicConfig()
    failed = asyncio.run(run(args.readme, args.results_dir))
    if failed:
        print(f"Error: {failed} urls with errors", file=sys.stderr)
        return 1
    return 0