"""Validate the README and check that every link in it still works."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

import humanize

from .checker import LinkChecker, github_credentials, make_client
from .models import (
    CheckerError,
    HttpError,
    Link,
    TooManyRequests,
    format_error,
    load_popularity,
    load_results,
    save_popularity,
    save_results,
)
from .readme import ReadmeError, ReadmeValidator

__all__ = [
    "order_urls",
    "should_check",
    "record_result",
    "report_failures",
    "run",
    "main",
]

log = logging.getLogger(__name__)

MIN_BETWEEN_CHECKS = timedelta(days=3)
MAX_ALLOWED_FAILED = timedelta(days=7)
SAVE_INTERVAL_SECONDS = 5.0
SAVE_AFTER_UNSAVED = 20

RESULTS_FILE = "results.yaml"
POPULARITY_FILE = "popularity.yaml"


class _Checker(Protocol):
    async def check(self, url: str) -> CheckerError | None: ...

    async def get_stars(self, github_url: str) -> int | None: ...

    async def get_downloads(self, crate_url: str) -> int | None: ...


def _now() -> datetime:
    return datetime.now().astimezone()


def order_urls(urls: Iterable[str], results: dict[str, Link]) -> list[str]:
    """Order URLs so known ones come first, least recently working first.

    Known URLs that never worked lead; unknown URLs follow in lexical order.
    """

    def key(url: str) -> tuple:
        link = results.get(url)
        if link is None:
            return (1, url)
        if link.last_working is None:
            return (0, 0)
        return (0, 1, link.last_working)

    return sorted(urls, key=key)


def should_check(url: str, results: dict[str, Link], now: datetime) -> bool:
    """Whether ``url`` needs fetching, given what is known about it."""
    if not url.startswith("http"):
        return False
    link = results.get(url)
    if link is not None and link.working and now - link.updated_at < MIN_BETWEEN_CHECKS:
        return False
    return True


def record_result(
    results: dict[str, Link], url: str, error: CheckerError | None, now: datetime
) -> None:
    """Store the outcome of checking ``url`` in ``results``."""
    link = results.get(url)
    if error is None:
        results[url] = Link(updated_at=now, last_working=now)
    elif link is not None:
        link.updated_at = now
        link.error = error
    else:
        results[url] = Link(updated_at=now, error=error)


def report_failures(results: dict[str, Link], now: datetime) -> tuple[int, list[str]]:
    """Count the failures that matter and describe every failing link.

    Returns the number of failures and the report lines, ordered by URL.
    """
    failed = 0
    lines: list[str] = []
    for url in sorted(results):
        link = results[url]
        err = link.error
        if err is None:
            continue
        if isinstance(err, HttpError) and err.status in (301, 404):
            lines.append(f"{url} {link!r}")
            failed += 1
            continue
        if isinstance(err, TooManyRequests) and link.last_working is not None:
            log.info("Ignoring 429 failure on %s as we've seen success before", url)
            continue
        if link.last_working is None:
            lines.append(f"{url} {link!r}")
            failed += 1
            continue
        since = now - link.last_working
        if since > MAX_ALLOWED_FAILED:
            lines.append(f"{url} {link!r}")
            failed += 1
        else:
            lines.append(
                f"Failure occurred but only {humanize.naturaltime(since)}, "
                f"so we're not worrying yet: {format_error(err, url)}"
            )
    return failed, lines


async def run(
    readme_path: str | Path, results_dir: str | Path, checker: _Checker
) -> int:
    """Validate the README, check its links and return the number of failures.

    Raises ReadmeError if the README breaks a list rule.
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    results_file = results_dir / RESULTS_FILE
    popularity_file = results_dir / POPULARITY_FILE

    markdown = Path(readme_path).read_text(encoding="utf-8")
    results = load_results(results_file)
    validator = ReadmeValidator(
        load_popularity(popularity_file),
        fetch_stars=checker.get_stars,
        fetch_downloads=checker.get_downloads,
        save_popularity=lambda data: save_popularity(data, popularity_file),
    )
    to_check = await validator.scan(markdown)

    now = _now()
    used: set[str] = set()
    pending: list[str] = []
    for url in order_urls(to_check, results):
        if not url.startswith("http") or url in used:
            continue
        used.add(url)
        if should_check(url, results, now):
            pending.append(url)

    for stale in set(results) - used:
        del results[stale]
    save_results(results, results_file)

    async def checked(url: str) -> tuple[str, CheckerError | None]:
        return url, await checker.check(url)

    tasks = [asyncio.create_task(checked(url)) for url in pending]
    unsaved = 0
    last_saved = time.monotonic()
    for next_done in asyncio.as_completed(tasks):
        url, error = await next_done
        print("\u2714 " if error is None else "\u2718 ", end="", flush=True)
        record_result(results, url, error, _now())
        unsaved += 1
        if time.monotonic() - last_saved > SAVE_INTERVAL_SECONDS or unsaved > SAVE_AFTER_UNSAVED:
            save_results(results, results_file)
            unsaved = 0
            last_saved = time.monotonic()
    save_results(results, results_file)
    print()

    failed, lines = report_failures(results, _now())
    for line in lines:
        print(line)
    if failed == 0:
        print("No errors!")
    return failed


async def _run_with_client(readme_path: str, results_dir: str) -> int:
    async with make_client() as client:
        checker = LinkChecker(client, credentials=github_credentials(os.environ))
        return await run(readme_path, results_dir, checker)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate the README and check its links."
    )
    parser.add_argument("readme", nargs="?", default="README.md")
    parser.add_argument("--results-dir", default="results")
    args = parser.parse_args(argv)
    logging.basicConfig()
    try:
        failed = asyncio.run(_run_with_client(args.readme, args.results_dir))
    except ReadmeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if failed:
        print(f"Error: {failed} urls with errors", file=sys.stderr)
        return 1
    return 0