"""Validate the README's list entries: popularity, template, ordering and markup."""

from __future__ import annotations

import difflib
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Union

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .models import PopularityData
from .rules import (
    MINIMUM_CARGO_DOWNLOADS,
    MINIMUM_GITHUB_STARS,
    github_repo_url,
    has_popularity_override,
    is_crate_url,
    matches_item_template,
    override_stars,
)

__all__ = ["ReadmeError", "ReadmeValidator", "list_order_diff"]

log = logging.getLogger(__name__)

_U32_MAX = 2**32 - 1

Count = Union[int, None]
Fetcher = Callable[[str], Union[Awaitable[Count], Count]]


class ReadmeError(Exception):
    """The README breaks one of the list rules."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n{self.details}"
        return self.message


def list_order_diff(items: Iterable[str]) -> str:
    """A unified diff from ``items`` to their case-insensitive order; empty if sorted."""
    original = list(items)
    ordered = sorted(original, key=str.lower)
    if ordered == original:
        return ""
    return "\n".join(
        difflib.unified_diff(original, ordered, "original", "modified", lineterm="")
    )


@dataclass(frozen=True)
class _Event:
    kind: str  # "start", "end", "text" or "html"
    tag: str = ""
    value: str = ""


_TAGS = {
    "bullet_list": "list",
    "ordered_list": "list",
    "list_item": "item",
    "heading": "heading",
    "paragraph": "paragraph",
    "link": "link",
}


def _events(tokens: Iterable[Token]) -> Iterator[_Event]:
    for token in tokens:
        kind = token.type
        if kind.endswith(("_open", "_close")):
            base, _, side = kind.rpartition("_")
            tag = _TAGS.get(base, "other")
            value = ""
            if tag == "heading":
                value = token.tag[1:]
            elif tag == "link" and side == "open":
                value = str(token.attrGet("href") or "")
            yield _Event("start" if side == "open" else "end", tag, value)
        elif kind == "inline":
            yield from _events(token.children or [])
        elif kind in ("text", "text_special"):
            if token.content:
                yield _Event("text", value=token.content)
        elif kind == "image":
            yield _Event("start", "link", str(token.attrGet("src") or ""))
            yield from _events(token.children or [])
            yield _Event("end", "link")
        elif kind in ("fence", "code_block"):
            yield _Event("start", "other")
            if token.content:
                yield _Event("text", value=token.content)
            yield _Event("end", "other")
        elif kind in ("html_block", "html_inline"):
            yield _Event("html", value=token.content)


def _is_link_text(url: object) -> bool:
    """Any textual destination is accepted, whatever its scheme."""
    return isinstance(url, str)


def _make_parser() -> MarkdownIt:
    parser = MarkdownIt("commonmark")
    # Keep link destinations exactly as written in the document.
    parser.normalizeLink = str
    parser.validateLink = _is_link_text
    return parser


@dataclass
class _ScanState:
    to_check: list[str] = field(default_factory=list)
    lists: list[list[str]] = field(default_factory=list)
    in_item: bool = False
    item: str = ""
    link_count: int = 0
    github_stars: int | None = None
    cargo_downloads: int | None = None
    required_stars: int = MINIMUM_GITHUB_STARS
    last_level: int = 0
    override_level: int | None = None

    def push_item(self) -> None:
        self.lists[-1].append(self.item)


async def _resolve(value: Awaitable[Count] | Count) -> Count:
    if inspect.isawaitable(value):
        return await value
    return value


class ReadmeValidator:
    """Walks a README and enforces the rules for its list entries."""

    def __init__(
        self,
        popularity: PopularityData | None = None,
        fetch_stars: Fetcher | None = None,
        fetch_downloads: Fetcher | None = None,
        save_popularity: Callable[[PopularityData], None] | None = None,
    ) -> None:
        self.popularity = popularity if popularity is not None else PopularityData()
        self._fetch_stars = fetch_stars
        self._fetch_downloads = fetch_downloads
        self._save_popularity = save_popularity
        self._parser = _make_parser()

    def _save(self) -> None:
        if self._save_popularity is not None:
            self._save_popularity(self.popularity)

    async def _stars(self, url: str) -> int | None:
        if self._fetch_stars is None:
            return None
        return await _resolve(self._fetch_stars(url))

    async def _downloads(self, url: str) -> int | None:
        if self._fetch_downloads is None:
            return None
        return await _resolve(self._fetch_downloads(url))

    async def scan(self, markdown: str) -> list[str]:
        """Validate ``markdown`` and return the links that still need checking.

        Raises ReadmeError at the first rule that is broken.
        """
        state = _ScanState()
        for event in _events(self._parser.parse(markdown)):
            log.debug("Event %s", event)
            if event.kind == "start":
                await self._start(state, event)
            elif event.kind == "text":
                self._text(state, event.value)
            elif event.kind == "end":
                self._end(state, event.tag)
            elif "<!-- toc" not in event.value:
                raise ReadmeError(
                    f"Contains HTML content, not markdown: {event.value}"
                )
        self._save()
        return state.to_check

    async def _start(self, state: _ScanState, event: _Event) -> None:
        tag = event.tag
        if tag == "link":
            await self._link(state, event.value)
        elif tag == "list":
            if state.in_item and state.item:
                state.push_item()
                state.in_item = False
            state.lists.append([])
        elif tag == "item":
            if state.in_item and state.item:
                state.push_item()
            state.in_item = True
            state.item = ""
            state.link_count = 0
            state.github_stars = None
            state.cargo_downloads = None
        elif tag == "heading":
            level = int(event.value)
            state.last_level = level
            if state.override_level == level:
                state.override_level = None
                state.required_stars = MINIMUM_GITHUB_STARS
        elif tag != "paragraph":
            state.in_item = False

    async def _link(self, state: _ScanState, url: str) -> None:
        if url.startswith("#"):
            return
        if has_popularity_override(url):
            state.github_stars = MINIMUM_GITHUB_STARS
        else:
            repo_url = github_repo_url(url)
            if repo_url is not None and state.github_stars is None:
                cached = self.popularity.github_stars.get(repo_url)
                if cached is not None:
                    state.github_stars = cached
                else:
                    state.github_stars = await self._stars(repo_url)
                    if state.github_stars is not None:
                        self.popularity.github_stars[repo_url] = state.github_stars
                        if state.github_stars >= state.required_stars:
                            self._save()
                        state.link_count += 1
                        return
        if is_crate_url(url):
            cached = self.popularity.cargo_downloads.get(url)
            if cached is not None:
                state.cargo_downloads = cached
            else:
                downloads = await self._downloads(url)
                if downloads is not None:
                    state.cargo_downloads = max(0, min(downloads, _U32_MAX))
                    self.popularity.cargo_downloads[url] = state.cargo_downloads
                    if state.cargo_downloads >= MINIMUM_CARGO_DOWNLOADS:
                        self._save()
                state.link_count += 1
                return
        state.to_check.append(url)
        state.link_count += 1

    def _text(self, state: _ScanState, text: str) -> None:
        override = override_stars(state.last_level, text)
        if override is not None:
            state.override_level = state.last_level
            state.required_stars = override
        if state.in_item:
            state.item += text

    def _end(self, state: _ScanState, tag: str) -> None:
        if tag == "item":
            if state.item:
                self._check_item(state)
                state.push_item()
                state.item = ""
            state.in_item = False
        elif tag == "list":
            items = state.lists.pop()
            if "License" in items and "Resources" in items:
                return
            diff = list_order_diff(items)
            if diff:
                raise ReadmeError("Sorting error", diff)

    def _check_item(self, state: _ScanState) -> None:
        item = state.item
        if (
            state.link_count > 0
            and (state.github_stars or 0) < state.required_stars
            and (state.cargo_downloads or 0) < MINIMUM_CARGO_DOWNLOADS
        ):
            if state.github_stars is None:
                log.warning("No valid github link for %s", item)
            if state.cargo_downloads is None:
                log.warning("No valid crates link for %s", item)
            raise ReadmeError(
                f"Not high enough metrics ({state.github_stars} stars < "
                f"{state.required_stars}, and {state.cargo_downloads} cargo "
                f"downloads < {MINIMUM_CARGO_DOWNLOADS}): {item}"
            )
        if state.link_count > 0 and not matches_item_template(item):
            if "—" in item:
                log.warning(
                    "\"%s\" uses a '—' hyphen, not the '-' hyphen "
                    "and we enforce the use of the latter one",
                    item,
                )
            raise ReadmeError(
                f'Item does not match the template: "{item}". '
                "See CONTRIBUTING.md for the expected form."
            )