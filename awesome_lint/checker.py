"""Fetch links and popularity figures over HTTP."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from urllib.parse import urljoin

import httpx

from .models import (
    CheckerError,
    HttpError,
    NotTried,
    RequestFailed,
    TooManyRequests,
    TravisBuildNoBranch,
    TravisBuildUnknown,
)
from .rules import (
    crate_api_url,
    github_api_url,
    is_assumed_working,
    is_github_api_url,
)

__all__ = ["LinkChecker", "github_credentials", "make_client"]

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.14; rv:68.0) "
    "Gecko/20100101 Firefox/68.0"
)
ACCEPT = "image/svg+xml, text/html, */*;q=0.8"
REQUEST_TIMEOUT = 20.0
MAX_CONCURRENT = 20
ATTEMPTS = 5

_ACTIONS_RE = re.compile(
    r"https://github.com/(?P<org>[^/]+)/(?P<repo>[^/]+)/actions(?:\?workflow=.+)?"
)
_YOUTUBE_VIDEO_RE = re.compile(r"https://www.youtube.com/watch\?v=(?P<video_id>.+)")
_YOUTUBE_PLAYLIST_RE = re.compile(
    r"https://www.youtube.com/playlist\?list=(?P<playlist_id>.+)"
)
_YOUTUBE_CONSENT_RE = re.compile(r"https://consent.youtube.com/m\?continue=.+")
_AZURE_BUILD_RE = re.compile(r"https://dev.azure.com/[^/]+/[^/]+/_build")
_TRAVIS_IMG_RE = re.compile(r"https://api.travis-ci.(?:com|org)/[^/]+/.+\.svg(\?.+)?")

Credentials = tuple[str, str]


def github_credentials(environ: Mapping[str, str]) -> Credentials | None:
    """GitHub user name and token from the environment, if both are set."""
    username = environ.get("USERNAME_FOR_GITHUB")
    token = environ.get("TOKEN_FOR_GITHUB")
    if username is None or token is None:
        return None
    return username, token


def make_client() -> httpx.AsyncClient:
    """An HTTP client that neither follows redirects nor verifies certificates."""
    return httpx.AsyncClient(
        verify=False,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=False,
        timeout=httpx.Timeout(REQUEST_TIMEOUT),
        limits=httpx.Limits(max_keepalive_connections=0),
    )


class LinkChecker:
    """Checks that URLs are reachable, with a bound on concurrent requests."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_concurrent: int = MAX_CONCURRENT,
        credentials: Credentials | None = None,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self._slots = asyncio.Semaphore(max_concurrent)

    async def check(self, url: str) -> CheckerError | None:
        """Fetch ``url``; return None if it works, else the reason it does not."""
        log.debug("Need handle for %s", url)
        async with self._slots:
            return await self._check(url)

    async def _check(self, url: str) -> CheckerError | None:
        if is_assumed_working(url):
            log.info("We assume %s just works...", url)
            return None
        if self.credentials is not None:
            api_url = github_api_url(url)
            if api_url is not None:
                log.info(
                    "Replacing %s with %s to workaround rate limits on GitHub",
                    url,
                    api_url,
                )
                return await self._check(api_url)

        error: CheckerError | None = NotTried()
        for _ in range(ATTEMPTS):
            log.debug("Running %s", url)
            auth = self.credentials if is_github_api_url(url) else None
            try:
                response = await self.client.get(
                    url, headers={"Accept": ACCEPT}, auth=auth
                )
            except httpx.HTTPError as exc:
                log.warning("Error while getting %s, retrying: %s", url, exc)
                error = RequestFailed(str(exc))
                continue

            status = response.status_code
            if status != 200:
                if status == 404 and _ACTIONS_RE.search(url):
                    rewritten = _ACTIONS_RE.sub(
                        r"https://github.com/\g<org>/\g<repo>", url
                    )
                    log.warning(
                        "Got 404 with GitHub actions, so replacing %s with %s",
                        url,
                        rewritten,
                    )
                    return await self._check(rewritten)
                if status == 302 and _YOUTUBE_VIDEO_RE.search(url):
                    rewritten = _YOUTUBE_VIDEO_RE.sub(
                        r"http://img.youtube.com/vi/\g<video_id>/mqdefault.jpg", url
                    )
                    log.warning(
                        "Got 302 with Youtube, so replacing %s with %s", url, rewritten
                    )
                    return await self._check(rewritten)
                if status == 302 and _YOUTUBE_PLAYLIST_RE.search(url):
                    location = response.headers.get("location", "")
                    if _YOUTUBE_CONSENT_RE.search(location):
                        log.warning(
                            "Got Youtube consent link for %s, so assuming playlist is ok",
                            url,
                        )
                        return None
                if status == 302 and _AZURE_BUILD_RE.search(url):
                    merged = urljoin(url, response.headers["location"])
                    log.info(
                        "Got 302 from Azure devops, so replacing %s with %s",
                        url,
                        merged,
                    )
                    return await self._check(merged)
                if status == 429:
                    log.warning("Error while getting %s: %s", url, status)
                    return TooManyRequests()
                if 300 <= status < 400:
                    if status not in (302, 307):
                        error = HttpError(status, response.headers.get("location"))
                        log.warning("Redirect while getting %s - %s", url, status)
                        break
                else:
                    log.warning("Error while getting %s, retrying: %s", url, status)
                    error = HttpError(status, None)
                    continue

            travis = _TRAVIS_IMG_RE.search(url)
            if travis:
                if "unknown" in response.text:
                    error = TravisBuildUnknown()
                    break
                query = travis.group(1) or ""
                if not query.startswith("?") or "branch=" not in query:
                    error = TravisBuildNoBranch()
                    break
            log.debug("Finished %s", url)
            error = None
            break
        return error

    async def get_stars(self, github_url: str) -> int | None:
        """Star count of a GitHub repository; 0 if archived, None if unreachable."""
        log.warning("Downloading GitHub stars for %s", github_url)
        api_url = github_api_url(github_url) or github_url
        try:
            response = await self.client.get(api_url, auth=self.credentials)
        except httpx.HTTPError as exc:
            log.warning("Error while getting %s: %s", github_url, exc)
            return None
        raw = response.text
        try:
            data = response.json()
            archived = bool(data["archived"])
            stars = int(data["stargazers_count"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ValueError(f"unexpected GitHub response: {raw!r}") from exc
        if archived:
            log.warning("%s is archived, so ignoring stars", github_url)
            return 0
        return stars

    async def get_downloads(self, crate_url: str) -> int | None:
        """Download count of a crates.io crate, or None if unreachable."""
        log.warning("Downloading Crates downloads for %s", crate_url)
        api_url = crate_api_url(crate_url) or crate_url
        try:
            response = await self.client.get(api_url)
        except httpx.HTTPError as exc:
            log.warning("Error while getting %s: %s", crate_url, exc)
            return None
        try:
            return int(response.json()["crate"]["downloads"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ValueError(f"unexpected crates.io response: {response.text!r}") from exc