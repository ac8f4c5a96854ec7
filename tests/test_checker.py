import asyncio
import base64

import httpx
import pytest

from awesome_lint.checker import LinkChecker, github_credentials, make_client
from awesome_lint.models import (
    HttpError,
    RequestFailed,
    TooManyRequests,
    TravisBuildNoBranch,
    TravisBuildUnknown,
)


def _client(routes, seen):
    """Client answering from ``routes``: url -> Response or callable(request)."""

    def handler(request):
        seen.append(request)
        answer = routes[str(request.url)]
        if callable(answer):
            return answer(request)
        return answer

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_github_credentials_present():
    env = {"USERNAME_FOR_GITHUB": "user", "TOKEN_FOR_GITHUB": "token"}
    assert github_credentials(env) == ("user", "token")


def test_github_credentials_missing():
    assert github_credentials({"USERNAME_FOR_GITHUB": "user"}) is None
    assert github_credentials({}) is None


@pytest.mark.asyncio
async def test_make_client_settings():
    async with make_client() as client:
        assert "Firefox/68.0" in client.headers["user-agent"]
        assert client.follow_redirects is False
        assert client.timeout.read == 20


@pytest.mark.asyncio
async def test_assumed_working_not_fetched():
    seen = []
    async with _client({}, seen) as client:
        result = await LinkChecker(client).check("https://arangodb.com")
    assert result is None
    assert seen == []


@pytest.mark.asyncio
async def test_ok_link_sends_accept_header():
    seen = []
    url = "https://example.com/page"
    async with _client({url: httpx.Response(200)}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result is None
    assert len(seen) == 1
    assert seen[0].headers["accept"] == "image/svg+xml, text/html, */*;q=0.8"


@pytest.mark.asyncio
async def test_server_error_retried_five_times():
    seen = []
    url = "https://example.com/broken"
    async with _client({url: httpx.Response(500)}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result == HttpError(500, None)
    assert len(seen) == 5


@pytest.mark.asyncio
async def test_permanent_redirect_reports_location():
    seen = []
    url = "https://example.com/old"
    response = httpx.Response(301, headers={"Location": "https://example.com/new"})
    async with _client({url: response}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result == HttpError(301, "https://example.com/new")
    assert len(seen) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [302, 307])
async def test_temporary_redirect_ignored(status):
    seen = []
    url = "https://example.com/tmp"
    response = httpx.Response(status, headers={"Location": "https://example.com/x"})
    async with _client({url: response}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result is None


@pytest.mark.asyncio
async def test_too_many_requests_not_retried():
    seen = []
    url = "https://example.com/busy"
    async with _client({url: httpx.Response(429)}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result == TooManyRequests()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_connection_failure_retried():
    seen = []
    url = "https://example.com/down"

    def fail(request):
        raise httpx.ConnectError("boom", request=request)

    async with _client({url: fail}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert isinstance(result, RequestFailed)
    assert "boom" in result.error
    assert len(seen) == 5


@pytest.mark.asyncio
async def test_github_link_uses_api_with_credentials():
    seen = []
    api = "https://api.github.com/repos/org/repo"
    async with _client({api: httpx.Response(200)}, seen) as client:
        checker = LinkChecker(client, credentials=("user", "token"))
        result = await checker.check("https://github.com/org/repo/tree/main")
    assert result is None
    assert str(seen[0].url) == api
    scheme, encoded = seen[0].headers["authorization"].split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(encoded).decode() == "user:token"


@pytest.mark.asyncio
async def test_github_link_without_credentials_fetched_directly():
    seen = []
    url = "https://github.com/org/repo"
    async with _client({url: httpx.Response(200)}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result is None
    assert [str(r.url) for r in seen] == [url]
    assert "authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_actions_404_falls_back_to_repo():
    seen = []
    actions = "https://github.com/org/repo/actions"
    repo = "https://github.com/org/repo"
    routes = {actions: httpx.Response(404), repo: httpx.Response(200)}
    async with _client(routes, seen) as client:
        result = await LinkChecker(client).check(actions)
    assert result is None
    assert [str(r.url) for r in seen] == [actions, repo]


@pytest.mark.asyncio
async def test_youtube_video_redirect_uses_thumbnail():
    seen = []
    video = "https://www.youtube.com/watch?v=abc123"
    thumb = "http://img.youtube.com/vi/abc123/mqdefault.jpg"
    routes = {video: httpx.Response(302), thumb: httpx.Response(200)}
    async with _client(routes, seen) as client:
        result = await LinkChecker(client).check(video)
    assert result is None
    assert [str(r.url) for r in seen] == [video, thumb]


@pytest.mark.asyncio
async def test_youtube_playlist_consent_accepted():
    seen = []
    playlist = "https://www.youtube.com/playlist?list=PL1"
    response = httpx.Response(
        302, headers={"Location": "https://consent.youtube.com/m?continue=x"}
    )
    async with _client({playlist: response}, seen) as client:
        result = await LinkChecker(client).check(playlist)
    assert result is None
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_azure_build_redirect_followed():
    seen = []
    build = "https://dev.azure.com/org/project/_build"
    target = "https://dev.azure.com/org/project/_build/results?buildId=7"
    routes = {
        build: httpx.Response(302, headers={"Location": "/org/project/_build/results?buildId=7"}),
        target: httpx.Response(200),
    }
    async with _client(routes, seen) as client:
        result = await LinkChecker(client).check(build)
    assert result is None
    assert [str(r.url) for r in seen] == [build, target]


@pytest.mark.asyncio
async def test_travis_unknown_build():
    seen = []
    url = "https://api.travis-ci.org/org/repo.svg?branch=main"
    response = httpx.Response(200, text="<svg>build unknown</svg>")
    async with _client({url: response}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result == TravisBuildUnknown()


@pytest.mark.asyncio
async def test_travis_without_branch():
    seen = []
    url = "https://api.travis-ci.org/org/repo.svg"
    response = httpx.Response(200, text="<svg>passing</svg>")
    async with _client({url: response}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result == TravisBuildNoBranch()


@pytest.mark.asyncio
async def test_travis_with_branch_passes():
    seen = []
    url = "https://api.travis-ci.com/org/repo.svg?branch=main"
    response = httpx.Response(200, text="<svg>passing</svg>")
    async with _client({url: response}, seen) as client:
        result = await LinkChecker(client).check(url)
    assert result is None


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    active = 0
    peak = 0

    async def handler(request):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        checker = LinkChecker(client, max_concurrent=2)
        urls = [f"https://example.com/{n}" for n in range(5)]
        results = await asyncio.gather(*(checker.check(u) for u in urls))
    assert results == [None] * 5
    assert peak == 2


@pytest.mark.asyncio
async def test_get_stars_reads_count():
    seen = []
    api = "https://api.github.com/repos/org/repo"
    response = httpx.Response(200, json={"stargazers_count": 123, "archived": False})
    async with _client({api: response}, seen) as client:
        checker = LinkChecker(client, credentials=("user", "token"))
        stars = await checker.get_stars("https://github.com/org/repo")
    assert stars == 123
    assert "authorization" in seen[0].headers


@pytest.mark.asyncio
async def test_get_stars_archived_is_zero():
    seen = []
    api = "https://api.github.com/repos/org/repo"
    response = httpx.Response(200, json={"stargazers_count": 900, "archived": True})
    async with _client({api: response}, seen) as client:
        stars = await LinkChecker(client).get_stars("https://github.com/org/repo")
    assert stars == 0


@pytest.mark.asyncio
async def test_get_stars_connection_error_is_none():
    seen = []
    api = "https://api.github.com/repos/org/repo"

    def fail(request):
        raise httpx.ConnectError("down", request=request)

    async with _client({api: fail}, seen) as client:
        stars = await LinkChecker(client).get_stars("https://github.com/org/repo")
    assert stars is None


@pytest.mark.asyncio
async def test_get_stars_bad_payload_raises():
    seen = []
    api = "https://api.github.com/repos/org/repo"
    response = httpx.Response(200, json={"message": "Not Found"})
    async with _client({api: response}, seen) as client:
        with pytest.raises(ValueError):
            await LinkChecker(client).get_stars("https://github.com/org/repo")


@pytest.mark.asyncio
async def test_get_downloads_uses_api():
    seen = []
    api = "https://crates.io/api/v1/crates/serde"
    response = httpx.Response(200, json={"crate": {"downloads": 5000}})
    async with _client({api: response}, seen) as client:
        downloads = await LinkChecker(client).get_downloads(
            "https://crates.io/crates/serde"
        )
    assert downloads == 5000
    assert str(seen[0].url) == api


@pytest.mark.asyncio
async def test_get_downloads_connection_error_is_none():
    seen = []
    api = "https://crates.io/api/v1/crates/serde"

    def fail(request):
        raise httpx.ConnectError("down", request=request)

    async with _client({api: fail}, seen) as client:
        downloads = await LinkChecker(client).get_downloads(
            "https://crates.io/crates/serde/"
        )
    assert downloads is None