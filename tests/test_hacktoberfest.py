from datetime import datetime, timezone

import httpx
import pytest
import respx

from awesome_lint.hacktoberfest import (
    Entry,
    RepoInfo,
    fetch_repo_info,
    format_listing,
    github_repo_links,
    load_results,
    run,
    save_results,
)
from awesome_lint.models import HttpError

NOW = datetime(2024, 10, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _no_credentials(monkeypatch):
    monkeypatch.delenv("USERNAME_FOR_GITHUB", raising=False)
    monkeypatch.delenv("TOKEN_FOR_GITHUB", raising=False)


def test_github_repo_links_keeps_repo_roots_only():
    markdown = (
        "* [x](https://github.com/org/repo) - d\n"
        "* [y](https://github.com/org/repo/tree/main) - e\n"
        "\n"
        "![b](https://github.com/org/other/)\n"
        "\n"
        "[z](https://example.com)\n"
    )
    assert github_repo_links(markdown) == [
        "https://github.com/org/repo",
        "https://github.com/org/other/",
    ]


@pytest.mark.asyncio
async def test_fetch_repo_info_reads_topics():
    with respx.mock as router:
        route = router.get("https://api.github.com/repos/org/repo").mock(
            return_value=httpx.Response(
                200,
                json={
                    "full_name": "org/repo",
                    "description": None,
                    "topics": ["rust", "hacktoberfest"],
                },
            )
        )
        async with httpx.AsyncClient() as client:
            info = await fetch_repo_info(
                client, "https://github.com/org/repo", ("user", "token")
            )
    assert info == RepoInfo(hacktoberfest=True, name="org/repo", description="")
    assert route.calls.last.request.headers["Authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_fetch_repo_info_http_error():
    with respx.mock as router:
        router.get("https://api.github.com/repos/org/gone").mock(
            return_value=httpx.Response(404)
        )
        async with httpx.AsyncClient() as client:
            with pytest.raises(HttpError) as info:
                await fetch_repo_info(client, "https://github.com/org/gone")
    assert info.value == HttpError(404)


def test_format_listing_sorted_and_filtered():
    results = {
        "https://github.com/b/Zed": Entry(NOW, RepoInfo(True, "b/Zed", "z")),
        "https://github.com/a/alpha": Entry(NOW, RepoInfo(True, "a/alpha", "first")),
        "https://github.com/c/plain": Entry(NOW, RepoInfo(False, "c/plain", "no")),
    }
    assert format_listing(results) == [
        "* [a/alpha](https://github.com/a/alpha) - first",
        "* [b/Zed](https://github.com/b/Zed) - z",
    ]


def test_results_round_trip(tmp_path):
    path = tmp_path / "hacktoberfest.yaml"
    results = {"https://github.com/a/alpha": Entry(NOW, RepoInfo(True, "a/alpha", "x"))}
    save_results(results, path)
    assert load_results(path) == results


def test_load_results_missing_file(tmp_path):
    assert load_results(tmp_path / "absent.yaml") == {}


@pytest.mark.asyncio
async def test_run_prints_tagged_repos(tmp_path, capsys):
    readme = tmp_path / "README.md"
    readme.write_text(
        "* [a](https://github.com/org/a) - one\n"
        "* [b](https://github.com/org/b) - two\n",
        encoding="utf-8",
    )
    with respx.mock as router:
        router.get("https://api.github.com/repos/org/a").mock(
            return_value=httpx.Response(
                200, json={"full_name": "org/a", "description": "one", "topics": ["hacktoberfest"]}
            )
        )
        router.get("https://api.github.com/repos/org/b").mock(
            return_value=httpx.Response(
                200, json={"full_name": "org/b", "description": "two", "topics": []}
            )
        )
        failed = await run(readme, tmp_path / "results")
    assert failed == 0
    out = capsys.readouterr().out
    assert "* [org/a](https://github.com/org/a) - one" in out
    assert "org/b" not in out
    stored = load_results(tmp_path / "results" / "hacktoberfest.yaml")
    assert set(stored) == {"https://github.com/org/a", "https://github.com/org/b"}


@pytest.mark.asyncio
async def test_run_counts_failures(tmp_path, capsys):
    readme = tmp_path / "README.md"
    readme.write_text("* [a](https://github.com/org/a) - one\n", encoding="utf-8")
    with respx.mock as router:
        router.get("https://api.github.com/repos/org/a").mock(
            return_value=httpx.Response(500)
        )
        failed = await run(readme, tmp_path / "results")
    assert failed == 1
    assert "https://github.com/org/a" in capsys.readouterr().out
    assert load_results(tmp_path / "results" / "hacktoberfest.yaml") == {}