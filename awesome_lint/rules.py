"""Fixed rules for list entries: thresholds, exemptions and URL patterns."""

from __future__ import annotations

import re

MINIMUM_GITHUB_STARS = 50
MINIMUM_CARGO_DOWNLOADS = 2000

ASSUME_WORKS = frozenset(
    {
        "https://www.reddit.com/r/rust/",
        "https://opcfoundation.org/about/opc-technologies/opc-ua/",
        "https://arangodb.com",
        "https://git.sr.ht/~lessa/pepper",
        "https://www.gnu.org/software/emacs/",
        "http://www.gnu.org/software/gsl/",
    }
)

# Each of these is enough on its own for an entry to pass the popularity check.
POPULARITY_OVERRIDES = frozenset(
    {
        "https://github.com/maidsafe",
        "https://pijul.org",
        "https://gitlab.com/veloren/veloren",
        "https://gitlab.redox-os.org/redox-os/redox",
        "https://amp.rs",
        "https://marketplace.visualstudio.com/items?itemName=vadimcn.vscode-lldb",
        "https://gitpod.io",
        "https://wiki.gnome.org/Apps/Builder",
        "https://www.jetbrains.com/rust/",
        "https://marketplace.visualstudio.com/items?itemName=tamasfe.even-better-toml",
        "https://marketplace.visualstudio.com/items?itemName=rust-lang.rust-analyzer",
        "https://marketplace.visualstudio.com/items?itemName=rust-lang.rust",
        "https://docs.rs",
        "https://github.com/rust-bio",
        "https://github.com/contain-rs",
        "https://github.com/georust",
        "http://kiss3d.org",
        "https://github.com/rust-qt",
        "https://chromium.googlesource.com/chromiumos/platform/crosvm/",
        "https://crates.io",
        "https://cloudsmith.com/product/formats/cargo-registry",
        "https://gitlab.com/ttyperacer/terminal-typeracer",
        "https://github.com/esp-rs",
        "https://github.com/arkworks-rs",
        "https://marketplace.visualstudio.com/items?itemName=jinxdash.prettier-rust",
        "https://github.com/andoriyu/uclicious",
        "https://marketplace.visualstudio.com/items?itemName=fill-labs.dependi",
    }
)

GITHUB_REPO_RE = re.compile(r"^https://github.com/(?P<org>[^/]+)/(?P<repo>[^/]+)(.*)")
GITHUB_API_RE = re.compile(r"https://api.github.com/")
CRATE_RE = re.compile(r"https://crates.io/crates/(?P<crate>[^/]+)/?$")
ITEM_RE = re.compile(r"(?P<repo>(\S+)(/\S+)?)(?P<crate> \[\S*\])? - (?P<desc>\S.+)")


def override_stars(level: int, text: str) -> int | None:
    """Star threshold for a section heading, or None to use the default."""
    if level == 2 and "Resources" in text:
        return 0
    if level == 3 and ("Games" in text or "Emulators" in text):
        return 40
    return None


def is_assumed_working(url: str) -> bool:
    """Whether ``url`` is exempt from fetching."""
    return url in ASSUME_WORKS


def has_popularity_override(url: str) -> bool:
    """Whether ``url`` alone satisfies the popularity check."""
    return url in POPULARITY_OVERRIDES


def github_repo_url(url: str) -> str | None:
    """The bare repository URL for a GitHub link, or None."""
    if not GITHUB_REPO_RE.search(url):
        return None
    return GITHUB_REPO_RE.sub(r"https://github.com/\g<org>/\g<repo>", url)


def github_api_url(url: str) -> str | None:
    """The GitHub API URL of the repository a link points into, or None."""
    if not GITHUB_REPO_RE.search(url):
        return None
    return GITHUB_REPO_RE.sub(r"https://api.github.com/repos/\g<org>/\g<repo>", url)


def is_github_api_url(url: str) -> bool:
    """Whether ``url`` addresses the GitHub API."""
    return GITHUB_API_RE.search(url) is not None


def is_crate_url(url: str) -> bool:
    """Whether ``url`` is a crates.io crate page."""
    return CRATE_RE.search(url) is not None


def crate_api_url(url: str) -> str | None:
    """The crates.io API URL for a crate page, or None."""
    if not is_crate_url(url):
        return None
    return CRATE_RE.sub(r"https://crates.io/api/v1/crates/\g<crate>", url)


def matches_item_template(item: str) -> bool:
    """Whether a list entry's text has the ``name - description`` form."""
    return ITEM_RE.search(item) is not None