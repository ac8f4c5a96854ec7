"""Link check results, popularity data and their YAML persistence."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

__all__ = [
    "CheckerError",
    "NotTried",
    "HttpError",
    "TooManyRequests",
    "RequestFailed",
    "TravisBuildUnknown",
    "TravisBuildNoBranch",
    "Link",
    "PopularityData",
    "error_from_dict",
    "format_error",
    "load_results",
    "save_results",
    "load_popularity",
    "save_popularity",
]


class CheckerError(Exception):
    """Base class for the ways a link check can fail."""

    tag = "CheckerError"
    message = "link check failed"

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or (self.message,)))

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return self.tag

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CheckerError):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((type(self), repr(self.to_dict())))

    def to_dict(self) -> Any:
        """Return the YAML-serialisable form of this error."""
        return self.tag


class NotTried(CheckerError):
    """The URL was never fetched."""

    tag = "NotTried"
    message = "failed to try url"


class TooManyRequests(CheckerError):
    """The server answered 429."""

    tag = "TooManyRequests"
    message = "too many requests"


class TravisBuildUnknown(CheckerError):
    """A Travis badge reports an unknown build."""

    tag = "TravisBuildUnknown"
    message = "travis build is unknown"


class TravisBuildNoBranch(CheckerError):
    """A Travis badge does not name a branch."""

    tag = "TravisBuildNoBranch"
    message = "travis build image with no branch"


class HttpError(CheckerError):
    """The server answered with an unacceptable status."""

    tag = "HttpError"

    def __init__(self, status: int, location: str | None = None) -> None:
        super().__init__(status, location)
        self.status = status
        self.location = location

    def __str__(self) -> str:
        return f"http error: {self.status}"

    def __repr__(self) -> str:
        return f"HttpError(status={self.status}, location={self.location!r})"

    def to_dict(self) -> Any:
        return {self.tag: {"status": self.status, "location": self.location}}


class RequestFailed(CheckerError):
    """The request could not be completed at all."""

    tag = "ReqwestError"

    def __init__(self, error: str) -> None:
        super().__init__(error)
        self.error = error

    def __str__(self) -> str:
        return f"request error: {self.error}"

    def __repr__(self) -> str:
        return f"RequestFailed(error={self.error!r})"

    def to_dict(self) -> Any:
        return {self.tag: {"error": self.error}}


_UNIT_ERRORS: dict[str, type[CheckerError]] = {
    cls.tag: cls
    for cls in (NotTried, TooManyRequests, TravisBuildUnknown, TravisBuildNoBranch)
}


def error_from_dict(data: Any) -> CheckerError:
    """Rebuild an error from the form produced by ``CheckerError.to_dict``."""
    if isinstance(data, str):
        try:
            return _UNIT_ERRORS[data]()
        except KeyError:
            raise ValueError(f"unknown checker error: {data!r}") from None
    if isinstance(data, dict) and len(data) == 1:
        (tag, body), = data.items()
        if tag in _UNIT_ERRORS and body is None:
            return _UNIT_ERRORS[tag]()
        if not isinstance(body, dict):
            raise ValueError(f"malformed checker error: {data!r}")
        if tag == HttpError.tag:
            return HttpError(int(body["status"]), body.get("location"))
        if tag == RequestFailed.tag:
            return RequestFailed(str(body["error"]))
    raise ValueError(f"unknown checker error: {data!r}")


def format_error(err: CheckerError, url: str) -> str:
    """Describe a failed check of ``url`` in one line."""
    if isinstance(err, HttpError):
        if err.location is not None:
            return f"[{err.status}] {url} -> {err.location}"
        return f"[{err.status}] {url}"
    if isinstance(err, TravisBuildUnknown):
        return f"[Unknown travis build] {url}"
    if isinstance(err, TravisBuildNoBranch):
        return f"[Travis build image with no branch specified] {url}"
    return repr(err)


_FRACTION_RE = re.compile(r"^(?P<head>[^.]*)\.(?P<frac>\d+)(?P<tail>.*)$")


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    match = _FRACTION_RE.match(text)
    if match:
        frac = match["frac"][:6].ljust(6, "0")
        text = f"{match['head']}.{frac}{match['tail']}"
    return datetime.fromisoformat(text)


def _format_timestamp(value: datetime) -> str:
    return value.isoformat()


@dataclass
class Link:
    """The latest known state of one checked URL."""

    updated_at: datetime
    last_working: datetime | None = None
    error: CheckerError | None = None

    @property
    def working(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_working": (
                _format_timestamp(self.last_working) if self.last_working else None
            ),
            "updated_at": _format_timestamp(self.updated_at),
            "working": "Yes" if self.error is None else {"No": self.error.to_dict()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Link:
        working = data["working"]
        if working is True or working == "Yes":
            error = None
        elif isinstance(working, dict) and set(working) == {"No"}:
            error = error_from_dict(working["No"])
        else:
            raise ValueError(f"malformed working state: {working!r}")
        last_working = data.get("last_working")
        return cls(
            updated_at=_parse_timestamp(data["updated_at"]),
            last_working=_parse_timestamp(last_working) if last_working else None,
            error=error,
        )


@dataclass
class PopularityData:
    """Cached GitHub star counts and crates.io download counts."""

    github_stars: dict[str, int] = field(default_factory=dict)
    cargo_downloads: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "github_stars": dict(sorted(self.github_stars.items())),
            "cargo_downloads": dict(sorted(self.cargo_downloads.items())),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PopularityData:
        return cls(
            github_stars={str(k): int(v) for k, v in data["github_stars"].items()},
            cargo_downloads={
                str(k): int(v) for k, v in data["cargo_downloads"].items()
            },
        )


_LOAD_ERRORS = (OSError, yaml.YAMLError, ValueError, KeyError, TypeError, AttributeError)


def load_results(path: str | Path) -> dict[str, Link]:
    """Read saved link results; a missing or unreadable file gives no results."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if data is None:
            return {}
        return {str(url): Link.from_dict(link) for url, link in data.items()}
    except _LOAD_ERRORS:
        return {}


def save_results(results: dict[str, Link], path: str | Path) -> None:
    """Write link results, ordered by URL."""
    data = {url: results[url].to_dict() for url in sorted(results)}
    Path(path).write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )


def load_popularity(path: str | Path) -> PopularityData:
    """Read cached popularity data; a missing or unreadable file gives none."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        return PopularityData.from_dict(data)
    except _LOAD_ERRORS:
        return PopularityData()


def save_popularity(data: PopularityData, path: str | Path) -> None:
    """Write popularity data, ordered by URL."""
    Path(path).write_text(
        yaml.safe_dump(data.to_dict(), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )