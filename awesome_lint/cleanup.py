"""Normalise the dashes in list entries of a README."""

from __future__ import annotations

import argparse
from collections.abc import Iterable
from pathlib import Path

CONTENT_START = "## Applications"


def fix_dashes(lines: Iterable[str]) -> list[str]:
    """Replace em-dash separators with hyphens after the content heading."""
    fixed: list[str] = []
    within_content = False
    for line in lines:
        if within_content:
            fixed.append(line.replace(" — ", " - "))
        else:
            if line.startswith(CONTENT_START):
                within_content = True
            fixed.append(line)
    return fixed


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def cleanup_file(path: str | Path) -> None:
    """Rewrite ``path`` in place with its dashes fixed."""
    path = Path(path)
    with path.open(encoding="utf-8", newline="") as handle:
        lines = _split_lines(handle.read())
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write("\n".join(fix_dashes(lines)))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Clean up the README's list entries.")
    parser.add_argument("path", nargs="?", default="README.md")
    args = parser.parse_args(argv)
    cleanup_file(args.path)
    return 0