# awesome-lint

Tooling for maintaining a curated "awesome" list written in Markdown. Each
command takes the path of the list as an optional argument (default
`README.md`), and the commands that keep state write it to a results directory
(default `results/`, changed with `--results-dir`), which is created if needed.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Commands

### `awesome-lint [README] [--results-dir DIR]`

Validates the list, then checks its links.

Validation stops at the first broken rule and exits with status 1:

- the text of every list item that contains a link must have the form
  `name - description` (an optional `[crate]` may follow the name), with a
  plain `-`; an item using `—` instead gets a warning pointing this out;
- items must be sorted case-insensitively inside each list (the list holding
  both `License` and `Resources` is exempt); a unified diff of the expected
  order is shown;
- raw HTML is rejected, except `<!-- toc` markers;
- each item with a link needs at least 50 GitHub stars or 2000 crates.io
  downloads. Under a level-2 heading containing "Resources" the star
  threshold is 0, and under a level-3 heading containing "Games" or
  "Emulators" it is 40. A fixed set of well-known URLs always passes, and
  archived GitHub repositories count as having 0 stars.

Star and download counts are cached in `DIR/popularity.yaml`.

The remaining `http` links are then fetched, at most 20 at a time, without
following redirects and with up to five attempts each. A fixed set of URLs is
assumed to work, and links recorded as working within the last three days are
skipped. Status is kept in `DIR/results.yaml`; entries for links no longer in
the list are dropped. A link is reported as an error if it answered 301 or
404, has never worked, or has not worked for more than seven days; a 429
answer is ignored for a link that has worked before. The command prints
`No errors!` and exits with 0 when nothing failed, otherwise it exits with 1.

Set `USERNAME_FOR_GITHUB` and `TOKEN_FOR_GITHUB` to authenticate against the
GitHub API and avoid its rate limits; GitHub repository links are then checked
through the API.

### `awesome-cleanup [README]`

Rewrites the file in place, replacing ` — ` with ` - ` in every line after the
first line starting with `## Applications`.

### `awesome-hacktoberfest [README] [--results-dir DIR]`

Looks up every GitHub repository root linked from the list, caches the results
in `DIR/hacktoberfest.yaml`, and, if every lookup succeeded, prints the
repositories tagged with the `hacktoberfest` topic as Markdown list items:

```
* [owner/name](https://github.com/owner/name) - description
```

Otherwise it prints the failing URLs and exits with 1.

## Library use

The pieces are importable, for example:

```python
from awesome_lint.cleanup import fix_dashes
from awesome_lint.rules import matches_item_template, override_stars

fix_dashes(["## Applications", "* [a](https://example.com) — thing"])
matches_item_template("a - thing")
override_stars(3, "Games")  # 40
```

- `awesome_lint.readme.ReadmeValidator` runs the list rules over Markdown
  text (`await validator.scan(text)`), raising `ReadmeError`, and returns the
  links still to be fetched.
- `awesome_lint.checker.LinkChecker` fetches links and star/download counts
  through an `httpx.AsyncClient` (see `make_client`).
- `awesome_lint.linkcheck.run` and `awesome_lint.hacktoberfest.run` are the
  coroutines behind the commands.
- `awesome_lint.models` holds the result types and their YAML load/save
  functions.