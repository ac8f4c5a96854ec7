from awesome_lint.cleanup import cleanup_file, fix_dashes, main

SAMPLE = [
    "# Title — intro",
    "* [Foo](#foo) — toc entry",
    "## Applications",
    "* [bar](https://example.com/bar) — A bar",
    "* [baz](https://example.com/baz) - A baz",
]


def test_fix_dashes_after_heading():
    assert fix_dashes(SAMPLE) == [
        "# Title — intro",
        "* [Foo](#foo) — toc entry",
        "## Applications",
        "* [bar](https://example.com/bar) - A bar",
        "* [baz](https://example.com/baz) - A baz",
    ]


def test_fix_dashes_invariants():
    fixed = fix_dashes(SAMPLE)
    assert len(fixed) == len(SAMPLE)
    start = SAMPLE.index("## Applications")
    assert fixed[: start + 1] == SAMPLE[: start + 1]
    assert all(" — " not in line for line in fixed[start + 1 :])


def test_fix_dashes_without_heading_is_unchanged():
    lines = ["a — b", "c — d"]
    assert fix_dashes(lines) == lines


def test_fix_dashes_is_idempotent():
    once = fix_dashes(SAMPLE)
    assert fix_dashes(once) == once


def test_fix_dashes_accepts_generator():
    assert fix_dashes(line for line in SAMPLE) == fix_dashes(SAMPLE)


def test_cleanup_file(tmp_path):
    path = tmp_path / "README.md"
    path.write_text("\n".join(SAMPLE) + "\n", encoding="utf-8")
    cleanup_file(path)
    content = path.read_text(encoding="utf-8")
    assert content == "\n".join(fix_dashes(SAMPLE))
    assert not content.endswith("\n")


def test_cleanup_file_strips_carriage_returns(tmp_path):
    path = tmp_path / "README.md"
    path.write_bytes("\r\n".join(SAMPLE).encode("utf-8"))
    cleanup_file(path)
    assert b"\r" not in path.read_bytes()


def test_main_with_path(tmp_path):
    path = tmp_path / "README.md"
    path.write_text("\n".join(SAMPLE), encoding="utf-8")
    assert main([str(path)]) == 0
    assert path.read_text(encoding="utf-8").splitlines() == fix_dashes(SAMPLE)