from __future__ import annotations

import pytest

from gitpane.models import FileStatus, Outcome
from gitpane.parsers import (
    classify_output,
    classify_status,
    parse_branches,
    parse_commits,
    parse_current_branch,
    parse_remotes,
    parse_stashes,
    parse_status,
)

STATUS_OUTPUT = """\
 M src/app.py
M  README.md
MM docs/guide.md
A  new_file.py
AD gone_before_commit.py
 D removed.py
R  old.py -> new.py
?? notes/todo.txt
"""


def test_branches_marks_current_and_remote() -> None:
    output = "  feature\n* main\n  remotes/origin/HEAD -> origin/main\n  remotes/origin/main\n\n"
    branches = parse_branches(output)
    assert [(b.name, b.is_remote, b.is_current) for b in branches] == [
        ("feature", False, False),
        ("main", False, True),
        ("origin/HEAD -> origin/main", True, False),
        ("origin/main", True, False),
    ]
    assert [b.name for b in branches if b.is_alias] == ["origin/HEAD -> origin/main"]


def test_current_branch_is_trimmed_and_empty_when_detached() -> None:
    assert parse_current_branch("main\n") == "main"
    assert parse_current_branch("") == ""


@pytest.mark.parametrize(
    "lines",
    [
        ["origin\thttps://x/y (fetch)", "origin\thttps://x/y (push)"],
        ["origin\thttps://x/y (push)", "origin\thttps://x/y (fetch)"],
    ],
)
def test_remotes_prefer_fetch_entry(lines: list[str]) -> None:
    remotes = parse_remotes("\n".join(lines) + "\n")
    assert len(remotes) == 1
    assert remotes[0].name == "origin"
    assert remotes[0].url == "https://x/y"
    assert remotes[0].kind == "fetch"


def test_remotes_keep_last_entry_without_fetch() -> None:
    output = "mirror\thttps://a (push)\nmirror\thttps://b (push)\nupstream\tgit@host:r.git\n"
    remotes = {remote.name: remote for remote in parse_remotes(output)}
    assert remotes["mirror"].url == "https://b"
    assert remotes["upstream"].kind == ""
    assert list(remotes) == ["mirror", "upstream"]


def test_status_classification_and_paths() -> None:
    changes = parse_status(STATUS_OUTPUT)
    assert [(c.path, c.status) for c in changes] == [
        ("src/app.py", FileStatus.MODIFIED),
        ("README.md", FileStatus.MODIFIED),
        ("docs/guide.md", FileStatus.MODIFIED),
        ("new_file.py", FileStatus.ADDED),
        ("gone_before_commit.py", FileStatus.DELETED),
        ("removed.py", FileStatus.DELETED),
        ("old.py -> new.py", FileStatus.RENAMED),
        ("notes/todo.txt", FileStatus.UNTRACKED),
    ]
    assert changes[0].filename == "app.py"


def test_status_parsing_is_idempotent() -> None:
    assert parse_status(STATUS_OUTPUT) == parse_status(STATUS_OUTPUT)


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("AD", FileStatus.DELETED),
        ("AM", FileStatus.ADDED),
        ("RM", FileStatus.RENAMED),
        ("??", FileStatus.UNTRACKED),
        ("UU", FileStatus.MODIFIED),
    ],
)
def test_status_priority_order(code: str, expected: FileStatus) -> None:
    assert classify_status(code) is expected


@pytest.mark.parametrize(
    ("line", "staged"),
    [(" M a.txt", False), ("M  a.txt", True), ("?? a.txt", False), ("A  a.txt", True)],
)
def test_staged_follows_first_status_character(line: str, staged: bool) -> None:
    (change,) = parse_status(line)
    assert change.staged is staged


def test_stash_prefix_is_stripped_and_indexed() -> None:
    stashes = parse_stashes("stash@{0}: WIP on main: abc\nstash@{1}: On feature: tidy up\n")
    assert stashes[0].index == 0
    assert stashes[0].description == "WIP on main: abc"
    assert stashes[1].index == 1
    assert stashes[1].ref == "stash@{1}"


def test_commits_keep_pipes_in_subject() -> None:
    output = "abc123|Fix bug|Jane|2025-01-01\ndef456|Use a|b pipe|Joe|2024-12-31\n\nbroken line\n"
    commits = parse_commits(output)
    assert len(commits) == 2
    assert (commits[0].hash, commits[0].message, commits[0].author, commits[0].date) == (
        "abc123",
        "Fix bug",
        "Jane",
        "2025-01-01",
    )
    assert commits[1].message == "Use a|b pipe"
    assert commits[1].author == "Joe"
    assert commits[0].short_hash == "abc123"


@pytest.mark.parametrize(
    ("text", "exit_code", "outcome"),
    [
        ("Already up to date.\n", 0, Outcome.SUCCESS),
        ("error: pathspec 'nope' did not match\n", 0, Outcome.ERROR),
        ("fatal: not a git repository\n", 0, Outcome.ERROR),
        ("", 1, Outcome.ERROR),
    ],
)
def test_classify_output(text: str, exit_code: int, outcome: Outcome) -> None:
    assert classify_output(text, exit_code) is outcome
