"""Parsers for git's text output.

Every function here is pure and total: malformed lines are skipped, never
raised on.
"""

import re

from gitpane.models import Branch, Commit, FileChange, FileStatus, Outcome, Remote, Stash

CURRENT_MARKER = "*"
REMOTE_SEGMENT = "remotes/"
ERROR_MARKERS = ("error:", "fatal:")

_STASH_PREFIX = re.compile(r"stash@\{\d+\}: ")


def _lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip()]


def parse_branches(text: str) -> list[Branch]:
    """Parse `git branch --list --all`."""
    branches: list[Branch] = []
    for line in _lines(text):
        is_current = line.startswith(CURRENT_MARKER)
        name = line.removeprefix(CURRENT_MARKER).strip()
        is_remote = REMOTE_SEGMENT in name
        if is_remote:
            name = name.split(REMOTE_SEGMENT)[-1]
        branches.append(
            Branch(name=name, is_remote=is_remote, is_current=is_current and not is_remote)
        )
    return branches


def parse_current_branch(text: str) -> str:
    """Parse the symbolic-ref query; detached or unborn HEAD gives ""."""
    lines = text.strip().splitlines()
    return lines[0].strip() if lines else ""


def parse_remotes(text: str) -> list[Remote]:
    """Parse `git remote -v`, keeping one entry per remote name.

    The fetch entry wins over the push entry; otherwise the last line seen for
    a name wins.
    """
    by_name: dict[str, Remote] = {}
    for line in _lines(text):
        name, sep, url_and_kind = line.partition("\t")
        if not sep:
            continue
        parts = url_and_kind.split(" ")
        url = parts[0]
        kind = parts[1].strip("()") if len(parts) > 1 else ""
        existing = by_name.get(name)
        if existing is None or kind == "fetch" or existing.kind != "fetch":
            # a later push line never replaces a fetch line
            by_name[name] = Remote(name=name, url=url, kind=kind)
    return list(by_name.values())


def classify_status(code: str) -> FileStatus:
    """Map a two-character porcelain code to a FileStatus.

    Matching is by containment in a fixed priority order: untracked, added,
    deleted, renamed, modified. The added-then-deleted composite ("AD") is
    the one exception and classifies as deleted.
    """
    if "??" in code:
        return FileStatus.UNTRACKED
    if "A" in code and "D" in code:
        return FileStatus.DELETED
    if "A" in code:
        return FileStatus.ADDED
    if "D" in code:
        return FileStatus.DELETED
    if "R" in code:
        return FileStatus.RENAMED
    if "M" in code:
        return FileStatus.MODIFIED
    return FileStatus.MODIFIED


def is_staged(code: str) -> bool:
    return bool(code) and code[0] not in (" ", "?")


def parse_status(text: str) -> list[FileChange]:
    """Parse `git status --porcelain` (short format v1)."""
    changes: list[FileChange] = []
    for line in _lines(text):
        if len(line) < 4:
            continue
        code = line[:2]
        changes.append(
            FileChange(path=line[3:], status=classify_status(code), staged=is_staged(code))
        )
    return changes


def parse_stashes(text: str) -> list[Stash]:
    """Parse `git stash list`; index is the position in the listing."""
    return [
        Stash(index=index, description=_STASH_PREFIX.sub("", line, count=1))
        for index, line in enumerate(_lines(text))
    ]


def parse_commits(text: str) -> list[Commit]:
    """Parse `git log --pretty=format:%H|%s|%an|%ad`.

    Only three delimiters split the line: the hash is taken from the left and
    the author and date from the right, so a "|" inside a subject survives.
    """
    commits: list[Commit] = []
    for line in _lines(text):
        commit_hash, sep, rest = line.partition("|")
        if not sep:
            continue
        parts = rest.rsplit("|", 2)
        if len(parts) != 3:
            continue
        message, author, date = parts
        commits.append(Commit(hash=commit_hash, message=message, author=author, date=date.strip()))
    return commits


def classify_output(text: str, exit_code: int = 0) -> Outcome:
    """Decide whether a mutating command succeeded.

    git reports failures only through its exit code and the "error:" and
    "fatal:" prefixes in its output.
    """
    if exit_code != 0 or any(marker in text for marker in ERROR_MARKERS):
        return Outcome.ERROR
    return Outcome.SUCCESS


def first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""
