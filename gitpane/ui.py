from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from pathlib import Path

import questionary

from .models import Branch, Commit, FileChange, Remote, Stash, StatusMessage

STAGED_WIDTH = 8
STATUS_WIDTH = 11
HASH_WIDTH = 9
DATE_WIDTH = 12
AUTHOR_WIDTH = 20
NAME_WIDTH = 40
ANSI_RESET = "\x1b[0m"
ANSI_DIM = "\x1b[38;5;245m"

STATUS_COLORS = {
    "modified": "\x1b[34m",
    "added": "\x1b[32m",
    "deleted": "\x1b[31m",
    "renamed": "\x1b[35m",
    "untracked": ANSI_DIM,
}


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        if width <= 3:
            return text[:width]
        return f"{text[: width - 3]}..."
    return text.ljust(width)


def _colorize(text: str, color: str | None) -> str:
    if not color:
        return text
    return f"{color}{text}{ANSI_RESET}"


def _header(columns: Sequence[tuple[str, int]]) -> list[str]:
    # a width of 0 marks the free-width trailing column
    labels = [_fit(label, width) if width else label for label, width in columns]
    return [
        " ".join(labels),
        "-" * (sum(width or len(label) for label, width in columns) + len(columns) - 1),
    ]


def format_timestamp(ts: float) -> str:
    return dt.datetime.fromtimestamp(ts).strftime("%H:%M:%S")


def render_changes_lines(changes: Iterable[FileChange], color: bool = False) -> list[str]:
    lines = _header([("STAGED", STAGED_WIDTH), ("STATUS", STATUS_WIDTH), ("PATH", 0)])
    for change in changes:
        status = _fit(change.status.value, STATUS_WIDTH)
        if color:
            status = _colorize(status, STATUS_COLORS.get(change.status.value))
        staged = _fit("yes" if change.staged else "", STAGED_WIDTH)
        lines.append(f"{staged} {status} {change.path}")
    return lines


def render_commit_lines(commits: Iterable[Commit]) -> list[str]:
    lines = _header(
        [("HASH", HASH_WIDTH), ("DATE", DATE_WIDTH), ("AUTHOR", AUTHOR_WIDTH), ("MESSAGE", 0)]
    )
    for commit in commits:
        lines.append(
            " ".join(
                [
                    _fit(commit.short_hash, HASH_WIDTH),
                    _fit(commit.date, DATE_WIDTH),
                    _fit(commit.author, AUTHOR_WIDTH),
                    commit.message,
                ]
            )
        )
    return lines


def render_branch_lines(branches: Iterable[Branch]) -> list[str]:
    lines: list[str] = []
    for branch in branches:
        prefix = "* " if branch.is_current else "  "
        suffix = "  (remote)" if branch.is_remote else ""
        lines.append(f"{prefix}{branch.name}{suffix}")
    return lines


def render_remote_lines(remotes: Iterable[Remote]) -> list[str]:
    return [f"{_fit(remote.name, 16)} {remote.url} ({remote.kind or '-'})" for remote in remotes]


def render_stash_lines(stashes: Iterable[Stash]) -> list[str]:
    return [f"{stash.ref}: {stash.description}" for stash in stashes]


def render_status_message(message: StatusMessage, color: bool = False) -> str:
    text = f"[{format_timestamp(message.timestamp)}] {message.text}"
    if not color:
        return text
    if message.outcome.value == "error":
        return _colorize(text, "\x1b[31m")
    if message.outcome.value == "success":
        return _colorize(text, "\x1b[32m")
    return text


def render_table(lines: Iterable[str]) -> str:
    return "\n".join(lines)


def format_pick_label(path: Path) -> str:
    return f"{path.name:30} {path}"


def pick_repository(paths: list[Path]) -> Path | None:
    if not paths:
        return None
    choices = [questionary.Choice(title=format_pick_label(path), value=path) for path in paths]
    return questionary.select("Repository:", choices=choices).unsafe_ask()


def confirm(text: str) -> bool:
    return bool(questionary.confirm(text, default=False).unsafe_ask())
