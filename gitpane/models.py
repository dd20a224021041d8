"""Data models for gitpane."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath


class FileStatus(str, Enum):
    """Working tree status of a single path."""

    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"


class Outcome(str, Enum):
    """Classification of a status log entry."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CommandResult:
    """Text and exit status of one git invocation."""

    text: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class Branch:
    """A local or remote-tracking branch."""

    name: str
    is_remote: bool
    is_current: bool

    @property
    def is_alias(self) -> bool:
        """True for symbolic rows such as "origin/HEAD -> origin/main"."""
        return " -> " in self.name


@dataclass(frozen=True)
class Remote:
    """A configured remote; kind is "fetch", "push" or ""."""

    name: str
    url: str
    kind: str


@dataclass(frozen=True)
class FileChange:
    """One line of porcelain status output."""

    path: str
    status: FileStatus
    staged: bool

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name


@dataclass(frozen=True)
class Stash:
    index: int
    description: str

    @property
    def ref(self) -> str:
        return f"stash@{{{self.index}}}"


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str
    author: str
    date: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass(frozen=True)
class StatusMessage:
    """An entry in the operational status log."""

    text: str
    outcome: Outcome = Outcome.INFO
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RepositorySnapshot:
    """Immutable view of a repository handed to the presentation layer."""

    id: str
    path: Path
    display_name: str
    current_branch: str
    branches: tuple[Branch, ...]
    remotes: tuple[Remote, ...]
    changes: tuple[FileChange, ...]
    stashes: tuple[Stash, ...]
    commits: tuple[Commit, ...]
    operation_in_progress: bool
    operation_label: str

    @property
    def staged_changes(self) -> tuple[FileChange, ...]:
        return tuple(change for change in self.changes if change.staged)

    @property
    def unstaged_changes(self) -> tuple[FileChange, ...]:
        return tuple(change for change in self.changes if not change.staged)

    @property
    def local_branches(self) -> tuple[Branch, ...]:
        return tuple(branch for branch in self.branches if not branch.is_remote)

    @property
    def remote_branches(self) -> tuple[Branch, ...]:
        return tuple(branch for branch in self.branches if branch.is_remote)
