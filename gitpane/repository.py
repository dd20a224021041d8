"""Per-directory repository state and its refresh logic."""

import logging
import shlex
import subprocess
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path

from gitpane import git_ops, parsers
from gitpane.context import REPOSITORY_EVENT, Context
from gitpane.models import (
    Branch,
    Commit,
    FileChange,
    Outcome,
    Remote,
    RepositorySnapshot,
    Stash,
)
from gitpane.operations import OperationExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    """Parsed output of the five status queries, applied as one unit."""

    current_branch: str
    branches: list[Branch]
    remotes: list[Remote]
    changes: list[FileChange]
    stashes: list[Stash]


class RepositoryState:
    """Mutable snapshot of one working directory.

    Fields are only replaced on the UI thread, under state_lock, so a
    snapshot never sees half of a refresh.
    """

    def __init__(self, path: Path, context: Context) -> None:
        self.id = uuid.uuid4().hex
        self.path = path
        self.display_name = path.name or str(path)
        self.context = context
        self.state_lock = threading.Lock()

        self.current_branch = ""
        self.branches: list[Branch] = []
        self.remotes: list[Remote] = []
        self.changes: list[FileChange] = []
        self.stashes: list[Stash] = []
        self.commits: list[Commit] = []
        self.operation_in_progress = False
        self.operation_label = ""
        # bumped whenever fresher state lands or an operation starts
        self.generation = 0

        self.operations = OperationExecutor(self)

    def __repr__(self) -> str:
        return f"RepositoryState({str(self.path)!r})"

    def snapshot(self) -> RepositorySnapshot:
        with self.state_lock:
            return RepositorySnapshot(
                id=self.id,
                path=self.path,
                display_name=self.display_name,
                current_branch=self.current_branch,
                branches=tuple(self.branches),
                remotes=tuple(self.remotes),
                changes=tuple(self.changes),
                stashes=tuple(self.stashes),
                commits=tuple(self.commits),
                operation_in_progress=self.operation_in_progress,
                operation_label=self.operation_label,
            )

    @property
    def is_busy(self) -> bool:
        with self.state_lock:
            return self.operation_in_progress

    def _notify(self) -> None:
        self.context.events.emit(REPOSITORY_EVENT, self)

    def _query(self, args: list[str]) -> str:
        return self.context.runner.output(self.path, args)

    def load(self) -> RefreshResult:
        """Run the status queries without touching any field."""
        return RefreshResult(
            branches=parsers.parse_branches(self._query(git_ops.branch_args())),
            current_branch=parsers.parse_current_branch(self._query(git_ops.current_branch_args())),
            remotes=parsers.parse_remotes(self._query(git_ops.remote_args())),
            changes=parsers.parse_status(self._query(git_ops.status_args())),
            stashes=parsers.parse_stashes(self._query(git_ops.stash_list_args())),
        )

    def apply(self, result: RefreshResult) -> None:
        with self.state_lock:
            self.current_branch = result.current_branch
            self.branches = result.branches
            self.remotes = result.remotes
            self.changes = result.changes
            self.stashes = result.stashes
            self.generation += 1
        self._notify()

    def refresh(self) -> None:
        """Reload branches, current branch, remotes, changes and stashes.

        Blocks on git; call it from a worker (see refresh_async).
        """
        self.context.log_status("Refreshing repository status...")
        result = self.load()
        self.context.post(lambda: self.apply(result))
        self.context.log_status("Repository status refreshed", Outcome.SUCCESS)

    def refresh_async(self) -> Future:
        return self.context.submit(self.refresh)

    def refresh_changes(self) -> None:
        """Reload only the change list.

        The result is dropped if a refresh landed or an operation started
        while git status was running.
        """
        with self.state_lock:
            generation = self.generation
        changes = parsers.parse_status(self._query(git_ops.status_args()))

        def apply_changes() -> None:
            with self.state_lock:
                if self.operation_in_progress or self.generation != generation:
                    logger.debug("dropping stale change list for %s", self.path)
                    return
                self.changes = changes
            self._notify()

        self.context.post(apply_changes)

    def fetch_commits(self) -> None:
        output = self._query(git_ops.log_args(self.context.settings.log_limit))
        commits = parsers.parse_commits(output)
        if not commits:
            logger.debug("no commits found in %s", self.path)

        def apply_commits() -> None:
            with self.state_lock:
                self.commits = commits
            self._notify()

        self.context.post(apply_commits)

    def fetch_commits_async(self) -> Future:
        return self.context.submit(self.fetch_commits)

    def diff(self, file_path: str, staged: bool = False) -> str:
        return self._query(git_ops.diff_args(file_path, staged))

    def request_diff(
        self, file_path: str, on_ready: Callable[[str], None], staged: bool = False
    ) -> Future:
        """Load a diff on a worker and deliver the text on the UI thread."""

        def runner() -> None:
            text = self.diff(file_path, staged)
            self.context.post(lambda: on_ready(text))

        return self.context.submit(runner)

    def open_external_diff(self, file_path: str) -> Future | None:
        """Launch the configured external diff tool for a path."""
        tool = self.context.settings.diff_tool
        if not tool:
            self.context.log_status("No external diff tool configured", Outcome.ERROR)
            return None

        cmd = [*shlex.split(tool), "--", file_path]

        def runner() -> None:
            try:
                subprocess.run(
                    cmd,
                    cwd=self.path,
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                )
            except (OSError, subprocess.CalledProcessError) as exc:
                stderr = getattr(exc, "stderr", None) or str(exc)
                self.context.log_status(
                    f"Diff tool failed for {file_path}: {stderr.strip()}", Outcome.ERROR
                )

        return self.context.submit(runner)

    def begin_operation(self, label: str) -> bool:
        """Mark an operation as running; False when one already is."""
        with self.state_lock:
            if self.operation_in_progress:
                return False
            self.operation_in_progress = True
            self.operation_label = label
            self.generation += 1
        self._notify()
        return True

    def end_operation(self) -> None:
        with self.state_lock:
            self.operation_in_progress = False
            self.operation_label = ""
        self._notify()
