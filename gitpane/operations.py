"""Mutating git operations with progress tracking."""

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from typing import TYPE_CHECKING

from gitpane import git_ops, parsers
from gitpane.models import CommandResult, Outcome

if TYPE_CHECKING:
    from gitpane.context import Context
    from gitpane.repository import RepositoryState

logger = logging.getLogger(__name__)

Continuation = Callable[[CommandResult], None]


class OperationExecutor:
    """Runs one mutating command at a time for a repository."""

    def __init__(self, state: "RepositoryState") -> None:
        self.state = state

    @property
    def context(self) -> "Context":
        return self.state.context

    def execute(
        self, label: str, args: Sequence[str], on_complete: Continuation | None = None
    ) -> Future | None:
        """Start an operation; returns None when another one is running.

        The busy flag is set before this returns and cleared only after the
        continuation (by default a full refresh) has finished.
        """
        if not self.state.begin_operation(label):
            self.context.log_status(
                f"Another operation is in progress: {self.state.operation_label}", Outcome.ERROR
            )
            return None
        self.context.log_status(f"Starting operation: {label}...")
        return self.context.submit(self._run, label, list(args), on_complete)

    def _run(
        self, label: str, args: list[str], on_complete: Continuation | None
    ) -> CommandResult:
        try:
            result = self.context.runner.run(self.state.path, args, merge_stderr=True)
            outcome = parsers.classify_output(result.text, result.exit_code)
            if outcome is Outcome.ERROR:
                message = f"Operation failed: {label}"
                detail = parsers.first_line(result.text)
                if detail:
                    message = f"{message}: {detail}"
            else:
                message = f"Operation completed: {label}"
            self.context.log_status(message, outcome)

            if on_complete is None:
                self.state.refresh()
            else:
                on_complete(result)
            return result
        except Exception:
            logger.exception("%s failed in %s", label, self.state.path)
            self.context.log_status(f"Operation failed: {label}", Outcome.ERROR)
            raise
        finally:
            self.context.post(self.state.end_operation)

    def _reject(self, reason: str) -> None:
        self.context.log_status(reason, Outcome.ERROR)

    def pull(self) -> Future | None:
        return self.execute("Pull", git_ops.pull_args())

    def push(self, remote: str = "origin", branch: str | None = None) -> Future | None:
        return self.execute("Push", git_ops.push_args(remote, branch))

    def fetch(self, remote: str | None = None) -> Future | None:
        return self.execute("Fetch", git_ops.fetch_args(remote))

    def commit(self, message: str) -> Future | None:
        if not message.strip():
            self._reject("Commit message cannot be empty")
            return None
        return self.execute("Commit", git_ops.commit_args(message))

    def stage(self, file_path: str) -> Future | None:
        return self.execute("Stage file", git_ops.stage_args(file_path))

    def unstage(self, file_path: str) -> Future | None:
        return self.execute("Unstage file", git_ops.unstage_args(file_path))

    def stage_all(self) -> Future | None:
        return self.execute("Stage all files", git_ops.stage_all_args())

    def checkout(self, branch: str) -> Future | None:
        return self.execute("Checkout branch", git_ops.checkout_args(branch))

    def create_branch(self, name: str) -> Future | None:
        if not name.strip():
            self._reject("Branch name cannot be empty")
            return None
        return self.execute("Create branch", git_ops.create_branch_args(name.strip()))

    def create_stash(self, message: str | None = None) -> Future | None:
        return self.execute("Create stash", git_ops.stash_push_args(message))

    def apply_stash(self, index: int) -> Future | None:
        return self.execute("Apply stash", git_ops.stash_apply_args(index))

    def drop_stash(self, index: int) -> Future | None:
        return self.execute("Drop stash", git_ops.stash_drop_args(index))

    def discard_changes(self, file_path: str) -> Future | None:
        """Throw away working tree edits to file_path. Not reversible."""
        return self.execute("Discard changes", git_ops.discard_args(file_path))
