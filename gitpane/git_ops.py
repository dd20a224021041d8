"""Git subprocess operations."""

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from gitpane.models import CommandResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -1
MISSING_BINARY_EXIT_CODE = 127


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return ""


class GitRunner:
    """Runs git scoped to a working directory and never raises on failure."""

    def __init__(self, git_binary: str = "git", timeout: float | None = None) -> None:
        self.git_binary = git_binary
        self.timeout = timeout

    def command(self, path: Path, args: Sequence[str]) -> list[str]:
        """Build the argument vector for a git invocation in path."""
        return [self.git_binary, "-C", str(path), *args]

    def run(self, path: Path, args: Sequence[str], merge_stderr: bool = False) -> CommandResult:
        """Run git in path and return its output and exit code.

        stderr is discarded unless merge_stderr is set, in which case it is
        interleaved with stdout the same way a terminal would show it.
        """
        cmd = self.command(path, args)
        logger.debug("running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("git %s timed out after %s seconds in %s", args[0], self.timeout, path)
            partial = _decode(exc.output)
            message = f"fatal: git {args[0]} timed out after {self.timeout:g} seconds"
            text = f"{partial}\n{message}" if partial else message
            return CommandResult(text=text, exit_code=TIMEOUT_EXIT_CODE, timed_out=True)
        except OSError as exc:
            logger.warning("unable to run %s: %s", self.git_binary, exc)
            return CommandResult(
                text=f"fatal: {exc.strerror or exc}", exit_code=MISSING_BINARY_EXIT_CODE
            )

        text = _decode(result.stdout)
        if result.returncode != 0:
            logger.warning("git %s exited with %d in %s", " ".join(args), result.returncode, path)
        return CommandResult(text=text, exit_code=result.returncode)

    def output(self, path: Path, args: Sequence[str]) -> str:
        """Run a read-only query and return stdout, or "" on failure."""
        result = self.run(path, args)
        return result.text if result.ok else ""


def branch_args() -> list[str]:
    return ["branch", "--list", "--all"]


def current_branch_args() -> list[str]:
    return ["symbolic-ref", "--short", "-q", "HEAD"]


def remote_args() -> list[str]:
    return ["remote", "-v"]


def status_args() -> list[str]:
    return ["status", "--porcelain"]


def stash_list_args() -> list[str]:
    return ["stash", "list"]


def log_args(limit: int | None = None) -> list[str]:
    args = ["log", "--pretty=format:%H|%s|%an|%ad", "--date=short"]
    if limit:
        args.extend(["-n", str(limit)])
    return args


def diff_args(file_path: str, staged: bool = False) -> list[str]:
    args = ["diff"]
    if staged:
        args.append("--cached")
    return [*args, "--", file_path]


def pull_args() -> list[str]:
    return ["pull"]


def push_args(remote: str = "origin", branch: str | None = None) -> list[str]:
    args = ["push", remote]
    if branch:
        args.append(branch)
    return args


def fetch_args(remote: str | None = None) -> list[str]:
    return ["fetch", remote] if remote else ["fetch", "--all"]


def commit_args(message: str) -> list[str]:
    return ["commit", "-m", message]


def stage_args(file_path: str) -> list[str]:
    return ["add", "--", file_path]


def unstage_args(file_path: str) -> list[str]:
    return ["reset", "HEAD", "--", file_path]


def stage_all_args() -> list[str]:
    return ["add", "."]


def checkout_args(branch: str) -> list[str]:
    return ["checkout", branch]


def create_branch_args(name: str) -> list[str]:
    return ["checkout", "-b", name]


def stash_push_args(message: str | None = None) -> list[str]:
    if message:
        return ["stash", "push", "-m", message]
    return ["stash", "push"]


def stash_apply_args(index: int) -> list[str]:
    return ["stash", "apply", f"stash@{{{index}}}"]


def stash_drop_args(index: int) -> list[str]:
    return ["stash", "drop", f"stash@{{{index}}}"]


def discard_args(file_path: str) -> list[str]:
    return ["checkout", "--", file_path]


def clone_args(url: str, dest: Path) -> list[str]:
    return ["clone", url, str(dest)]


def init_args() -> list[str]:
    return ["init"]
