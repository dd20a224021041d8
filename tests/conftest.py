from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterator
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Sequence

import pytest

from gitpane.context import Context
from gitpane.git_ops import GitRunner
from gitpane.models import CommandResult
from gitpane.settings import Settings
from gitpane.store import PreferenceStore

GIT_AVAILABLE = subprocess.run(["git", "--version"], capture_output=True).returncode == 0

Response = CommandResult | str | Callable[[Path, tuple[str, ...]], CommandResult | str]


class SyncExecutor(Executor):
    """Runs submitted work inline so engine tests are deterministic."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class FakeRunner(GitRunner):
    """GitRunner stand-in answering from a table keyed by the argument tuple."""

    def __init__(self, responses: dict[tuple[str, ...], Response] | None = None) -> None:
        super().__init__("git")
        self.responses: dict[tuple[str, ...], Response] = dict(responses or {})
        self.calls: list[tuple[Path, tuple[str, ...]]] = []

    def run(self, path: Path, args: Sequence[str], merge_stderr: bool = False) -> CommandResult:
        key = tuple(args)
        self.calls.append((path, key))
        response = self.responses.get(key, "")
        if callable(response):
            response = response(path, key)
        if isinstance(response, str):
            return CommandResult(text=response, exit_code=0)
        return response

    def commands(self) -> list[tuple[str, ...]]:
        return [args for _, args in self.calls]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(poll_interval=3600.0, command_timeout=30.0, state_dir=tmp_path / "state")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def context(settings: Settings, runner: FakeRunner) -> Iterator[Context]:
    ctx = Context(
        settings,
        runner=runner,
        store=PreferenceStore(settings.state_dir),
        executor=SyncExecutor(),
    )
    yield ctx
    ctx.shutdown()


def run(cmd: list[str], cwd: Path | None = None) -> None:
    subprocess.run(cmd, cwd=str(cwd) if cwd else None, check=True, capture_output=True)


def init_repo(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    run(["git", "init", "-q", "-b", "main"], cwd=root)
    run(["git", "config", "user.email", "test@example.com"], cwd=root)
    run(["git", "config", "user.name", "Test"], cwd=root)
    (root / "README.md").write_text("hello\n")
    run(["git", "add", "."], cwd=root)
    run(["git", "commit", "-q", "-m", "init"], cwd=root)
    return root
