from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import GIT_AVAILABLE, SyncExecutor, init_repo, run

from gitpane.cli import main
from gitpane.context import Context
from gitpane.git_ops import GitRunner
from gitpane.models import FileStatus
from gitpane.registry import RepositoryRegistry
from gitpane.settings import Settings
from gitpane.store import PreferenceStore

pytestmark = pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")


@pytest.fixture
def registry(settings: Settings):
    context = Context(
        settings,
        runner=GitRunner("git", timeout=30),
        store=PreferenceStore(settings.state_dir),
        executor=SyncExecutor(),
    )
    reg = RepositoryRegistry(context)
    yield reg
    reg.shutdown()


def _stub_git(tmp_path: Path, body: str) -> str:
    script = tmp_path / "stub-git"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(0o755)
    return str(script)


def _settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"state_dir": str(tmp_path / "state")}), encoding="utf-8")
    return path


def test_runner_decodes_and_reports_exit_code(tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    git = GitRunner()
    assert git.run(root, ["rev-parse", "--abbrev-ref", "HEAD"]).text.strip() == "main"

    failed = git.run(root, ["checkout", "does-not-exist"], merge_stderr=True)
    assert failed.exit_code != 0
    assert "error:" in failed.text
    assert git.output(root, ["checkout", "does-not-exist"]) == ""


def test_runner_reports_missing_binary(tmp_path: Path) -> None:
    result = GitRunner("definitely-not-git-binary").run(tmp_path, ["status"])
    assert result.exit_code == 127
    assert result.text.startswith("fatal:")


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_runner_times_out_slow_command(tmp_path: Path) -> None:
    git = GitRunner(_stub_git(tmp_path, "printf partial\nexec sleep 5"), timeout=0.5)
    result = git.run(tmp_path, ["pull"], merge_stderr=True)
    assert result.timed_out
    assert result.exit_code == -1
    assert not result.ok
    assert result.text.endswith("fatal: git pull timed out after 0.5 seconds")


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_runner_treats_undecodable_output_as_empty(tmp_path: Path) -> None:
    git = GitRunner(_stub_git(tmp_path, r"printf '\377\376'"))
    result = git.run(tmp_path, ["log"])
    assert result.ok
    assert result.text == ""


def test_open_reads_real_repository(registry: RepositoryRegistry, tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    run(["git", "branch", "feature"], cwd=root)
    run(["git", "remote", "add", "origin", "https://example.com/repo.git"], cwd=root)
    (root / "README.md").write_text("changed\n")
    (root / "notes.txt").write_text("new\n")

    state = registry.open(root)
    assert state is not None
    snapshot = state.snapshot()
    assert snapshot.current_branch == "main"
    assert sorted(b.name for b in snapshot.local_branches) == ["feature", "main"]
    assert [b.name for b in snapshot.branches if b.is_current] == ["main"]
    assert [(r.name, r.kind) for r in snapshot.remotes] == [("origin", "fetch")]
    changes = {c.path: c for c in snapshot.changes}
    assert changes["README.md"].status is FileStatus.MODIFIED
    assert not changes["README.md"].staged
    assert changes["notes.txt"].status is FileStatus.UNTRACKED
    assert [c.message for c in snapshot.commits] == ["init"]


def test_stage_commit_and_branch(registry: RepositoryRegistry, tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    (root / "app.py").write_text("print('hi')\n")
    state = registry.open(root)
    assert state is not None

    state.operations.stage("app.py").result()
    (change,) = state.snapshot().changes
    assert change.staged
    assert change.status is FileStatus.ADDED
    assert "+print('hi')" in state.diff("app.py", staged=True)

    state.operations.commit("Add app | with pipe").result()
    state.fetch_commits()
    snapshot = state.snapshot()
    assert snapshot.changes == ()
    assert snapshot.commits[0].message == "Add app | with pipe"
    assert snapshot.commits[0].author == "Test"

    state.operations.create_branch("topic").result()
    assert state.snapshot().current_branch == "topic"
    state.operations.checkout("main").result()
    assert state.snapshot().current_branch == "main"


def test_stash_and_discard(registry: RepositoryRegistry, tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    state = registry.open(root)
    assert state is not None

    (root / "README.md").write_text("edited\n")
    state.operations.create_stash("keep this").result()
    snapshot = state.snapshot()
    assert snapshot.changes == ()
    assert snapshot.stashes[0].index == 0
    assert snapshot.stashes[0].description == "On main: keep this"

    state.operations.apply_stash(0).result()
    assert [c.path for c in state.snapshot().changes] == ["README.md"]

    state.operations.discard_changes("README.md").result()
    assert state.snapshot().changes == ()
    assert (root / "README.md").read_text() == "hello\n"


def test_create_and_clone(registry: RepositoryRegistry, tmp_path: Path) -> None:
    source = init_repo(tmp_path / "source")
    registry.clone(str(source), tmp_path / "clones" / "copy").result()
    assert registry.error_message is None
    clone = registry.current
    assert clone is not None
    assert clone.snapshot().commits[0].message == "init"

    registry.create(tmp_path / "brand" / "new").result()
    assert registry.current is not None
    assert registry.current.path == (tmp_path / "brand" / "new").resolve()
    assert registry.context.store.saved_repositories() == [
        clone.path,
        registry.current.path,
    ]


def test_clone_of_missing_source_fails(registry: RepositoryRegistry, tmp_path: Path) -> None:
    registry.clone(str(tmp_path / "nowhere"), tmp_path / "copy").result()
    assert registry.error_message is not None
    assert registry.error_message.startswith("Failed to clone: ")
    assert registry.repositories == []


def test_cli_status_commit_and_log(tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    (root / "README.md").write_text("changed\n")
    settings_file = str(_settings_file(tmp_path))
    cli = CliRunner()

    result = cli.invoke(main, ["--settings", settings_file, "status", str(root)])
    assert result.exit_code == 0, result.output
    assert "On branch main" in result.output
    assert "README.md" in result.output

    result = cli.invoke(main, ["--settings", settings_file, "stage", "-C", str(root), "README.md"])
    assert result.exit_code == 0, result.output
    result = cli.invoke(
        main, ["--settings", settings_file, "commit", "-C", str(root), "-m", "Edit"]
    )
    assert result.exit_code == 0, result.output

    result = cli.invoke(main, ["--settings", settings_file, "log", str(root)])
    assert result.exit_code == 0, result.output
    assert result.output.index("Edit") < result.output.index("init")

    result = cli.invoke(main, ["--settings", settings_file, "checkout", "-C", str(root), "nope"])
    assert result.exit_code == 1


def test_cli_open_rejects_plain_directory(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    settings_file = str(_settings_file(tmp_path))
    result = CliRunner().invoke(main, ["--settings", settings_file, "open", str(plain)])
    assert result.exit_code != 0
    assert "Not a valid Git repository" in result.output


def test_cli_init_remembers_repository(tmp_path: Path) -> None:
    settings_file = str(_settings_file(tmp_path))
    cli = CliRunner()
    target = tmp_path / "created"
    result = cli.invoke(main, ["--settings", settings_file, "init", str(target)])
    assert result.exit_code == 0, result.output
    assert (target / ".git").is_dir()

    result = cli.invoke(main, ["--settings", settings_file, "repos"])
    assert result.exit_code == 0
    assert str(target.resolve()) in result.output
