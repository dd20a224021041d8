import logging
import sqlite3
import sys
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

import click

from gitpane import parsers, ui
from gitpane.context import Context
from gitpane.models import CommandResult, Outcome
from gitpane.operations import OperationExecutor
from gitpane.registry import (
    NOT_A_REPOSITORY,
    RepositoryRegistry,
    canonical_path,
    is_git_repository,
)
from gitpane.repository import RepositoryState
from gitpane.settings import Settings, SettingsError, load_settings

logger = logging.getLogger(__name__)

path_argument = click.argument(
    "path", required=False, type=click.Path(file_okay=False, path_type=Path)
)


def configure_logging(verbose: bool, log_file: Path | None = None) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    kwargs: dict[str, object] = {
        "level": level,
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    }
    if log_file is not None:
        kwargs["filename"] = str(log_file)
    logging.basicConfig(**kwargs)  # type: ignore[arg-type]


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _open_state(ctx: click.Context, path: Path | None) -> RepositoryState:
    """Load a repository for a one-shot command without registering it."""
    target = canonical_path(path or Path.cwd())
    if not is_git_repository(target):
        raise click.ClickException(f"{NOT_A_REPOSITORY}: {target}")
    context = Context(_settings(ctx))
    ctx.call_on_close(context.shutdown)
    state = RepositoryState(target, context)
    state.apply(state.load())
    return state


def _print_status_log(context: Context) -> None:
    color = sys.stdout.isatty()
    for message in context.status_log.messages():
        click.echo(ui.render_status_message(message, color=color))


def _run_operation(
    ctx: click.Context,
    path: Path | None,
    start: Callable[[OperationExecutor], Future | None],
) -> None:
    state = _open_state(ctx, path)
    future = start(state.operations)
    if future is None:
        _print_status_log(state.context)
        raise SystemExit(1)
    result: CommandResult = future.result()
    if result.text.strip():
        click.echo(result.text.rstrip())
    if parsers.classify_output(result.text, result.exit_code) is Outcome.ERROR:
        raise SystemExit(1)


@click.group(context_settings={"help_option_names": ["-h", "--help"]}, invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option(
    "--settings",
    "settings_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (defaults to ~/.config/gitpane/settings.json).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write logs to a file (useful with the TUI).",
)
@click.option(
    "--path",
    "paths",
    multiple=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository to open in the TUI; may be repeated.",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    settings_file: Path | None,
    log_file: Path | None,
    paths: tuple[Path, ...],
) -> None:
    """gitpane: a terminal front end for git repositories."""
    in_tui = ctx.invoked_subcommand is None
    if not in_tui or log_file is not None or verbose:
        configure_logging(verbose, log_file)
    try:
        settings = load_settings(settings_file)
    except SettingsError as exc:
        raise click.ClickException(str(exc)) from exc
    logger.debug("loaded settings: %s", settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    if not in_tui:
        return

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise click.ClickException("the interactive interface needs a terminal")

    from gitpane.tui import run_tui

    open_paths = list(paths)
    if not open_paths and is_git_repository(canonical_path(Path.cwd())):
        open_paths.append(Path.cwd())
    run_tui(settings, open_paths)


@main.command("open")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def open_command(ctx: click.Context, path: Path) -> None:
    """Remember a repository so the TUI opens it on start."""
    context = Context(_settings(ctx))
    registry = RepositoryRegistry(context)
    try:
        registry.load_saved()
        state = registry.open(path)
    finally:
        registry.shutdown()
    if state is None:
        raise click.ClickException(f"{registry.error_message}: {canonical_path(path)}")
    click.echo(state.path)


@main.command("repos")
@click.option("--pick", is_flag=True, help="Choose a repository and print its path.")
@click.pass_context
def repos_command(ctx: click.Context, pick: bool) -> None:
    """List saved repositories."""
    context = Context(_settings(ctx))
    ctx.call_on_close(context.shutdown)
    try:
        paths = context.store.saved_repositories()
    except sqlite3.Error as exc:
        raise click.ClickException(f"unable to read saved repositories: {exc}") from exc
    if pick:
        selection = ui.pick_repository(paths)
        if selection:
            click.echo(selection)
        return
    for path in paths:
        marker = "" if is_git_repository(path) else "  (missing)"
        click.echo(f"{path}{marker}")


@main.command("status")
@path_argument
@click.pass_context
def status_command(ctx: click.Context, path: Path | None) -> None:
    """Show the current branch and working tree changes."""
    snapshot = _open_state(ctx, path).snapshot()
    click.echo(f"On branch {snapshot.current_branch or '(detached)'}")
    if not snapshot.changes:
        click.echo("nothing to commit, working tree clean")
        return
    lines = ui.render_changes_lines(snapshot.changes, color=sys.stdout.isatty())
    click.echo(ui.render_table(lines))


@main.command("log")
@path_argument
@click.option("-n", "--max-count", type=int, default=20, show_default=True)
@click.pass_context
def log_command(ctx: click.Context, path: Path | None, max_count: int) -> None:
    """Show commit history, newest first."""
    state = _open_state(ctx, path)
    state.fetch_commits()
    commits = state.snapshot().commits[:max_count]
    click.echo(ui.render_table(ui.render_commit_lines(commits)))


@main.command("branches")
@path_argument
@click.pass_context
def branches_command(ctx: click.Context, path: Path | None) -> None:
    """List local and remote branches."""
    click.echo(ui.render_table(ui.render_branch_lines(_open_state(ctx, path).snapshot().branches)))


@main.command("remotes")
@path_argument
@click.pass_context
def remotes_command(ctx: click.Context, path: Path | None) -> None:
    """List remotes."""
    click.echo(ui.render_table(ui.render_remote_lines(_open_state(ctx, path).snapshot().remotes)))


@main.command("stashes")
@path_argument
@click.pass_context
def stashes_command(ctx: click.Context, path: Path | None) -> None:
    """List stashes."""
    click.echo(ui.render_table(ui.render_stash_lines(_open_state(ctx, path).snapshot().stashes)))


@main.command("diff")
@click.argument("file")
@click.option("--staged", is_flag=True, help="Diff the index instead of the working tree.")
@click.option("-C", "path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def diff_command(ctx: click.Context, file: str, staged: bool, path: Path | None) -> None:
    """Print the diff of one file."""
    click.echo(_open_state(ctx, path).diff(file, staged=staged), nl=False)


@main.command("clone")
@click.argument("url")
@click.argument("dest", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def clone_command(ctx: click.Context, url: str, dest: Path) -> None:
    """Clone a repository and remember it."""
    context = Context(_settings(ctx))
    registry = RepositoryRegistry(context)
    try:
        registry.load_saved()
        registry.clone(url, dest).result()
    finally:
        registry.shutdown()
    if registry.error_message:
        raise click.ClickException(registry.error_message)
    click.echo(canonical_path(dest))


@main.command("init")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def init_command(ctx: click.Context, path: Path) -> None:
    """Create a new repository and remember it."""
    context = Context(_settings(ctx))
    registry = RepositoryRegistry(context)
    try:
        registry.load_saved()
        registry.create(path).result()
    finally:
        registry.shutdown()
    if registry.error_message:
        raise click.ClickException(registry.error_message)
    click.echo(canonical_path(path))


def _repo_option(func: Callable) -> Callable:
    return click.option(
        "-C", "path", type=click.Path(file_okay=False, path_type=Path), help="Repository path."
    )(func)


@main.command("stage")
@click.argument("files", nargs=-1)
@click.option("-A", "--all", "stage_everything", is_flag=True, help="Stage every change.")
@_repo_option
@click.pass_context
def stage_command(
    ctx: click.Context, files: tuple[str, ...], stage_everything: bool, path: Path | None
) -> None:
    """Stage files for the next commit."""
    if stage_everything:
        _run_operation(ctx, path, lambda ops: ops.stage_all())
        return
    if not files:
        raise click.UsageError("give at least one file or --all")
    for file in files:
        _run_operation(ctx, path, lambda ops, file=file: ops.stage(file))


@main.command("unstage")
@click.argument("files", nargs=-1, required=True)
@_repo_option
@click.pass_context
def unstage_command(ctx: click.Context, files: tuple[str, ...], path: Path | None) -> None:
    """Remove files from the index."""
    for file in files:
        _run_operation(ctx, path, lambda ops, file=file: ops.unstage(file))


@main.command("commit")
@click.option("-m", "--message", required=True)
@_repo_option
@click.pass_context
def commit_command(ctx: click.Context, message: str, path: Path | None) -> None:
    """Commit staged changes."""
    _run_operation(ctx, path, lambda ops: ops.commit(message))


@main.command("pull")
@_repo_option
@click.pass_context
def pull_command(ctx: click.Context, path: Path | None) -> None:
    """Pull from the upstream branch."""
    _run_operation(ctx, path, lambda ops: ops.pull())


@main.command("push")
@click.argument("remote", default="origin")
@click.argument("branch", required=False)
@_repo_option
@click.pass_context
def push_command(ctx: click.Context, remote: str, branch: str | None, path: Path | None) -> None:
    """Push to a remote."""
    _run_operation(ctx, path, lambda ops: ops.push(remote, branch))


@main.command("fetch")
@click.argument("remote", required=False)
@_repo_option
@click.pass_context
def fetch_command(ctx: click.Context, remote: str | None, path: Path | None) -> None:
    """Fetch one remote, or all of them."""
    _run_operation(ctx, path, lambda ops: ops.fetch(remote))


@main.command("checkout")
@click.argument("branch")
@_repo_option
@click.pass_context
def checkout_command(ctx: click.Context, branch: str, path: Path | None) -> None:
    """Switch branches."""
    _run_operation(ctx, path, lambda ops: ops.checkout(branch))


@main.command("branch")
@click.argument("name")
@_repo_option
@click.pass_context
def branch_command(ctx: click.Context, name: str, path: Path | None) -> None:
    """Create a branch and switch to it."""
    _run_operation(ctx, path, lambda ops: ops.create_branch(name))


@main.command("stash")
@click.option("-m", "--message")
@_repo_option
@click.pass_context
def stash_command(ctx: click.Context, message: str | None, path: Path | None) -> None:
    """Stash working tree changes."""
    _run_operation(ctx, path, lambda ops: ops.create_stash(message))


@main.command("apply-stash")
@click.argument("index", type=int, default=0)
@_repo_option
@click.pass_context
def apply_stash_command(ctx: click.Context, index: int, path: Path | None) -> None:
    """Apply stash@{INDEX} without dropping it."""
    _run_operation(ctx, path, lambda ops: ops.apply_stash(index))


@main.command("drop-stash")
@click.argument("index", type=int, default=0)
@_repo_option
@click.pass_context
def drop_stash_command(ctx: click.Context, index: int, path: Path | None) -> None:
    """Delete stash@{INDEX}."""
    _run_operation(ctx, path, lambda ops: ops.drop_stash(index))


@main.command("discard")
@click.argument("file")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
@_repo_option
@click.pass_context
def discard_command(ctx: click.Context, file: str, yes: bool, path: Path | None) -> None:
    """Throw away working tree edits to FILE."""
    if not yes:
        if not sys.stdin.isatty():
            raise click.UsageError("refusing to discard without --yes")
        if not ui.confirm(f"Discard changes to {file}? This cannot be undone."):
            return
    _run_operation(ctx, path, lambda ops: ops.discard_changes(file))


if __name__ == "__main__":
    main()
