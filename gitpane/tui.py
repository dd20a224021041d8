"""Textual TUI for gitpane."""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rich.syntax import Syntax
from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Input, Static

from gitpane.context import LOG_EVENT, Context
from gitpane.models import (
    Branch,
    Commit,
    FileChange,
    Outcome,
    RepositorySnapshot,
    Stash,
    StatusMessage,
)
from gitpane.registry import RepositoryRegistry
from gitpane.repository import RepositoryState
from gitpane.settings import Settings
from gitpane.ui import format_timestamp

COMMAND_BAR = (
    "s: stage/unstage  a: stage all  c: commit  p: pull  P: push  f: fetch  b: new branch  "
    "enter: checkout/apply  z: stash  x: discard  d: diff  o: open  [/]: switch  q: quit"
)
SPINNER = "|/-\\"
LOG_LINES = 6

STATUS_STYLES = {
    "modified": "blue",
    "added": "green",
    "deleted": "red",
    "renamed": "magenta",
    "untracked": "grey50",
}

CSS = """
Screen {
    layout: vertical;
}

#command_bar {
    padding: 0 1;
    height: 1;
    color: $text-muted;
}

#repo_line {
    padding: 0 1;
    height: 1;
    text-style: bold;
}

#status_line {
    padding: 0 1;
    height: 1;
}

.pane-row {
    height: 1fr;
}

.pane {
    width: 1fr;
    border: round $primary-background;
}

.pane:focus-within {
    border: round $primary;
}

#log_panel {
    height: 8;
    padding: 0 1;
    border-top: solid $primary-background;
}

.modal {
    align: center middle;
}

.modal-body {
    width: 72;
    max-width: 90;
    height: auto;
    border: thick $primary;
    background: $surface;
    padding: 1 2;
}

.diff-body {
    width: 90%;
    height: 80%;
    border: thick $primary;
    background: $surface;
    padding: 0 1;
}

.modal-title {
    margin-bottom: 1;
    text-style: bold;
}

.modal-hint {
    margin-top: 1;
    color: $text-muted;
}

.modal-input {
    margin-top: 1;
}
"""


def _change_row(change: FileChange) -> list[Text]:
    return [
        Text("●" if change.staged else " ", style="green"),
        Text(change.status.value, style=STATUS_STYLES.get(change.status.value, "")),
        Text(change.path),
    ]


def _branch_row(branch: Branch) -> list[Text]:
    marker = "*" if branch.is_current else ""
    style = "dim" if branch.is_remote else ("bold" if branch.is_current else "")
    return [Text(marker, style="green"), Text(branch.name, style=style)]


def _commit_row(commit: Commit) -> list[Text]:
    return [
        Text(commit.short_hash, style="yellow"),
        Text(commit.date),
        Text(commit.author),
        Text(commit.message),
    ]


def _stash_row(stash: Stash) -> list[Text]:
    return [Text(str(stash.index)), Text(stash.description)]


def _log_line(message: StatusMessage) -> Text:
    style = {Outcome.ERROR: "red", Outcome.SUCCESS: "green"}.get(message.outcome, "")
    return Text(f"[{format_timestamp(message.timestamp)}] {message.text}", style=style)


class ConfirmScreen(ModalScreen[bool]):
    """Simple yes/no modal."""

    BINDINGS = [
        Binding("y", "yes", "Yes"),
        Binding("n", "no", "No"),
        Binding("escape", "no", "No"),
    ]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Static("Press y to confirm, n or Esc to cancel.", classes="modal-hint")

    def action_yes(self) -> None:
        self.dismiss(True)

    def action_no(self) -> None:
        self.dismiss(False)


class TextInputScreen(ModalScreen[str | None]):
    """Text input modal; allow_empty returns "" instead of cancelling."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(
        self, prompt: str, placeholder: str = "Type and press Enter", allow_empty: bool = False
    ) -> None:
        super().__init__()
        self.prompt = prompt
        self.placeholder = placeholder
        self.allow_empty = allow_empty

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Input(placeholder=self.placeholder, classes="modal-input", id="value_input")
                yield Static("Esc to cancel.", classes="modal-hint")

    def on_mount(self) -> None:
        self.query_one("#value_input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        if value or self.allow_empty:
            self.dismiss(value)
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class DiffScreen(ModalScreen[None]):
    """Scrollable diff of one file."""

    BINDINGS = [Binding("escape", "close", "Close"), Binding("q", "close", "Close")]

    def __init__(self, title: str, diff: str) -> None:
        super().__init__()
        self.title_text = title
        self.diff = diff

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with VerticalScroll(classes="diff-body"):
                yield Static(self.title_text, classes="modal-title")
                if self.diff.strip():
                    yield Static(Syntax(self.diff, "diff", theme="ansi_dark", word_wrap=True))
                else:
                    yield Static("No differences.", classes="modal-hint")

    def action_close(self) -> None:
        self.dismiss(None)


class GitpaneApp(App[None]):
    """Main textual application."""

    CSS = CSS
    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("s", "toggle_stage", "Stage"),
        Binding("a", "stage_all", "Stage all"),
        Binding("c", "commit", "Commit"),
        Binding("p", "pull", "Pull"),
        Binding("shift+p", "push", "Push"),
        Binding("f", "fetch", "Fetch", show=False),
        Binding("b", "new_branch", "Branch"),
        Binding("z", "stash", "Stash"),
        Binding("x", "discard", "Discard"),
        Binding("d", "diff", "Diff"),
        Binding("shift+d", "external_diff", "External diff", show=False),
        Binding("o", "open_repository", "Open"),
        Binding("w", "close_repository", "Close", show=False),
        Binding("right_square_bracket", "next_repository", "Next", show=False),
        Binding("left_square_bracket", "previous_repository", "Previous", show=False),
        Binding("r", "refresh", "Refresh"),
        Binding("shift+l", "clear_log", "Clear log", show=False),
    ]

    def __init__(self, settings: Settings, paths: list[Path] | None = None) -> None:
        super().__init__()
        self._ui_thread: threading.Thread | None = None
        self.engine = Context(settings, dispatch=self._dispatch)
        self.registry = RepositoryRegistry(self.engine)
        self.initial_paths = list(paths or [])

        self._dirty = True
        self._log_dirty = True
        self._spinner_index = 0
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static(COMMAND_BAR, id="command_bar")
        yield Static("", id="repo_line")
        yield Static("", id="status_line")
        with Horizontal(classes="pane-row"):
            with Vertical(classes="pane"):
                yield DataTable(id="changes", cursor_type="row")
            with Vertical(classes="pane"):
                yield DataTable(id="commits", cursor_type="row")
        with Horizontal(classes="pane-row"):
            with Vertical(classes="pane"):
                yield DataTable(id="branches", cursor_type="row")
            with Vertical(classes="pane"):
                yield DataTable(id="stashes", cursor_type="row")
        yield Static("", id="log_panel")
        yield Footer()

    def on_mount(self) -> None:
        self._ui_thread = threading.current_thread()
        self.query_one("#changes", DataTable).add_columns("", "STATUS", "PATH")
        self.query_one("#commits", DataTable).add_columns("HASH", "DATE", "AUTHOR", "MESSAGE")
        self.query_one("#branches", DataTable).add_columns("", "BRANCH")
        self.query_one("#stashes", DataTable).add_columns("#", "STASH")
        for table in self.query(DataTable):
            table.zebra_stripes = True

        self._unsubscribe = self.engine.events.subscribe(self._on_engine_event)
        self.registry.load_saved()
        for path in self.initial_paths:
            self.registry.open(path)
        if self.registry.current is None and self.registry.repositories:
            self.registry.select(self.registry.repositories[0])
        self.set_interval(0.25, self._tick)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
        self.registry.shutdown()

    def _dispatch(self, callback: Callable[[], Any]) -> None:
        if self._ui_thread is None or threading.current_thread() is self._ui_thread:
            callback()
        else:
            self.call_from_thread(callback)

    def _on_engine_event(self, event: str, subject: object) -> None:
        if event == LOG_EVENT:
            self._log_dirty = True
        else:
            self._dirty = True

    def _tick(self) -> None:
        snapshot = self._snapshot()
        if snapshot is not None and snapshot.operation_in_progress:
            spinner = SPINNER[self._spinner_index % len(SPINNER)]
            self._spinner_index += 1
            self._set_status(f"{snapshot.operation_label} {spinner}")
        elif self.registry.is_loading:
            spinner = SPINNER[self._spinner_index % len(SPINNER)]
            self._spinner_index += 1
            self._set_status(f"Loading {spinner}")

        if self._dirty:
            self._dirty = False
            self._populate(snapshot)
        if self._log_dirty:
            self._log_dirty = False
            self._populate_log()

    def _set_status(self, message: str | None) -> None:
        self.query_one("#status_line", Static).update(message or "")

    def _snapshot(self) -> RepositorySnapshot | None:
        state = self.registry.current
        return state.snapshot() if state else None

    def _populate(self, snapshot: RepositorySnapshot | None) -> None:
        repo_line = self.query_one("#repo_line", Static)
        if snapshot is None or self.registry.current is None:
            message = self.registry.error_message or "No repository open. Press o to open one."
            repo_line.update(message)
            for selector in ("#changes", "#commits", "#branches", "#stashes"):
                self._fill(selector, [])
            return

        position = self.registry.repositories.index(self.registry.current) + 1
        count = len(self.registry.repositories)
        branch = snapshot.current_branch or "(detached)"
        repo_line.update(f"{snapshot.display_name} [{position}/{count}]  {branch}  {snapshot.path}")

        self._fill("#changes", [_change_row(change) for change in snapshot.changes])
        self._fill("#commits", [_commit_row(commit) for commit in snapshot.commits])
        self._fill("#branches", [_branch_row(branch) for branch in snapshot.branches])
        self._fill("#stashes", [_stash_row(stash) for stash in snapshot.stashes])

    def _fill(self, selector: str, rows: list[list[Text]]) -> None:
        table = self.query_one(selector, DataTable)
        cursor = table.cursor_row
        table.clear(columns=False)
        for row in rows:
            table.add_row(*row)
        if table.row_count:
            table.move_cursor(row=min(max(cursor, 0), table.row_count - 1))

    def _populate_log(self) -> None:
        messages = self.engine.status_log.messages()[-LOG_LINES:]
        self.query_one("#log_panel", Static).update(
            Text("\n").join(_log_line(message) for message in messages)
        )
        snapshot = self._snapshot()
        if messages and not (snapshot and snapshot.operation_in_progress):
            self._set_status(messages[-1].text)

    def _selected(self, selector: str, items: tuple) -> Any | None:
        table = self.query_one(selector, DataTable)
        row = table.cursor_row
        if row < 0 or row >= len(items):
            return None
        return items[row]

    def _ready_state(self) -> RepositoryState | None:
        """The current repository, or None (with a status) when busy or absent."""
        state = self.registry.current
        if state is None:
            self._set_status("No repository open.")
            return None
        if state.is_busy:
            self._set_status("Another operation is in progress.")
            return None
        return state

    def action_quit_app(self) -> None:
        self.exit(None)

    def action_refresh(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        self._set_status("Refreshing...")
        self.registry.select(state)

    def action_toggle_stage(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        change = self._selected("#changes", state.snapshot().changes)
        if change is None:
            self._set_status("No file selected.")
            return
        if change.staged:
            state.operations.unstage(change.path)
        else:
            state.operations.stage(change.path)

    def action_stage_all(self) -> None:
        state = self._ready_state()
        if state is not None:
            state.operations.stage_all()

    def action_pull(self) -> None:
        state = self._ready_state()
        if state is not None:
            state.operations.pull()

    def action_push(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        snapshot = state.snapshot()
        names = [remote.name for remote in snapshot.remotes]
        remote = "origin" if "origin" in names or not names else names[0]
        state.operations.push(remote, snapshot.current_branch or None)

    def action_fetch(self) -> None:
        state = self._ready_state()
        if state is not None:
            state.operations.fetch()

    @work(exclusive=True)
    async def action_commit(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        if not state.snapshot().staged_changes:
            self._set_status("Nothing staged to commit.")
            return
        message = await self.push_screen_wait(TextInputScreen("Commit message:"))
        if not message:
            self._set_status("Commit cancelled.")
            return
        state.operations.commit(message)

    @work(exclusive=True)
    async def action_new_branch(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        name = await self.push_screen_wait(TextInputScreen("New branch name:"))
        if not name:
            self._set_status("Create cancelled.")
            return
        if any(b.name == name for b in state.snapshot().local_branches):
            self._set_status("Branch already exists.")
            return
        state.operations.create_branch(name)

    @work(exclusive=True)
    async def action_stash(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        message = await self.push_screen_wait(
            TextInputScreen(
                "Stash message:", placeholder="Optional, Enter to skip", allow_empty=True
            )
        )
        if message is None:
            self._set_status("Stash cancelled.")
            return
        state.operations.create_stash(message or None)

    @work(exclusive=True)
    async def action_discard(self) -> None:
        state = self._ready_state()
        if state is None:
            return
        change = self._selected("#changes", state.snapshot().changes)
        if change is None:
            self._set_status("No file selected.")
            return
        confirmed = await self.push_screen_wait(
            ConfirmScreen(f"Discard changes to {change.path}? This cannot be undone.")
        )
        if not confirmed:
            self._set_status("Discard cancelled.")
            return
        state.operations.discard_changes(change.path)

    def action_diff(self) -> None:
        state = self.registry.current
        if state is None:
            return
        change = self._selected("#changes", state.snapshot().changes)
        if change is None:
            self._set_status("No file selected.")
            return
        title = f"{change.path} ({'staged' if change.staged else 'working tree'})"
        state.request_diff(
            change.path,
            lambda text: self.push_screen(DiffScreen(title, text)),
            staged=change.staged,
        )

    def action_external_diff(self) -> None:
        state = self.registry.current
        if state is None:
            return
        change = self._selected("#changes", state.snapshot().changes)
        if change is not None:
            state.open_external_diff(change.path)

    @work(exclusive=True)
    async def action_open_repository(self) -> None:
        value = await self.push_screen_wait(TextInputScreen("Open repository at path:"))
        if not value:
            return
        self.registry.open(Path(value))

    def action_close_repository(self) -> None:
        state = self._ready_state()
        if state is not None:
            self.registry.close(state)

    def action_next_repository(self) -> None:
        self.registry.select_next(1)

    def action_previous_repository(self) -> None:
        self.registry.select_next(-1)

    def action_clear_log(self) -> None:
        self.registry.clear_status_messages()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Enter on a branch checks it out; on a stash applies it."""
        table_id = event.data_table.id
        if table_id not in ("branches", "stashes"):
            return
        state = self._ready_state()
        if state is None:
            return
        snapshot = state.snapshot()
        if table_id == "branches":
            branch = self._selected("#branches", snapshot.branches)
            if branch is not None and not branch.is_current and not branch.is_alias:
                state.operations.checkout(branch.name)
        else:
            stash = self._selected("#stashes", snapshot.stashes)
            if stash is not None:
                state.operations.apply_stash(stash.index)


def run_tui(settings: Settings, paths: list[Path] | None = None) -> None:
    """Run the textual TUI application."""
    GitpaneApp(settings, paths).run()
