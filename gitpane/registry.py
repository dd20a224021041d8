"""The collection of open repositories and the current selection."""

import logging
import threading
from concurrent.futures import Future
from pathlib import Path

from gitpane import git_ops, parsers
from gitpane.context import REGISTRY_EVENT, Context
from gitpane.models import Outcome
from gitpane.repository import RepositoryState
from gitpane.watcher import ChangeWatcher, WatchToken

logger = logging.getLogger(__name__)

METADATA_DIR = ".git"
NOT_A_REPOSITORY = "Not a valid Git repository"


def canonical_path(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


def is_git_repository(path: Path) -> bool:
    """True when path holds a .git entry; its contents are not checked."""
    return (path / METADATA_DIR).exists()


class RepositoryRegistry:
    """Opened repositories, the selected one, and the known-paths list."""

    def __init__(self, context: Context, watcher: ChangeWatcher | None = None) -> None:
        self.context = context
        self.watcher = watcher or ChangeWatcher(context.settings.poll_interval)
        self.repositories: list[RepositoryState] = []
        self.current: RepositoryState | None = None
        self.error_message: str | None = None
        self.is_loading = False
        self._tokens: dict[str, WatchToken] = {}
        self._lock = threading.Lock()

    def _notify(self) -> None:
        self.context.events.emit(REGISTRY_EVENT, self)

    def _set_error(self, message: str, log_text: str | None = None) -> None:
        self.error_message = message
        self.context.log_status(log_text or message, Outcome.ERROR)
        self._notify()

    def _set_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._notify()

    def find(self, path: Path | str) -> RepositoryState | None:
        target = canonical_path(path)
        with self._lock:
            return next((repo for repo in self.repositories if repo.path == target), None)

    def paths(self) -> list[Path]:
        with self._lock:
            return [repo.path for repo in self.repositories]

    def _save(self) -> None:
        try:
            self.context.store.save_repositories(self.paths())
        except Exception:
            logger.exception("unable to save repository list")

    def _add(self, path: Path) -> RepositoryState:
        state = RepositoryState(path, self.context)
        token = self.watcher.start(state)
        with self._lock:
            self.repositories.append(state)
            self._tokens[state.id] = token
        return state

    def open(self, path: Path | str) -> RepositoryState | None:
        """Open and select a repository, reusing it if already open."""
        target = canonical_path(path)
        self.context.log_status(f"Opening repository at {target}...")
        self.error_message = None
        self._set_loading(True)
        try:
            existing = self.find(target)
            if existing is not None:
                self.select(existing)
                self.context.log_status("Repository opened successfully", Outcome.SUCCESS)
                return existing

            if not is_git_repository(target):
                self._set_error(NOT_A_REPOSITORY, f"Failed to open repository: {NOT_A_REPOSITORY}")
                return None

            state = self._add(target)
            self.select(state)
            self._save()
            self.context.log_status("Repository opened successfully", Outcome.SUCCESS)
            return state
        finally:
            self._set_loading(False)

    def select(self, state: RepositoryState) -> None:
        """Make state current and reload its status and history."""
        self.current = state
        self._notify()
        state.refresh_async()
        state.fetch_commits_async()

    def select_next(self, step: int = 1) -> RepositoryState | None:
        with self._lock:
            repositories = list(self.repositories)
        if not repositories:
            return None
        index = repositories.index(self.current) if self.current in repositories else -1
        state = repositories[(index + step) % len(repositories)]
        self.select(state)
        return state

    def close(self, state: RepositoryState) -> None:
        """Stop watching state and drop it from the registry."""
        with self._lock:
            if state not in self.repositories:
                return
            index = self.repositories.index(state)
            self.repositories.remove(state)
            token = self._tokens.pop(state.id, None)
            remaining = list(self.repositories)
        if token is not None:
            self.watcher.stop(token)
        self._save()
        self.context.log_status(f"Closed {state.display_name}")
        if self.current is state:
            self.current = None
            if remaining:
                self.select(remaining[min(index, len(remaining) - 1)])
        self._notify()

    def load_saved(self) -> list[RepositoryState]:
        """Reopen previously saved repositories that still exist."""
        try:
            saved = self.context.store.saved_repositories()
        except Exception as exc:
            logger.exception("unable to read saved repositories")
            self.context.log_status(f"Failed to load saved repositories: {exc}", Outcome.ERROR)
            return []
        loaded: list[RepositoryState] = []
        for path in saved:
            target = canonical_path(path)
            if self.find(target) is not None or not is_git_repository(target):
                continue
            state = self._add(target)
            state.refresh_async()
            loaded.append(state)
        if loaded:
            self._notify()
        return loaded

    def clone(self, url: str, dest: Path | str) -> Future:
        """Clone url into dest on a worker, then open it."""
        target = canonical_path(dest)
        self._set_loading(True)
        self.context.log_status(f"Cloning repository from {url} to {target}...")

        def runner() -> None:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                message = f"Failed to clone: {exc}"
                self.context.post(lambda: self._finish(message))
                return
            result = self.context.runner.run(
                target.parent, git_ops.clone_args(url, target), merge_stderr=True
            )
            if result.ok:
                self.context.log_status("Repository cloned successfully", Outcome.SUCCESS)
                self.context.post(lambda: self._finish(None, target))
            else:
                output = result.text.strip() or "Unknown error"
                self.context.post(lambda: self._finish(f"Failed to clone: {output}"))

        return self.context.submit(runner)

    def create(self, path: Path | str) -> Future:
        """Create path if needed, run git init in it, then open it."""
        target = canonical_path(path)
        self._set_loading(True)
        self.context.log_status(f"Creating new repository at {target}...")

        def runner() -> None:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                message = f"Error: {exc}"
                self.context.post(lambda: self._finish(message))
                return
            result = self.context.runner.run(target, git_ops.init_args(), merge_stderr=True)
            if parsers.classify_output(result.text, result.exit_code) is Outcome.SUCCESS:
                self.context.log_status("Repository created successfully", Outcome.SUCCESS)
                self.context.post(lambda: self._finish(None, target))
            else:
                self.context.post(lambda: self._finish("Failed to initialize repository"))

        return self.context.submit(runner)

    def _finish(self, error: str | None, open_path: Path | None = None) -> None:
        self.is_loading = False
        if error:
            self._set_error(error)
            return
        if open_path is not None:
            self.open(open_path)
        self._notify()

    def clear_status_messages(self) -> None:
        self.context.clear_status_log()

    def shutdown(self) -> None:
        self.watcher.stop_all()
        with self._lock:
            self._tokens.clear()
        self.context.shutdown()
