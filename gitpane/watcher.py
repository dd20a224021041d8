"""Background polling of working tree changes."""

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitpane.repository import RepositoryState

logger = logging.getLogger(__name__)


@dataclass
class WatchToken:
    """Handle returned by ChangeWatcher.start and required by stop."""

    state: "RepositoryState"
    cancelled: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return not self.cancelled.is_set()


class ChangeWatcher:
    """Re-polls `git status` for each watched repository on a fixed period.

    Only the change list is reloaded; branches, remotes, stashes and commits
    are left to explicit refreshes.
    """

    def __init__(self, interval: float = 5.0) -> None:
        self.interval = interval
        self._lock = threading.Lock()
        self._tokens: list[WatchToken] = []

    def start(self, state: "RepositoryState") -> WatchToken:
        token = WatchToken(state=state)
        thread = threading.Thread(
            target=self._loop,
            args=(token,),
            name=f"gitpane-watch-{state.display_name}",
            daemon=True,
        )
        token.thread = thread
        with self._lock:
            self._tokens.append(token)
        logger.debug("watching %s every %ss", state.path, self.interval)
        thread.start()
        return token

    def stop(self, token: WatchToken) -> None:
        token.cancelled.set()
        with self._lock:
            if token in self._tokens:
                self._tokens.remove(token)
        logger.debug("stopped watching %s", token.state.path)

    def stop_all(self) -> None:
        with self._lock:
            tokens = list(self._tokens)
        for token in tokens:
            self.stop(token)

    def active_tokens(self) -> list[WatchToken]:
        with self._lock:
            return list(self._tokens)

    def poll(self, token: WatchToken) -> bool:
        """Run one tick; returns False when it was skipped."""
        if not token.active:
            return False
        state = token.state
        if state.is_busy:
            # the running operation refreshes on completion
            return False
        state.refresh_changes()
        return True

    def _loop(self, token: WatchToken) -> None:
        while not token.cancelled.wait(self.interval):
            try:
                self.poll(token)
            except Exception:
                logger.exception("change poll failed for %s", token.state.path)
