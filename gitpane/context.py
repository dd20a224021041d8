"""Engine context shared by every gitpane component.

The context replaces process-wide published state: it owns the settings, the
git runner, the worker pool, the preference store, the status log and the
event bus, and it knows how to hand a callable back to the UI thread.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any

from gitpane.git_ops import GitRunner
from gitpane.models import Outcome, StatusMessage
from gitpane.settings import Settings
from gitpane.store import PreferenceStore

logger = logging.getLogger(__name__)
status_logger = logging.getLogger("gitpane.status")

REPOSITORY_EVENT = "repository"
REGISTRY_EVENT = "registry"
LOG_EVENT = "log"

Listener = Callable[[str, object], None]


class EventBus:
    """Observer list notified with (event name, subject)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, subject: object = None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, subject)
            except Exception:
                logger.exception("listener failed for %s event", event)


class StatusLog:
    """Rolling log of status messages, newest last."""

    def __init__(self, limit: int = 20) -> None:
        self._lock = threading.Lock()
        self._messages: deque[StatusMessage] = deque(maxlen=limit)

    def append(self, message: StatusMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def messages(self) -> list[StatusMessage]:
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


def _call_now(callback: Callable[[], Any]) -> None:
    callback()


class Context:
    """Explicit engine context passed to registry, repositories and watchers."""

    def __init__(
        self,
        settings: Settings | None = None,
        runner: GitRunner | None = None,
        store: PreferenceStore | None = None,
        executor: Executor | None = None,
        dispatch: Callable[[Callable[[], Any]], None] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.runner = runner or GitRunner(self.settings.git_binary, self.settings.command_timeout)
        self.store = store or PreferenceStore(self.settings.state_dir)
        self.status_log = StatusLog(self.settings.status_log_limit)
        self.events = EventBus()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="gitpane"
        )
        self.dispatch = dispatch or _call_now

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run fn on the worker pool."""
        return self.executor.submit(fn, *args)

    def post(self, callback: Callable[[], Any]) -> None:
        """Run callback on the UI thread."""
        self.dispatch(callback)

    def log_status(self, text: str, outcome: Outcome = Outcome.INFO) -> None:
        """Append to the status log on the UI thread and notify observers."""
        message = StatusMessage(text=text, outcome=outcome)
        if outcome is Outcome.ERROR:
            status_logger.error(text)
        else:
            status_logger.info(text)

        def append() -> None:
            self.status_log.append(message)
            self.events.emit(LOG_EVENT, message)

        self.post(append)

    def clear_status_log(self) -> None:
        self.status_log.clear()
        self.events.emit(LOG_EVENT, None)

    def shutdown(self) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
