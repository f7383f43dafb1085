"""Application signal notifications from OS signals, direct calls and file changes."""

from __future__ import annotations

import errno
import logging
import os
import queue
import signal as os_signal
import threading
from dataclasses import dataclass
from typing import Any, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signal:
    """A notification: what triggered it and the signal it stands for."""

    source: str
    signal: Any


class Listener(Protocol):
    def put_nowait(self, item: Signal) -> None: ...


_lock = threading.RLock()
_listeners: list[Listener] = []
_os_handler_installed = False


def _on_sigusr1(signum: int, frame: object) -> None:
    # Dispatch from a separate thread so the handler never waits on the lock.
    threading.Thread(
        target=notify, args=("os", os_signal.SIGUSR1), name="appsignals-os", daemon=True
    ).start()


def _install_os_handler() -> bool:
    if not hasattr(os_signal, "SIGUSR1"):
        return False
    if threading.current_thread() is not threading.main_thread():
        log.debug("appsignals: SIGUSR1 handler can only be installed from the main thread")
        return False
    os_signal.signal(os_signal.SIGUSR1, _on_sigusr1)
    return True


def watch(listener: Listener) -> None:
    """Register ``listener`` (e.g. a ``queue.Queue``) to receive every notification.

    SIGUSR1 received by the process always triggers a notification.
    """
    global _os_handler_installed
    with _lock:
        if not _os_handler_installed:
            _os_handler_installed = _install_os_handler()
        _listeners.append(listener)


def notify(trigger: str, signal: Any) -> None:
    """Dispatch a notification to every listener; full listeners are skipped."""
    with _lock:
        for listener in _listeners:
            log.debug(
                "watcher.Notify: Dispatching to listener '%r' (trigger: %r, signal: %s)",
                listener, trigger, signal,
            )
            try:
                listener.put_nowait(Signal(trigger, signal))
            except queue.Full:
                log.warning(
                    "watcher.Notify: Signal channel is full (trigger: %r, signal: %s)",
                    trigger, signal,
                )


class _TriggerHandler(FileSystemEventHandler):
    def __init__(self, source: str, target: str | None, signal: Any) -> None:
        super().__init__()
        self._source = source
        self._target = target
        self._signal = signal

    def _concerns(self, event: FileSystemEvent) -> bool:
        if self._target is None:
            return True
        paths = (event.src_path, getattr(event, "dest_path", ""))
        return any(
            path and os.path.realpath(os.fsdecode(path)) == self._target for path in paths
        )

    def on_any_event(self, event: FileSystemEvent) -> None:
        if self._concerns(event):
            log.warning("File watch triggered: %s", self._source)
            notify(self._source, self._signal)


def file_trigger(path: str | os.PathLike[str], signal: Any, shutdown: threading.Event | None = None) -> None:
    """Notify listeners with ``signal`` whenever the file or directory at ``path`` changes.

    Watching stops once ``shutdown`` is set. Raises FileNotFoundError if
    ``path`` does not exist.
    """
    source = os.fspath(path)
    resolved = os.path.realpath(source)
    if not os.path.exists(resolved):
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), source)

    if os.path.isdir(resolved):
        directory, target = resolved, None
    else:
        directory, target = os.path.dirname(resolved), resolved

    observer = Observer()
    observer.daemon = True
    observer.schedule(_TriggerHandler(source, target, signal), directory, recursive=False)
    observer.start()

    if shutdown is not None:

        def _await_shutdown() -> None:
            shutdown.wait()
            log.info("Shutting down file watcher: %s", source)
            observer.stop()
            observer.join()

        threading.Thread(target=_await_shutdown, name="appsignals-file", daemon=True).start()