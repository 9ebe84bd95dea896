"""
Polling change notifier for the watched files.

A daemon thread compares each path's (mtime, size, inode) signature every
`interval` seconds and posts the absolute path of every file whose signature
changed to a queue. Consumers block on `get()`.
"""
from __future__ import annotations

import os
import queue
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from utils.logger import get_logger

Signature = Optional[Tuple[int, int, int]]

# Posted by stop() so a blocked consumer wakes up.
_STOP = object()


def watch_key(path: Union[str, Path]) -> str:
    return os.path.abspath(os.fspath(path))


def _signature(path: str) -> Signature:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size, st.st_ino


class FileWatcher:
    def __init__(
        self,
        paths: Iterable[Union[str, Path]],
        interval: float = 1.0,
        log_level: str = "INFO",
    ) -> None:
        self.interval = interval
        self.logger = get_logger("monitor.watcher", log_level, "monitor.log")
        self._paths = [watch_key(p) for p in paths]
        self._signatures: Dict[str, Signature] = {}
        self._events: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def paths(self):
        return list(self._paths)

    def _poll_once(self) -> None:
        for path in self._paths:
            current = _signature(path)
            if current != self._signatures.get(path):
                self._signatures[path] = current
                if current is None:
                    self.logger.warning("Watched file disappeared: %s", path)
                else:
                    self.logger.info("File modified: %s", path)
                self._events.put(path)

    def _drop_stop_markers(self) -> None:
        pending = []
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                pending.append(item)
        for item in pending:
            self._events.put(item)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self._poll_once()
            except Exception:  # noqa: BLE001
                self.logger.exception("File watcher error")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._drop_stop_markers()
        # Baseline: files as they are now are not a change.
        self._signatures = {path: _signature(path) for path in self._paths}
        self._thread = threading.Thread(target=self._run, daemon=True, name="dhcpmon-file-watcher")
        self._thread.start()
        self.logger.info("Watching %d file(s) every %.2fs", len(self._paths), self.interval)

    def notify(self, path: Union[str, Path]) -> None:
        self._events.put(watch_key(path))

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next changed path, or None on timeout or after stop()."""
        try:
            item = self._events.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _STOP:
            # Leave the marker for any other waiter.
            self._events.put(_STOP)
            return None
        return item

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=max(2.0, self.interval * 2))
        self._thread = None
        self._events.put(_STOP)


__all__ = ["FileWatcher", "watch_key"]
