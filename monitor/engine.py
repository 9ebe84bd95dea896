# engine.py
from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from models.errors import MonitorError, ParseError, SourceIOError
from models.lease_model import LeaseParser
from models.schemas import (
    HostEntry,
    LeaseRecord,
    MonitorConfig,
    SourceName,
    SourceState,
    StaticEntry,
    StaticViolation,
)
from models.static_model import StaticStore
from models.vendor_model import VendorResolver
from monitor.hosts import HostsParser
from monitor.watcher import FileWatcher, watch_key
from utils.config_loader import load_config
from utils.locks import ReadWriteLock
from utils.logger import get_logger, log_metric, log_stage

ENV_OVERRIDES = {
    "LEASESFILE": "leases_file",
    "HOSTSFILE": "hosts_file",
    "STATICFILE": "static_file",
    "MACDBFILE": "mac_db_file",
    "MACDBPRELOAD": "mac_db_preload",
    "POLLINTERVAL": "poll_interval",
    "LOGLEVEL": "log_level",
}


# ----------------------------------------------------------------------
# Config Manager
# ----------------------------------------------------------------------
class EngineConfig:
    @staticmethod
    def load(path: Optional[str], logger) -> MonitorConfig:
        """YAML file (optional) first, then environment overrides."""
        data: Dict[str, object] = dict(load_config(path, logger, required=False)) if path else {}
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                data[key] = value
        try:
            config = MonitorConfig.model_validate(data)
        except ValidationError as exc:
            logger.error("Invalid monitor configuration: %s", exc)
            raise
        logger.info(
            "Configuration | leases=%s hosts=%s static=%s macdb=%s preload=%s",
            config.leases_file,
            config.hosts_file,
            config.static_file or "-",
            config.mac_db_file,
            config.mac_db_preload,
        )
        return config


def _read_text(path: Path, description: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{description} file {path} is not valid UTF-8") from exc
    except OSError as exc:
        raise SourceIOError(f"failed to read {description} file {path}: {exc.strerror or exc}") from exc


# ----------------------------------------------------------------------
# Watched sources
# ----------------------------------------------------------------------
class WatchedSource(ABC):
    """A file-backed piece of state with a single `reload()` capability."""

    def __init__(self, name: SourceName, path: Union[str, Path], log_level: str = "INFO") -> None:
        self.name = name
        self.path = Path(path)
        self.logger = get_logger(f"monitor.source.{name.value}", log_level, "monitor.log")
        self.state = SourceState.UNLOADED
        self.last_error: Optional[str] = None
        self.last_loaded: Optional[datetime] = None
        self._state_lock = threading.Lock()

    @abstractmethod
    def _refresh(self) -> int:
        """Read the file and publish the result. Returns the item count."""

    def mark_stale(self) -> None:
        with self._state_lock:
            if self.state == SourceState.LOADED:
                self.state = SourceState.STALE

    def reload(self) -> int:
        with self._state_lock:
            previous = SourceState.UNLOADED if self.state == SourceState.UNLOADED else SourceState.LOADED
        try:
            with log_stage(self.logger, f"reload_{self.name.value}"):
                count = self._refresh()
        except MonitorError as exc:
            with self._state_lock:
                self.state = previous
                self.last_error = f"{exc.kind}: {exc}"
            raise
        with self._state_lock:
            self.state = SourceState.LOADED
            self.last_error = None
            self.last_loaded = datetime.now(timezone.utc)
        log_metric(self.logger, "source_items", count, source=self.name.value)
        return count


class SnapshotSource(WatchedSource):
    """Keeps an immutable snapshot, replaced whole under the write lock."""

    def __init__(self, name: SourceName, path: Union[str, Path], log_level: str = "INFO") -> None:
        super().__init__(name, path, log_level)
        self._lock = ReadWriteLock()
        self._snapshot: tuple = ()

    @abstractmethod
    def _build(self) -> Sequence:
        """Parse the file into the items of the next snapshot."""

    def _refresh(self) -> int:
        items = tuple(self._build())
        with self._lock.write():
            self._snapshot = items
        return len(items)

    def snapshot(self) -> list:
        with self._lock.read():
            return list(self._snapshot)


class LeaseSource(SnapshotSource):
    def __init__(
        self,
        path: Union[str, Path],
        parser: LeaseParser,
        static_path: Optional[Union[str, Path]] = None,
        log_level: str = "INFO",
    ) -> None:
        super().__init__(SourceName.LEASES, path, log_level)
        self.parser = parser
        self.static_path = Path(static_path) if static_path else None

    def _build(self) -> List[LeaseRecord]:
        leases = self.parser.parse_lease_file(_read_text(self.path, "leases"))
        if self.static_path is not None:
            try:
                leases.extend(self.parser.parse_static_config(_read_text(self.static_path, "static")))
            except MonitorError as exc:
                self.logger.debug("Static reservations not merged into leases: %s", exc)
        return leases


class HostsSource(SnapshotSource):
    def __init__(self, path: Union[str, Path], parser: HostsParser, log_level: str = "INFO") -> None:
        super().__init__(SourceName.HOSTS, path, log_level)
        self.parser = parser

    def _build(self) -> List[HostEntry]:
        return self.parser.parse_hosts(_read_text(self.path, "hosts"))


class StaticSource(WatchedSource):
    def __init__(self, path: Union[str, Path], store: StaticStore, log_level: str = "INFO") -> None:
        super().__init__(SourceName.STATIC, path, log_level)
        self.store = store

    def _refresh(self) -> int:
        return self.store.load(self.path)


# ----------------------------------------------------------------------
# Monitor
# ----------------------------------------------------------------------
class Monitor:
    """
    Keeps leases, hosts and static reservations in step with the filesystem:
      change notification -> owning source reload -> snapshot swap
    """

    def __init__(
        self,
        config: MonitorConfig,
        resolver: VendorResolver,
        hosts_parser: Optional[HostsParser] = None,
        log_level: Optional[str] = None,
    ) -> None:
        log_level = log_level or config.log_level
        self.config = config
        self.logger = get_logger("monitor.engine", log_level, "monitor.log")
        self.resolver = resolver
        self.lease_parser = LeaseParser(resolver, log_level=log_level)
        self.static_store = StaticStore(config.static_file, log_level=log_level)

        self.leases = LeaseSource(config.leases_file, self.lease_parser, config.static_file, log_level)
        self.hosts = HostsSource(config.hosts_file, hosts_parser or HostsParser(), log_level)
        self.static: Optional[StaticSource] = None
        sources: List[WatchedSource] = [self.leases, self.hosts]
        if config.static_file:
            self.static = StaticSource(config.static_file, self.static_store, log_level)
            sources.append(self.static)

        self._handlers: Dict[str, WatchedSource] = {watch_key(source.path): source for source in sources}
        self.watcher = FileWatcher(self._handlers.keys(), interval=config.poll_interval, log_level=log_level)
        self._thread: Optional[threading.Thread] = None

    # ---------------- lifecycle ----------------
    def _ensure_file(self, source: WatchedSource) -> None:
        if source.path.exists():
            return
        self.logger.warning("%s file does not exist: %s", source.name.value, source.path)
        try:
            source.path.parent.mkdir(parents=True, exist_ok=True)
            source.path.touch(exist_ok=True)
        except OSError as exc:
            self.logger.warning("Could not create %s file %s: %s", source.name.value, source.path, exc)
            return
        self.logger.info("Created empty file: %s", source.path)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        for source in self._handlers.values():
            try:
                source.reload()
            except MonitorError as exc:
                self.logger.warning("Failed to load %s: %s", source.name.value, exc)

        for source in self._handlers.values():
            self._ensure_file(source)

        self.watcher.start()
        self._thread = threading.Thread(target=self._drain, daemon=True, name="dhcpmon-reconciler")
        self._thread.start()
        self.logger.info("Monitor started | sources=%s", ",".join(s.name.value for s in self._handlers.values()))

    def _drain(self) -> None:
        while not self.watcher.stopped:
            path = self.watcher.get(timeout=0.5)
            if path is None:
                continue
            try:
                self.dispatch(path)
            except Exception:  # noqa: BLE001
                self.logger.exception("Unexpected error while handling change of %s", path)

    def dispatch(self, path: Union[str, Path]) -> bool:
        """Reload the source that owns `path`. Returns False for unwatched paths."""
        source = self._handlers.get(watch_key(path))
        if source is None:
            self.logger.debug("Ignoring change of unwatched path %s", path)
            return False
        source.mark_stale()
        try:
            source.reload()
        except MonitorError as exc:
            self.logger.warning("Error reloading %s, keeping previous data: %s", source.name.value, exc)
        return True

    def stop(self) -> None:
        self.watcher.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._thread = None
        self.logger.info("Monitor stopped")

    def __enter__(self) -> "Monitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ---------------- reads ----------------
    def get_leases(self, now: Optional[datetime] = None) -> List[LeaseRecord]:
        now = now or datetime.now(timezone.utc)
        leases: List[LeaseRecord] = []
        for lease in self.leases.snapshot():
            if not lease.is_static and lease.expires_at is not None:
                remaining = timedelta(seconds=int((lease.expires_at - now).total_seconds()))
                lease = lease.model_copy(update={"remaining": remaining})
            leases.append(lease)
        return leases

    def get_hosts(self) -> List[HostEntry]:
        return self.hosts.snapshot()

    def source_states(self) -> Dict[str, str]:
        return {source.name.value: source.state.value for source in self._handlers.values()}

    # ---------------- static reservations ----------------
    def get_static_entries(self) -> List[StaticEntry]:
        return self.static_store.get_all()

    def get_static_entry(self, entry_id: str) -> StaticEntry:
        return self.static_store.get(entry_id)

    def get_static_entries_by_mac(self, mac: str) -> List[StaticEntry]:
        return self.static_store.find_by_mac(mac)

    def get_static_entries_by_ip(self, ip: str) -> List[StaticEntry]:
        return self.static_store.find_by_ip(ip)

    def add_static_entry(self, entry: StaticEntry) -> StaticEntry:
        return self.static_store.add(entry)

    def update_static_entry(self, entry_id: str, entry: StaticEntry) -> StaticEntry:
        return self.static_store.update(entry_id, entry)

    def delete_static_entry(self, entry_id: str) -> None:
        self.static_store.delete(entry_id)

    def enable_static_entry(self, entry_id: str) -> None:
        self.static_store.enable(entry_id)

    def disable_static_entry(self, entry_id: str) -> None:
        self.static_store.disable(entry_id)

    def validate_static_entries(self) -> List[StaticViolation]:
        return self.static_store.validate_all()

    def save_static_entries(self) -> int:
        return self.static_store.save()

    def reload_static_entries(self) -> int:
        if self.static is None:
            raise SourceIOError("no static reservation file configured")
        return self.static.reload()


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------
def build_monitor(config: MonitorConfig, log_level: Optional[str] = None) -> Monitor:
    """Construct the resolver and monitor for `config`; resolver errors propagate."""
    level = log_level or config.log_level
    resolver = VendorResolver(config.mac_db_file, preload=config.mac_db_preload, log_level=level)
    return Monitor(config, resolver, log_level=level)
