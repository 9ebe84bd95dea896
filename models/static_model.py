#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Static Reservation Store

Responsibilities:
- Own the canonical list of dhcp-host reservations
- Enforce field rules and MAC/IP uniqueness among enabled entries
- Load from and save to the dnsmasq reservation file
- Hand out copies only; callers never hold a reference into the store
"""

from __future__ import annotations

import ipaddress
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from models.errors import (
    ConflictError,
    EntryValidationError,
    NotFoundError,
    ParseError,
    SourceIOError,
)
from models.schemas import StaticEntry, StaticViolation, ValidationErrorDetail
from models.static_parser import (
    find_violations,
    parse_static_line,
    serialize_entries,
    to_directive,
    validate_static_entry,
)
from utils.locks import ReadWriteLock
from utils.logger import get_logger, log_metric
from utils.network import normalize_mac


def _new_entry_id() -> str:
    return f"entry_{uuid.uuid4().hex}"


class StaticStore:
    """
    Thread-safe owner of the static reservations.

    Every operation runs under the store's lock; mutations take it exclusively,
    so a failed check never leaves a partial change behind.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, log_level: str = "INFO") -> None:
        self.path = Path(path) if path else None
        self.logger = get_logger("static.store", log_level, "static.log")
        self._entries: List[StaticEntry] = []
        self._lock = ReadWriteLock()
        self.last_modified: Optional[datetime] = None

    # ---------------- internals ----------------
    def _resolve_path(self, path: Optional[Union[str, Path]]) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise SourceIOError("no static reservation file configured")
        return target

    def _index_of(self, entry_id: str) -> int:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index
        raise NotFoundError(f"entry with ID {entry_id} not found")

    @staticmethod
    def _validated(entry: StaticEntry) -> StaticEntry:
        detail = validate_static_entry(entry)
        if detail is not None:
            raise EntryValidationError(detail)
        return entry.model_copy(deep=True)

    def _check_conflicts(self, candidate: StaticEntry, skip_index: Optional[int] = None) -> None:
        if not candidate.enabled:
            return
        for index, existing in enumerate(self._entries):
            if index == skip_index or not existing.enabled:
                continue
            if existing.mac == candidate.mac:
                raise ConflictError(f"MAC address {candidate.mac} already exists")
            if candidate.ip and existing.ip == candidate.ip:
                raise ConflictError(f"IP address {candidate.ip} already exists")

    def _carry_ids(self, entries: List[StaticEntry]) -> None:
        """
        Give reloaded entries the ids of the equivalent entries already held,
        so ids handed out by `add` survive a save followed by a reload.
        Caller holds the write lock.
        """
        unclaimed = list(self._entries)
        kept = set()
        fresh: List[StaticEntry] = []
        for entry in entries:
            match = next((old for old in unclaimed if old.equivalent(entry)), None)
            if match is None:
                fresh.append(entry)
                continue
            unclaimed.remove(match)
            entry.id = match.id
            kept.add(match.id)
        for entry in fresh:
            if entry.id in kept:
                entry.id = _new_entry_id()

    def _select(self, predicate: Callable[[StaticEntry], bool]) -> List[StaticEntry]:
        with self._lock.read():
            return [entry.model_copy(deep=True) for entry in self._entries if predicate(entry)]

    # ---------------- persistence ----------------
    def load(self, path: Optional[Union[str, Path]] = None) -> int:
        """Replace every entry with the file's contents. Returns the entry count."""
        target = self._resolve_path(path)
        try:
            text = target.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"static file {target} is not valid UTF-8") from exc
        except OSError as exc:
            raise SourceIOError(f"failed to load static entries from {target}: {exc.strerror or exc}") from exc

        entries: List[StaticEntry] = []
        skipped = 0
        for line_number, line in enumerate(text.splitlines(), start=1):
            try:
                entry = parse_static_line(line, line_number)
            except ParseError as exc:
                skipped += 1
                self.logger.warning("Skipping static line: %s", exc)
                continue
            if entry is not None:
                entries.append(entry)

        with self._lock.write():
            self._carry_ids(entries)
            self._entries = entries
            self.last_modified = datetime.now()

        self.logger.info("Loaded %d static DHCP entries from %s (%d skipped)", len(entries), target, skipped)
        log_metric(self.logger, "static_entries_loaded", len(entries), skipped=skipped)
        return len(entries)

    def save(self, path: Optional[Union[str, Path]] = None) -> int:
        """Write every entry, enabled or not, one directive per line."""
        target = self._resolve_path(path)
        with self._lock.write():
            payload = serialize_entries(self._entries)
            count = len(self._entries)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                with target.open("w", encoding="utf-8") as fh:
                    fh.write(payload)
            except OSError as exc:
                raise SourceIOError(f"failed to save static entries to {target}: {exc.strerror or exc}") from exc
            self.last_modified = datetime.now()

        self.logger.info("Saved %d static DHCP entries to %s", count, target)
        return count

    # ---------------- mutations ----------------
    def add(self, entry: StaticEntry) -> StaticEntry:
        candidate = self._validated(entry)
        with self._lock.write():
            self._check_conflicts(candidate)
            candidate.id = _new_entry_id()
            candidate.line_number = len(self._entries) + 1
            candidate.raw_line = to_directive(candidate)
            self._entries.append(candidate)
            result = candidate.model_copy(deep=True)
        self.logger.info("Added static entry %s (%s)", result.id, result.display_name())
        return result

    def update(self, entry_id: str, entry: StaticEntry) -> StaticEntry:
        candidate = self._validated(entry)
        with self._lock.write():
            index = self._index_of(entry_id)
            self._check_conflicts(candidate, skip_index=index)
            original = self._entries[index]
            candidate.id = original.id
            candidate.line_number = original.line_number
            candidate.raw_line = to_directive(candidate)
            self._entries[index] = candidate
            result = candidate.model_copy(deep=True)
        self.logger.info("Updated static entry %s (%s)", result.id, result.display_name())
        return result

    def delete(self, entry_id: str) -> None:
        with self._lock.write():
            index = self._index_of(entry_id)
            removed = self._entries.pop(index)
        self.logger.info("Deleted static entry %s (%s)", removed.id, removed.display_name())

    def enable(self, entry_id: str) -> None:
        self._set_enabled(entry_id, True)

    def disable(self, entry_id: str) -> None:
        self._set_enabled(entry_id, False)

    def _set_enabled(self, entry_id: str, enabled: bool) -> None:
        # Toggling deliberately skips the uniqueness check; validate_all reports clashes.
        with self._lock.write():
            index = self._index_of(entry_id)
            self._entries[index].enabled = enabled
        self.logger.info("%s static entry %s", "Enabled" if enabled else "Disabled", entry_id)

    # ---------------- reads ----------------
    def validate_all(self) -> List[StaticViolation]:
        with self._lock.read():
            violations = find_violations(self._entries)
        if violations:
            self.logger.warning("Static configuration has %d violation(s)", len(violations))
        return violations

    def get_all(self) -> List[StaticEntry]:
        return self._select(lambda entry: True)

    def get(self, entry_id: str) -> StaticEntry:
        with self._lock.read():
            return self._entries[self._index_of(entry_id)].model_copy(deep=True)

    def find_by_mac(self, mac: str) -> List[StaticEntry]:
        try:
            wanted = normalize_mac(mac)
        except ValueError as exc:
            raise EntryValidationError(ValidationErrorDetail(code="mac_invalid", message=str(exc))) from exc
        return self._select(lambda entry: entry.mac == wanted)

    def find_by_ip(self, ip: str) -> List[StaticEntry]:
        try:
            wanted = str(ipaddress.ip_address(str(ip).strip()))
        except ValueError as exc:
            raise EntryValidationError(
                ValidationErrorDetail(code="ip_invalid", message=f"invalid IP address: {ip}")
            ) from exc
        return self._select(lambda entry: entry.ip == wanted)

    def filter(
        self,
        enabled: Optional[bool] = None,
        mac: Optional[str] = None,
        hostname: Optional[str] = None,
    ) -> List[StaticEntry]:
        """Substring filter on MAC and hostname (case-insensitive)."""
        mac_part = mac.upper() if mac else None
        host_part = hostname.lower() if hostname else None

        def matches(entry: StaticEntry) -> bool:
            if enabled is not None and entry.enabled != enabled:
                return False
            if mac_part and mac_part not in (entry.mac or ""):
                return False
            if host_part and host_part not in entry.hostname.lower():
                return False
            return True

        return self._select(matches)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)


__all__ = ["StaticStore"]
