#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Vendor Resolver

Responsibilities:
- Resolve a MAC address to the vendor record with the longest cached prefix
- Recognise locally-administered (private/randomised) addresses
- Fall back to a linear scan of the JSON-lines database when not preloaded
- Never fail a lookup: anything unresolved is the UNKNOWN record
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from pydantic import ValidationError

from models.errors import ParseError, SourceIOError
from models.schemas import PRIVATE_VENDOR, UNKNOWN_VENDOR, VendorRecord
from utils.locks import ReadWriteLock
from utils.logger import get_logger, log_metric, log_stage
from utils.network import is_private_mac, try_normalize_mac


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _normalize_address(mac: str) -> str:
    text = str(mac or "").strip()
    return try_normalize_mac(text) or text.upper()


def parse_vendor_line(line: str, line_number: Optional[int] = None) -> Optional[VendorRecord]:
    """
    Decode one JSON line of the vendor database.

    Blank lines give ``None``; anything that does not decode into a record with
    a non-empty prefix raises ``ParseError``.
    """
    text = line.strip()
    if not text:
        return None
    try:
        record = VendorRecord.model_validate_json(text)
    except ValidationError as exc:
        raise ParseError(f"malformed vendor record: {exc.error_count()} error(s)", line_number) from exc
    key = record.prefix_key.strip().upper()
    if not key:
        raise ParseError("vendor record without prefix", line_number)
    if key != record.prefix_key:
        record = record.model_copy(update={"prefix_key": key})
    return record


# ----------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------
class VendorResolver:
    def __init__(
        self,
        path: Union[str, Path],
        preload: bool = False,
        log_level: str = "INFO",
    ) -> None:
        self.path = Path(path)
        self.logger = get_logger("vendor.resolver", log_level, "vendor.log")
        self.unknown = UNKNOWN_VENDOR
        self.private = PRIVATE_VENDOR
        self._cache: Dict[str, VendorRecord] = {}
        self._lock = ReadWriteLock()
        self._preloaded = False

        self._check_source()
        if preload:
            self.preload()

    # ---------------- internals ----------------
    def _iter_records(self) -> Iterator[Tuple[int, Optional[VendorRecord], Optional[ParseError]]]:
        # A fresh handle per pass; concurrent scans never share a file position.
        try:
            with self.path.open("r", encoding="utf-8", errors="replace") as fh:
                for line_number, line in enumerate(fh, start=1):
                    try:
                        record = parse_vendor_line(line, line_number)
                    except ParseError as exc:
                        yield line_number, None, exc
                        continue
                    if record is not None:
                        yield line_number, record, None
        except OSError as exc:
            raise SourceIOError(f"cannot read vendor database {self.path}: {exc.strerror or exc}") from exc

    def _check_source(self) -> None:
        """Fail construction if the database is unreadable or has no usable record."""
        bad = 0
        for _, record, error in self._iter_records():
            if record is not None:
                return
            bad += 1
        if bad:
            raise ParseError(f"vendor database {self.path} contains no valid records ({bad} malformed lines)")
        self.logger.warning("Vendor database %s is empty; all lookups resolve to UNKNOWN", self.path)

    def _cached(self, mac: str) -> Optional[VendorRecord]:
        with self._lock.read():
            for length in range(len(mac), -1, -1):
                hit = self._cache.get(mac[:length])
                if hit is not None:
                    return hit
        return None

    def _scan(self, mac: str) -> Optional[VendorRecord]:
        try:
            for line_number, record, error in self._iter_records():
                if error is not None:
                    self.logger.debug("Skipping vendor line: %s", error)
                    continue
                if mac.startswith(record.prefix_key):
                    with self._lock.write():
                        self._cache[record.prefix_key] = record
                    self.logger.debug("Cached vendor %s for prefix %s", record.company, record.prefix_key)
                    return record
        except SourceIOError as exc:
            self.logger.warning("Vendor scan failed: %s", exc)
        return None

    # ---------------- Public API ----------------
    @property
    def preloaded(self) -> bool:
        return self._preloaded

    def cache_size(self) -> int:
        with self._lock.read():
            return len(self._cache)

    def preload(self) -> int:
        """Load every record into the cache; malformed lines are skipped."""
        loaded: Dict[str, VendorRecord] = {}
        skipped = 0
        with log_stage(self.logger, "vendor_preload"):
            for _, record, error in self._iter_records():
                if error is not None:
                    skipped += 1
                    self.logger.debug("Skipping vendor line: %s", error)
                    continue
                loaded[record.prefix_key] = record

        with self._lock.write():
            self._cache.update(loaded)
            self._preloaded = True

        self.logger.info("Preloaded %d vendor records (%d malformed lines skipped)", len(loaded), skipped)
        log_metric(self.logger, "vendor_records_preloaded", len(loaded), skipped=skipped)
        return len(loaded)

    def lookup(self, mac: str) -> VendorRecord:
        address = _normalize_address(mac)

        hit = self._cached(address)
        if hit is not None:
            return hit

        if is_private_mac(address):
            return self.private

        if self._preloaded:
            return self.unknown

        found = self._scan(address)
        return found if found is not None else self.unknown


__all__ = ["VendorResolver", "parse_vendor_line"]
