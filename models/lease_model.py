#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Lease Parser

Responsibilities:
- Turn dnsmasq lease-file text into `LeaseRecord` models
- Turn dhcp-host reservations into synthetic, never-expiring leases
- Attach vendor information through the `VendorResolver`
- Skip malformed lines locally; a bad line never discards the whole file
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from models.errors import ParseError
from models.schemas import LeaseRecord
from models.vendor_model import VendorResolver
from utils.logger import get_logger, log_metric
from utils.network import normalize_mac, parse_ipv4

# Static reservations are reported with a fixed ten year lease.
STATIC_LEASE_DURATION = timedelta(days=365 * 10)

_TAG_PREFIXES = ("set", "tag")


def strip_trailing_comment(line: str) -> str:
    """Cut at the first '#' or ';' and drop the whitespace before it."""
    cut = [idx for idx in (line.find("#"), line.find(";")) if idx >= 0]
    if not cut:
        return line
    return line[: min(cut)].rstrip()


def _split_directive(line: str) -> Optional[Tuple[str, str]]:
    key, sep, value = line.partition("=")
    if not sep or "=" in value:
        return None
    return key.strip().lower(), value.strip()


class LeaseParser:
    def __init__(self, resolver: VendorResolver, log_level: str = "INFO") -> None:
        self.resolver = resolver
        self.logger = get_logger("lease.parser", log_level, "leases.log")

    # ---------------- lease file ----------------
    def parse_lease_line(self, fields: Sequence[str], now: datetime, line_number: Optional[int] = None) -> LeaseRecord:
        try:
            expires_at = datetime.fromtimestamp(int(fields[0]), tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as exc:
            raise ParseError(f"invalid expiry {fields[0]!r}", line_number) from exc
        try:
            mac = normalize_mac(fields[1])
        except ValueError as exc:
            raise ParseError(str(exc), line_number) from exc

        return LeaseRecord(
            mac=mac,
            ip=parse_ipv4(fields[2]),
            hostname=fields[3],
            client_id=fields[4] if len(fields) > 4 else "",
            expires_at=expires_at,
            remaining=expires_at - now,
            vendor=self.resolver.lookup(mac),
            is_static=False,
        )

    def parse_lease_file(self, text: str, now: Optional[datetime] = None) -> List[LeaseRecord]:
        now = now or datetime.now(timezone.utc)
        leases: List[LeaseRecord] = []
        skipped = 0

        for line_number, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line:
                continue
            fields = line.split()
            if len(fields) < 5:
                skipped += 1
                continue
            try:
                leases.append(self.parse_lease_line(fields, now, line_number))
            except ParseError as exc:
                skipped += 1
                self.logger.debug("Skipping lease line: %s", exc)

        self.logger.info("Parsed %d leases (%d lines skipped)", len(leases), skipped)
        log_metric(self.logger, "leases_parsed_total", len(leases), skipped=skipped)
        return leases

    # ---------------- static reservations ----------------
    def parse_static_line(self, line: str, line_number: Optional[int] = None) -> LeaseRecord:
        directive = _split_directive(strip_trailing_comment(line))
        if directive is None or directive[0] != "dhcp-host":
            raise ParseError("not a dhcp-host line", line_number)

        values = directive[1].split(",")
        if len(values) < 2:
            raise ParseError("insufficient values", line_number)

        try:
            mac = normalize_mac(values[0])
        except ValueError as exc:
            raise ParseError(f"invalid MAC address: {exc}", line_number) from exc

        ip = None
        hostname = ""
        tag = None
        for value in values[1:]:
            value = value.strip()
            if ":" in value:
                parts = value.lower().split(":")
                if len(parts) == 2 and parts[0] in _TAG_PREFIXES:
                    tag = parts[1]
                    continue
            address = parse_ipv4(value)
            if address is not None:
                ip = address
                continue
            # TODO: give reservations an identifier of their own instead of reusing the hostname.
            hostname = value

        return LeaseRecord(
            mac=mac,
            ip=ip,
            hostname=hostname,
            client_id=hostname,
            expires_at=None,
            remaining=STATIC_LEASE_DURATION,
            tag=tag,
            vendor=self.resolver.lookup(mac),
            is_static=True,
        )

    def parse_static_config(self, text: str, now: Optional[datetime] = None) -> List[LeaseRecord]:
        # `now` is accepted for symmetry with parse_lease_file; reservations never expire.
        leases: List[LeaseRecord] = []
        skipped = 0

        for line_number, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                leases.append(self.parse_static_line(line, line_number))
            except ParseError as exc:
                skipped += 1
                self.logger.debug("Skipping static line: %s", exc)

        self.logger.info("Parsed %d static reservations (%d lines skipped)", len(leases), skipped)
        log_metric(self.logger, "static_leases_parsed_total", len(leases), skipped=skipped)
        return leases


__all__ = ["LeaseParser", "STATIC_LEASE_DURATION", "strip_trailing_comment"]
