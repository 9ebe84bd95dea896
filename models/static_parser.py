"""
Reading, writing and checking dhcp-host reservation lines.

Enabled entries are written as
``dhcp-host=<MAC>[,set:<tag>][,<ip>][,<hostname>][,<leaseTime>][ # <comment>]``;
disabled entries are written as ``# `` followed by the exact directive text they
were read from.
"""
from __future__ import annotations

import ipaddress
import re
from typing import Dict, List, Optional, Sequence, Tuple

from models.errors import ParseError
from models.schemas import StaticEntry, StaticViolation, ValidationErrorDetail
from utils.network import normalize_mac

DIRECTIVE = "dhcp-host"
MAX_HOSTNAME_LENGTH = 253

_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9.\-]+$")
_LEASE_TIME_RE = re.compile(r"^(?:infinite|\d+[smhdw]?)$", re.IGNORECASE)
_DIRECTIVE_RE = re.compile(rf"^{DIRECTIVE}\s*=", re.IGNORECASE)
_TAG_PREFIXES = ("set:", "tag:")
_TAG_FORBIDDEN_RE = re.compile(r"[,:#;\s]")


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------
def split_comment(line: str) -> Tuple[str, Optional[str]]:
    cut = [idx for idx in (line.find("#"), line.find(";")) if idx >= 0]
    if not cut:
        return line.rstrip(), None
    idx = min(cut)
    comment = line[idx + 1:].strip()
    return line[:idx].rstrip(), comment or None


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_directive(text: str) -> bool:
    return bool(_DIRECTIVE_RE.match(text))


def _parse_values(body: str, line_number: Optional[int]) -> Dict[str, Optional[str]]:
    _, _, value_list = body.partition("=")
    values = [v.strip() for v in value_list.split(",")]
    if not values or not values[0]:
        raise ParseError("dhcp-host without MAC address", line_number)

    try:
        mac = normalize_mac(values[0])
    except ValueError as exc:
        raise ParseError(f"invalid MAC address: {exc}", line_number) from exc

    fields: Dict[str, Optional[str]] = {"mac": mac, "ip": None, "hostname": "", "tag": None, "lease_time": None}
    for value in values[1:]:
        if not value:
            continue
        if value.lower().startswith(_TAG_PREFIXES):
            fields["tag"] = value.split(":", 1)[1]
            continue
        if _is_ipv4(value):
            fields["ip"] = str(ipaddress.IPv4Address(value))
            continue
        if _LEASE_TIME_RE.match(value):
            fields["lease_time"] = value
            continue
        if not fields["hostname"]:
            fields["hostname"] = value
    return fields


def parse_static_line(line: str, line_number: int = 0) -> Optional[StaticEntry]:
    """
    Parse one line of the reservation file.

    Returns ``None`` for blank lines and comments that are not commented-out
    directives. Raises ``ParseError`` for directives that cannot be read.
    """
    text = line.strip()
    if not text:
        return None

    enabled = True
    if text.startswith("#"):
        text = text.lstrip("#").strip()
        if not is_directive(text):
            return None
        enabled = False
    elif not is_directive(text):
        return None

    body, comment = split_comment(text)
    fields = _parse_values(body, line_number)
    return StaticEntry(
        id=f"entry_{line_number}",
        enabled=enabled,
        comment=comment,
        line_number=line_number,
        raw_line=text,
        **fields,
    )


# ----------------------------------------------------------------------
# Serialisation
# ----------------------------------------------------------------------
def to_directive(entry: StaticEntry) -> str:
    parts: List[str] = []
    if entry.mac:
        parts.append(entry.mac)
    if entry.tag:
        parts.append(f"set:{entry.tag}")
    if entry.ip:
        parts.append(entry.ip)
    if entry.hostname:
        parts.append(entry.hostname)
    if entry.lease_time:
        parts.append(entry.lease_time)

    line = f"{DIRECTIVE}=" + ",".join(parts)
    if entry.comment:
        line += f" # {entry.comment}"
    return line


def serialize_entry(entry: StaticEntry) -> str:
    if entry.enabled:
        return to_directive(entry)
    return "# " + (entry.raw_line or to_directive(entry))


def serialize_entries(entries: Sequence[StaticEntry]) -> str:
    return "".join(serialize_entry(entry) + "\n" for entry in entries)


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------
def validate_static_entry(entry: StaticEntry) -> Optional[ValidationErrorDetail]:
    if not entry.mac:
        return ValidationErrorDetail(code="mac_required", message="MAC address is required")
    try:
        normalize_mac(entry.mac)
    except ValueError:
        return ValidationErrorDetail(
            code="mac_invalid",
            message="invalid MAC address format",
            hint="Use six hex octets, e.g. AA:BB:CC:DD:EE:FF",
        )

    if not entry.ip and not entry.hostname:
        return ValidationErrorDetail(code="address_required", message="either IP address or hostname is required")

    if entry.ip:
        try:
            address = ipaddress.ip_address(entry.ip)
        except ValueError:
            return ValidationErrorDetail(code="ip_invalid", message=f"invalid IP address format: {entry.ip}")
        if address.version != 4:
            return ValidationErrorDetail(code="ip_not_ipv4", message="only IPv4 addresses are supported")

    if entry.hostname:
        if len(entry.hostname) > MAX_HOSTNAME_LENGTH:
            return ValidationErrorDetail(
                code="hostname_too_long",
                message=f"hostname too long (max {MAX_HOSTNAME_LENGTH} characters)",
            )
        if not _HOSTNAME_RE.match(entry.hostname):
            return ValidationErrorDetail(
                code="hostname_invalid",
                message="hostname contains invalid characters",
                hint="Use letters, digits, '-' and '.' only",
            )
        if _LEASE_TIME_RE.match(entry.hostname) or _is_ipv4(entry.hostname):
            return ValidationErrorDetail(
                code="hostname_ambiguous",
                message=f"hostname {entry.hostname} would be read back as a lease time or IP address",
                hint="Use a name that is not a number, a lease time or a dotted IPv4 address",
            )

    if entry.lease_time and not _LEASE_TIME_RE.match(entry.lease_time):
        return ValidationErrorDetail(
            code="lease_time_invalid",
            message=f"invalid lease time: {entry.lease_time}",
            hint="Use 'infinite' or a number with an optional s/m/h/d/w unit",
        )

    if entry.tag and _TAG_FORBIDDEN_RE.search(entry.tag):
        return ValidationErrorDetail(
            code="tag_invalid",
            message="tag must not contain ',', ':', '#', ';' or whitespace",
        )

    if entry.comment and ("\n" in entry.comment or "\r" in entry.comment):
        return ValidationErrorDetail(code="comment_invalid", message="comment must be a single line")
    return None


def find_violations(entries: Sequence[StaticEntry]) -> List[StaticViolation]:
    violations: List[StaticViolation] = []
    seen_macs: Dict[str, int] = {}
    seen_ips: Dict[str, int] = {}

    for position, entry in enumerate(entries, start=1):
        detail = validate_static_entry(entry)
        if detail is not None:
            violations.append(
                StaticViolation(code=detail.code, message=f"entry {position}: {detail.message}", positions=[position])
            )

        if not entry.enabled:
            continue

        if entry.mac:
            first = seen_macs.setdefault(entry.mac, position)
            if first != position:
                violations.append(
                    StaticViolation(
                        code="duplicate_mac",
                        message=f"duplicate MAC {entry.mac} in entries {first} and {position}",
                        positions=[first, position],
                    )
                )
        if entry.ip:
            first = seen_ips.setdefault(entry.ip, position)
            if first != position:
                violations.append(
                    StaticViolation(
                        code="duplicate_ip",
                        message=f"duplicate IP {entry.ip} in entries {first} and {position}",
                        positions=[first, position],
                    )
                )
    return violations


__all__ = [
    "parse_static_line",
    "split_comment",
    "to_directive",
    "serialize_entry",
    "serialize_entries",
    "validate_static_entry",
    "find_violations",
]
