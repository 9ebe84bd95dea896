"""
MAC and IPv4 helpers shared by the parsers and the static store.
"""
from __future__ import annotations

import ipaddress
import re
from typing import Optional

_HEX_ONLY_RE = re.compile(r"^[0-9A-Fa-f]{12}$")
_SEPARATED_RE = re.compile(r"^[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}$")
_DOTTED_RE = re.compile(r"^[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}$")

# Second hex digit values with the IEEE locally-administered bit set.
PRIVATE_MAC_DIGITS = frozenset("26AE")


def normalize_mac(value: str) -> str:
    """
    Return ``value`` as an upper-case, colon separated 6-byte MAC.

    Accepts ``AA:BB:CC:DD:EE:FF``, ``AA-BB-CC-DD-EE-FF``, ``AABBCCDDEEFF`` and
    ``aabb.ccdd.eeff``. Raises ``ValueError`` for anything else.
    """
    if value is None:
        raise ValueError("MAC address cannot be empty")
    text = str(value).strip()
    if not text:
        raise ValueError("MAC address cannot be empty")

    if _SEPARATED_RE.match(text) or _DOTTED_RE.match(text):
        digits = re.sub(r"[:.\-]", "", text)
    elif _HEX_ONLY_RE.match(text):
        digits = text
    else:
        raise ValueError(f"invalid MAC address format: {text}")

    digits = digits.upper()
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def try_normalize_mac(value: Optional[str]) -> Optional[str]:
    try:
        return normalize_mac(value)
    except ValueError:
        return None


def is_private_mac(mac: str) -> bool:
    """True when the locally-administered bit of the first octet is set."""
    text = str(mac).strip().upper()
    return len(text) > 1 and text[1] in PRIVATE_MAC_DIGITS


def parse_ipv4(value: Optional[str]) -> Optional[ipaddress.IPv4Address]:
    if value is None:
        return None
    try:
        return ipaddress.IPv4Address(str(value).strip())
    except ValueError:
        return None
