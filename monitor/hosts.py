from __future__ import annotations

from typing import List

from models.lease_model import strip_trailing_comment
from models.schemas import HostEntry


class HostsParser:
    """Reads ``<ip> <name> [alias...]`` lines of a hosts file."""

    def parse_hosts(self, text: str) -> List[HostEntry]:
        entries: List[HostEntry] = []
        for raw in text.splitlines():
            line = strip_trailing_comment(raw.strip())
            if not line:
                continue
            fields = line.split()
            if len(fields) < 2:
                continue
            entries.append(HostEntry(ip=fields[0], name=fields[1], aliases=tuple(fields[2:])))
        return entries


__all__ = ["HostsParser"]
