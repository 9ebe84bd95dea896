"""
Shared Pydantic schemas used across the monitor.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from ipaddress import IPv4Address, ip_address
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.network import try_normalize_mac


class SourceName(str, Enum):
    LEASES = "leases"
    HOSTS = "hosts"
    STATIC = "static"


class SourceState(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    STALE = "stale"


class ValidationErrorDetail(BaseModel):
    code: str = Field(..., description="Stable machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    hint: Optional[str] = Field(None, description="Optional remediation hint")


class VendorRecord(BaseModel):
    """One line of the vendor database (macaddress.io JSON export)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prefix_key: str = Field("", alias="oui", description="Address prefix this record covers")
    is_private: bool = Field(False, alias="isPrivate")
    company: str = Field("", alias="companyName")
    address: str = Field("", alias="companyAddress")
    country_code: str = Field("", alias="countryCode")
    block_size: str = Field("", alias="assignmentBlockSize")
    created: str = Field("", alias="dateCreated")
    updated: str = Field("", alias="dateUpdated")


UNKNOWN_VENDOR = VendorRecord(
    prefix_key="00:00:00:00:00:00",
    company="UNKNOWN",
    address="UNKNOWN",
)

# Shared by every locally-administered address.
PRIVATE_VENDOR = VendorRecord(
    is_private=True,
    company="Local/Privacy MAC",
    address="UNKNOWN",
)


class LeaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    mac: str = Field(..., description="Upper-case colon separated hardware address")
    ip: Optional[IPv4Address] = None
    hostname: str = ""
    client_id: str = ""
    expires_at: Optional[datetime] = Field(None, description="Absent for static reservations")
    remaining: timedelta = Field(default_factory=timedelta)
    tag: Optional[str] = None
    vendor: VendorRecord = UNKNOWN_VENDOR
    is_static: bool = False


class HostEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str
    name: str
    aliases: Tuple[str, ...] = ()


class StaticEntry(BaseModel):
    """
    A dhcp-host reservation. Field rules are enforced by the static store so
    that operator input can be reported as a validation failure instead of a
    construction error.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = ""
    mac: Optional[str] = None
    ip: Optional[str] = None
    hostname: str = ""
    tag: Optional[str] = None
    lease_time: Optional[str] = None
    comment: Optional[str] = None
    enabled: bool = True
    line_number: int = 0
    raw_line: str = ""

    @field_validator("mac", mode="before")
    @classmethod
    def _normalize_mac(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        if not text:
            return None
        return try_normalize_mac(text) or text

    @field_validator("ip", mode="before")
    @classmethod
    def _normalize_ip(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        if not text:
            return None
        try:
            return str(ip_address(text))
        except ValueError:
            return text

    @field_validator("tag", "lease_time", "comment", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("hostname", mode="before")
    @classmethod
    def _strip_hostname(cls, v):
        return "" if v is None else str(v).strip()

    def display_name(self) -> str:
        if self.hostname:
            return self.hostname
        if self.ip:
            return self.ip
        return self.mac or ""

    def equivalent(self, other: "StaticEntry") -> bool:
        """Same reservation content, ignoring id and source position."""
        if other is None:
            return False
        return (
            self.mac == other.mac
            and self.ip == other.ip
            and self.hostname == other.hostname
            and self.tag == other.tag
            and self.lease_time == other.lease_time
            and self.comment == other.comment
            and self.enabled == other.enabled
        )


class StaticViolation(BaseModel):
    code: str = Field(..., description="Stable machine-readable violation code")
    message: str = Field(..., description="Human-readable description")
    positions: List[int] = Field(
        default_factory=list, description="1-indexed positions of the entries involved"
    )


class MonitorConfig(BaseModel):
    leases_file: str = "/var/lib/misc/dnsmasq.leases"
    hosts_file: str = "/var/lib/misc/hosts"
    static_file: Optional[str] = "/etc/dnsmasq.d/static.conf"
    mac_db_file: str = "/app/macaddress.io-db.json"
    mac_db_preload: bool = False
    poll_interval: float = Field(1.0, gt=0, description="Seconds between change checks")
    log_level: str = "INFO"

    @field_validator("static_file", mode="before")
    @classmethod
    def _empty_disables_static(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None
