from datetime import datetime, timedelta, timezone
from ipaddress import IPv4Address

import pytest

from models.errors import ParseError
from models.lease_model import STATIC_LEASE_DURATION, LeaseParser, strip_trailing_comment

NOW = datetime(2023, 11, 14, 12, 0, 0, tzinfo=timezone.utc)


def test_lease_line_fields(resolver):
    parser = LeaseParser(resolver)

    leases = parser.parse_lease_file("1700000000 AA:BB:CC:DD:EE:FF 192.168.1.10 myhost client1\n", now=NOW)

    assert len(leases) == 1
    lease = leases[0]
    assert lease.is_static is False
    assert lease.ip == IPv4Address("192.168.1.10")
    assert lease.hostname == "myhost"
    assert lease.client_id == "client1"
    assert lease.expires_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert lease.remaining == lease.expires_at - NOW


def test_lease_mac_is_normalized_and_vendor_attached(resolver):
    parser = LeaseParser(resolver)

    lease = parser.parse_lease_file("1700000000 00:1b:63:84:45:e6 10.0.0.2 laptop *\n", now=NOW)[0]

    assert lease.mac == "00:1B:63:84:45:E6"
    assert lease.vendor.company.startswith("Apple")


def test_non_ipv4_address_is_absent(resolver):
    parser = LeaseParser(resolver)

    lease = parser.parse_lease_file("1700000000 00:00:0C:00:00:01 fe80::1 host6 *\n", now=NOW)[0]

    assert lease.ip is None


def test_bad_lines_are_skipped(resolver):
    text = "\n".join(
        [
            "1700000000 00:00:0C:00:00:01 10.0.0.1 good1 *",
            "1700000000 00:00:0C:00:00:02 10.0.0.2",
            "soon 00:00:0C:00:00:03 10.0.0.3 badtime *",
            "1700000000 not-a-mac 10.0.0.4 badmac *",
            "",
            "1700000100 00:00:0C:00:00:05 10.0.0.5 good2 01:00:00:0c:00:00:05",
        ]
    )
    parser = LeaseParser(resolver)

    leases = parser.parse_lease_file(text, now=NOW)

    assert [lease.hostname for lease in leases] == ["good1", "good2"]


def test_parse_lease_line_raises_on_bad_expiry(resolver):
    parser = LeaseParser(resolver)

    with pytest.raises(ParseError):
        parser.parse_lease_line(["never", "00:00:0C:00:00:01", "10.0.0.1", "h", "*"], NOW, 3)


def test_static_line_fields(resolver):
    parser = LeaseParser(resolver)

    lease = parser.parse_static_line("dhcp-host=AA:BB:CC:DD:EE:FF,set:trusted,192.168.1.50,myhost")

    assert lease.tag == "trusted"
    assert lease.ip == IPv4Address("192.168.1.50")
    assert lease.hostname == "myhost"
    assert lease.client_id == "myhost"
    assert lease.is_static is True
    assert lease.expires_at is None
    assert lease.remaining == STATIC_LEASE_DURATION


def test_static_line_tag_is_lowercased(resolver):
    parser = LeaseParser(resolver)

    lease = parser.parse_static_line("dhcp-host=00:00:0C:00:00:01,tag:Lab,printer")

    assert lease.tag == "lab"
    assert lease.ip is None


def test_static_line_needs_two_values(resolver):
    parser = LeaseParser(resolver)

    with pytest.raises(ParseError):
        parser.parse_static_line("dhcp-host=00:00:0C:00:00:01")


def test_static_config_skips_comments_and_bad_lines(resolver):
    text = "\n".join(
        [
            "# reservations",
            "dhcp-host=00:00:0C:00:00:01,10.0.0.10,printer ; office",
            "dhcp-host=zz:zz,10.0.0.11,broken",
            "domain=lan",
            "dhcp-host=00:1B:63:00:00:02,10.0.0.12,phone",
        ]
    )
    parser = LeaseParser(resolver)

    leases = parser.parse_static_config(text)

    assert [lease.hostname for lease in leases] == ["printer", "phone"]
    assert all(lease.is_static for lease in leases)


def test_strip_trailing_comment():
    assert strip_trailing_comment("10.0.0.1 host # note") == "10.0.0.1 host"
    assert strip_trailing_comment("10.0.0.1 host ; note # more") == "10.0.0.1 host"
    assert strip_trailing_comment("10.0.0.1 host") == "10.0.0.1 host"


def test_static_lease_duration_is_ten_years():
    assert STATIC_LEASE_DURATION == timedelta(days=3650)
