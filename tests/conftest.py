import json

import pytest

from models.vendor_model import VendorResolver

CONFIG_ENV_VARS = (
    "LEASESFILE",
    "HOSTSFILE",
    "STATICFILE",
    "MACDBFILE",
    "MACDBPRELOAD",
    "POLLINTERVAL",
    "LOGLEVEL",
    "DHCPMON_CONFIG",
)

VENDOR_RECORDS = [
    {
        "oui": "00:00:0C",
        "isPrivate": False,
        "companyName": "Cisco Systems, Inc",
        "companyAddress": "170 West Tasman Drive San Jose CA 95134 US",
        "countryCode": "US",
        "assignmentBlockSize": "MA-L",
        "dateCreated": "1998-04-22",
        "dateUpdated": "2015-11-17",
    },
    {
        "oui": "00:1B:63",
        "isPrivate": False,
        "companyName": "Apple, Inc.",
        "companyAddress": "1 Infinite Loop Cupertino CA 95014 US",
        "countryCode": "US",
        "assignmentBlockSize": "MA-L",
        "dateCreated": "2007-05-10",
        "dateUpdated": "2015-09-27",
    },
    {
        "oui": "00:1B:63:8",
        "isPrivate": False,
        "companyName": "Apple Sub-Block",
        "companyAddress": "1 Infinite Loop Cupertino CA 95014 US",
        "countryCode": "US",
        "assignmentBlockSize": "MA-M",
        "dateCreated": "2016-01-01",
        "dateUpdated": "2016-01-01",
    },
]


@pytest.fixture(scope="session", autouse=True)
def _log_dir(tmp_path_factory):
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("DHCPMON_LOG_DIR", str(tmp_path_factory.mktemp("logs")))
        yield


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_vendor_db(path, records=VENDOR_RECORDS, extra_lines=()):
    lines = [json.dumps(record) for record in records]
    lines.extend(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def vendor_db(tmp_path):
    return write_vendor_db(tmp_path / "macaddress.io-db.json")


@pytest.fixture
def resolver(vendor_db):
    return VendorResolver(vendor_db, log_level="DEBUG")
