import pytest

from models.errors import ConflictError, EntryValidationError, NotFoundError, ParseError, SourceIOError
from models.schemas import StaticEntry
from models.static_model import StaticStore

STATIC_TEXT = """\
# managed reservations
dhcp-host=AA:BB:CC:DD:EE:01,192.168.1.10,printer
dhcp-host=not-a-mac,192.168.1.11,broken
dhcp-host=AA:BB:CC:DD:EE:02,set:iot,192.168.1.12,camera,infinite # porch
# dhcp-host=AA:BB:CC:DD:EE:03,192.168.1.13,retired
"""


@pytest.fixture
def static_file(tmp_path):
    path = tmp_path / "static.conf"
    path.write_text(STATIC_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def store(static_file):
    store = StaticStore(static_file, log_level="DEBUG")
    store.load()
    return store


def test_load_keeps_only_valid_lines(store):
    entries = store.get_all()

    assert [e.hostname for e in entries] == ["printer", "camera", "retired"]
    assert [e.id for e in entries] == ["entry_2", "entry_4", "entry_5"]
    assert [e.enabled for e in entries] == [True, True, False]
    assert store.last_modified is not None


def test_load_missing_file(tmp_path):
    with pytest.raises(SourceIOError):
        StaticStore(tmp_path / "absent.conf").load()


def test_load_without_configured_path():
    with pytest.raises(SourceIOError):
        StaticStore().load()


def test_load_invalid_utf8(tmp_path):
    path = tmp_path / "static.conf"
    path.write_bytes(b"dhcp-host=AA:BB:CC:DD:EE:01,\xff\xfe,host\n")

    with pytest.raises(ParseError):
        StaticStore(path).load()


def test_add_assigns_id_and_returns_copy(store):
    added = store.add(StaticEntry(mac="aa:bb:cc:dd:ee:09", ip="192.168.1.40", hostname="tv"))

    assert added.id.startswith("entry_")
    assert added.mac == "AA:BB:CC:DD:EE:09"
    assert added.raw_line == "dhcp-host=AA:BB:CC:DD:EE:09,192.168.1.40,tv"

    added.hostname = "changed"
    assert store.get(added.id).hostname == "tv"


def test_add_duplicate_enabled_mac_conflicts(store):
    before = len(store)

    with pytest.raises(ConflictError):
        store.add(StaticEntry(mac="AA:BB:CC:DD:EE:01", ip="192.168.1.99", hostname="other"))

    assert len(store) == before


def test_add_duplicate_enabled_ip_conflicts(store):
    with pytest.raises(ConflictError):
        store.add(StaticEntry(mac="AA:BB:CC:DD:EE:99", ip="192.168.1.10", hostname="other"))


def test_add_disabled_duplicate_succeeds(store):
    added = store.add(StaticEntry(mac="AA:BB:CC:DD:EE:01", ip="192.168.1.10", hostname="spare", enabled=False))

    assert added.enabled is False


def test_add_duplicate_of_disabled_entry_succeeds(store):
    store.add(StaticEntry(mac="AA:BB:CC:DD:EE:03", ip="192.168.1.13", hostname="revived"))

    assert len(store.find_by_mac("AA:BB:CC:DD:EE:03")) == 2


def test_add_invalid_entry_is_rejected(store):
    before = store.get_all()

    with pytest.raises(EntryValidationError) as excinfo:
        store.add(StaticEntry(mac="AA:BB:CC:DD:EE:09"))

    assert excinfo.value.detail.code == "address_required"
    assert str(excinfo.value) == "validation failed: either IP address or hostname is required"
    assert store.get_all() == before


def test_update_preserves_identity(store):
    updated = store.update("entry_2", StaticEntry(mac="AA:BB:CC:DD:EE:01", ip="192.168.1.20", hostname="printer2"))

    assert updated.id == "entry_2"
    assert updated.line_number == 2
    assert store.get("entry_2").ip == "192.168.1.20"


def test_update_conflict_with_other_entry(store):
    with pytest.raises(ConflictError):
        store.update("entry_2", StaticEntry(mac="AA:BB:CC:DD:EE:02", ip="192.168.1.10", hostname="printer"))

    assert store.get("entry_2").mac == "AA:BB:CC:DD:EE:01"


def test_update_unknown_id(store):
    with pytest.raises(NotFoundError):
        store.update("entry_404", StaticEntry(mac="AA:BB:CC:DD:EE:07", hostname="x"))


def test_delete(store):
    store.delete("entry_4")

    with pytest.raises(NotFoundError):
        store.get("entry_4")
    with pytest.raises(NotFoundError):
        store.delete("entry_4")


def test_enable_skips_uniqueness_check(store):
    store.add(StaticEntry(mac="AA:BB:CC:DD:EE:05", ip="192.168.1.13", hostname="new"))

    store.enable("entry_5")

    assert store.get("entry_5").enabled is True
    codes = [v.code for v in store.validate_all()]
    assert codes == ["duplicate_ip"]


def test_disable(store):
    store.disable("entry_2")

    assert store.get("entry_2").enabled is False
    assert store.filter(enabled=False)[0].id == "entry_2"


def test_find_by_mac_normalizes(store):
    found = store.find_by_mac("aa-bb-cc-dd-ee-02")

    assert [e.hostname for e in found] == ["camera"]


def test_find_by_mac_rejects_garbage(store):
    with pytest.raises(EntryValidationError):
        store.find_by_mac("nope")


def test_find_by_ip(store):
    assert [e.hostname for e in store.find_by_ip("192.168.1.12")] == ["camera"]
    assert store.find_by_ip("192.168.1.250") == []
    with pytest.raises(EntryValidationError):
        store.find_by_ip("999.1.1.1")


def test_filter_substrings(store):
    assert [e.hostname for e in store.filter(mac="ee:0")] == ["printer", "camera", "retired"]
    assert [e.hostname for e in store.filter(hostname="CAM")] == ["camera"]
    assert [e.hostname for e in store.filter(enabled=True, hostname="e")] == ["printer", "camera"]


def test_save_and_reload(store, static_file):
    store.add(StaticEntry(mac="AA:BB:CC:DD:EE:09", ip="192.168.1.40", hostname="tv", tag="Media"))

    assert store.save() == 4

    text = static_file.read_text(encoding="utf-8")
    assert "# dhcp-host=AA:BB:CC:DD:EE:03,192.168.1.13,retired" in text
    assert "broken" not in text

    reloaded = StaticStore(static_file)
    reloaded.load()
    for before, after in zip(store.get_all(), reloaded.get_all()):
        assert after.equivalent(before)


def test_save_creates_parent_directories(tmp_path):
    target = tmp_path / "nested" / "dir" / "static.conf"
    store = StaticStore(target)
    store.add(StaticEntry(mac="AA:BB:CC:DD:EE:01", hostname="first"))

    store.save()

    assert target.read_text(encoding="utf-8") == "dhcp-host=AA:BB:CC:DD:EE:01,first\n"


def test_validate_all_clean(store):
    assert store.validate_all() == []


@pytest.mark.parametrize(
    "fields, code",
    [
        ({"lease_time": "forever"}, "lease_time_invalid"),
        ({"tag": "a,b"}, "tag_invalid"),
        ({"hostname": "42"}, "hostname_ambiguous"),
        ({"comment": "line one\nline two"}, "comment_invalid"),
    ],
)
def test_add_rejects_values_the_file_cannot_hold(store, static_file, fields, code):
    data = {"mac": "AA:BB:CC:DD:EE:09", "ip": "192.168.1.40", "hostname": "tv"}
    data.update(fields)

    with pytest.raises(EntryValidationError) as excinfo:
        store.add(StaticEntry(**data))

    assert excinfo.value.detail.code == code
    assert len(store) == 3


def test_added_entries_survive_save_and_reload(store):
    added = store.add(StaticEntry(mac="AA:BB:CC:DD:EE:09", ip="192.168.1.40", hostname="tv", lease_time="12h", tag="Media"))
    store.save()

    store.load()

    reloaded = store.get(added.id)
    assert reloaded.equivalent(added)


def test_reload_keeps_ids_of_moved_entries(store, static_file):
    static_file.write_text(
        STATIC_TEXT.replace("# managed reservations\n", "# managed reservations\ndhcp-host=AA:BB:CC:DD:EE:07,192.168.1.77,newcomer\n"),
        encoding="utf-8",
    )

    store.load()

    ids = [e.id for e in store.get_all()]
    assert len(set(ids)) == len(ids)
    assert store.get("entry_2").hostname == "printer"
    newcomer = store.find_by_mac("AA:BB:CC:DD:EE:07")[0]
    assert newcomer.line_number == 2
    assert newcomer.id != "entry_2"
