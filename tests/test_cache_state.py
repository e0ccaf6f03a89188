import json

from fakes import make_record
from issue_relay.sync.models import DeliveryLink
from issue_relay.sync.state import CACHE_VERSION, LocalCache


def link(record_id: str, message_id: str = "m-1", channel_id: str = "triage") -> DeliveryLink:
    return DeliveryLink(
        connection_id="bugs",
        channel_id=channel_id,
        record_id=record_id,
        message_id=message_id,
    )


class TestRecordsAndClaims:
    def test_empty_cache(self, cache):
        assert cache.cached_records("bugs", "m1") == {}
        assert cache.get_record("bugs", "r1") is None
        assert not cache.path.exists()

    def test_store_claims_for_mapping(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))

        assert list(cache.cached_records("bugs", "m1")) == ["r1"]
        assert cache.cached_records("bugs", "m2") == {}
        assert cache.get_record("bugs", "r1").title == "Bug r1"

    def test_store_overwrites_record(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        cache.store("bugs", "m1", "triage", make_record("r1", title="Edited"))
        assert cache.get_record("bugs", "r1").title == "Edited"

    def test_other_claimants(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        cache.store("bugs", "m2", "oncall", make_record("r1"))
        cache.store("bugs", "m3", "triage", make_record("r1"))

        assert cache.other_claimants("bugs", "m1", "r1") == ["m2", "m3"]
        assert cache.other_claimants("bugs", "m1", "r1", channel_id="triage") == ["m3"]
        assert cache.other_claimants("bugs", "m1", "r9") == []

    def test_release_keeps_record_while_claimed(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        cache.store("bugs", "m2", "triage", make_record("r1"))

        cache.release("bugs", "m1", "r1")
        assert cache.get_record("bugs", "r1") is not None
        assert cache.cached_records("bugs", "m1") == {}

        cache.release("bugs", "m2", "r1")
        assert cache.get_record("bugs", "r1") is None

    def test_find_connections(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        cache.store("ops", "m2", "triage", make_record("o1"))

        assert cache.find_connections("r1") == ["bugs"]
        assert cache.find_connections("o1") == ["ops"]
        assert cache.find_connections("nope") == []


class TestLinks:
    def test_put_get_delete(self, cache):
        cache.put_link(link("r1"))

        assert cache.get_link("bugs", "triage", "r1").message_id == "m-1"
        assert cache.get_link("bugs", "oncall", "r1") is None

        cache.delete_link("bugs", "triage", "r1")
        assert cache.get_link("bugs", "triage", "r1") is None

    def test_put_overwrites(self, cache):
        cache.put_link(link("r1", "m-1"))
        cache.put_link(link("r1", "m-2"))
        assert cache.get_link("bugs", "triage", "r1").message_id == "m-2"

    def test_delete_missing_is_noop(self, cache):
        cache.delete_link("bugs", "triage", "r1")
        assert not cache.path.exists()


class TestPersistence:
    def test_reload_from_disk(self, state_dir):
        first = LocalCache(state_dir)
        first.store("bugs", "m1", "triage", make_record("r1"))
        first.put_link(link("r1"))
        first.set_last_sync("m1", "2024-05-01T00:00:00+00:00")

        second = LocalCache(state_dir)
        assert list(second.cached_records("bugs", "m1")) == ["r1"]
        assert second.get_link("bugs", "triage", "r1").message_id == "m-1"
        assert second.get_last_sync("m1") == "2024-05-01T00:00:00+00:00"

    def test_file_layout(self, cache):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        cache.put_link(link("r1"))

        data = json.loads(cache.path.read_text())
        assert data["version"] == CACHE_VERSION
        assert data["claims"] == {"bugs": {"r1": {"m1": "triage"}}}
        assert data["links"]["bugs/triage"]["r1"]["message_id"] == "m-1"

    def test_no_temp_files_left(self, cache, state_dir):
        cache.store("bugs", "m1", "triage", make_record("r1"))
        assert [p.name for p in state_dir.iterdir()] == ["cache.json"]


def test_stats(cache):
    cache.store("bugs", "m1", "triage", make_record("r1"))
    cache.store("bugs", "m1", "triage", make_record("r2"))
    cache.put_link(link("r1"))
    cache.set_last_sync("m1", "2024-05-01T00:00:00+00:00")

    assert cache.stats() == {
        "records": 2,
        "links": 1,
        "last_sync": {"m1": "2024-05-01T00:00:00+00:00"},
    }
