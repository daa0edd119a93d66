"""Tests for the restore orchestrator and its identity map."""

from pitchboard.models.records import CACHE_KEYS, ELITE, LOSERS, WINNERS, normalize_record
from pitchboard.services.restore_service import IdentityMap, RestorePayload, remap_elite


def _export(collection, make_record, old_id, **overrides):
    """A record as another system would have exported it."""
    return normalize_record(
        collection,
        make_record(id=old_id, created_at="2025-12-01T00:00:00+00:00", **overrides),
    )


def _by_name(records):
    return {r["name"]: r for r in records}


class TestIdentityMap:
    def test_record_and_resolve(self):
        m = IdentityMap()
        m.record("old-1", "new-1")
        assert m.resolve("old-1") == "new-1"
        assert "old-1" in m
        assert len(m) == 1

    def test_unmapped_resolves_to_none(self):
        m = IdentityMap()
        assert m.resolve("ghost") is None
        assert m.resolve(None) is None
        assert None not in m

    def test_ignores_missing_ids(self):
        m = IdentityMap()
        m.record(None, "new")
        m.record("old", None)
        assert m.as_dict() == {}

    def test_remap_elite_does_not_mutate_input(self):
        m = IdentityMap()
        m.record("w-old", "w-new")
        elite = {"id": "e1", "winner_id": "w-old"}
        assert remap_elite(elite, m)["winner_id"] == "w-new"
        assert elite["winner_id"] == "w-old"


class TestRemoteRestore:
    def test_replaces_store_contents_and_remaps_elite(self, sync, store, make_record):
        sync.gateway.insert(WINNERS, make_record("Stale winner"))
        sync.gateway.insert(LOSERS, make_record("Stale loser"))

        payload = RestorePayload(
            winners=[
                _export(WINNERS, make_record, "w-old-1", name="Ada"),
                _export(WINNERS, make_record, "w-old-2", name="Grace"),
            ],
            losers=[_export(LOSERS, make_record, "l-old-1", name="Linus")],
            elite=[_export(ELITE, make_record, "e-old-1", name="Ada", winner_id="w-old-1")],
        )

        report = sync.restorer.restore(payload)

        assert report.mode == "remote"
        assert report.inserted == {WINNERS: 2, LOSERS: 1, ELITE: 1}
        assert report.failed == {WINNERS: 0, LOSERS: 0, ELITE: 0}
        assert report.unlinked_elite == 0

        winners = _by_name(sync.state.view(WINNERS))
        assert set(winners) == {"Ada", "Grace"}
        assert [r["name"] for r in sync.state.view(LOSERS)] == ["Linus"]
        [elite] = sync.state.view(ELITE)
        assert elite["winner_id"] == winners["Ada"]["id"]
        assert report.identity_map == {
            "w-old-1": winners["Ada"]["id"],
            "w-old-2": winners["Grace"]["id"],
        }
        # New ids, never the exported ones
        assert "w-old-1" not in winners["Ada"]["id"]

    def test_purges_dependents_first(self, sync, store, make_record):
        payload = RestorePayload(winners=[], losers=[], elite=[])
        sync.restorer.restore(payload)
        purges = [c for op, c in store.calls if op == "purge"]
        assert purges == [ELITE, LOSERS, WINNERS]

    def test_unmapped_winner_reference_becomes_null(self, sync, make_record):
        payload = RestorePayload(
            winners=[_export(WINNERS, make_record, "w-1")],
            elite=[_export(ELITE, make_record, "e-1", winner_id="w-unknown")],
        )
        report = sync.restorer.restore(payload)

        assert report.unlinked_elite == 1
        [elite] = sync.state.view(ELITE)
        assert elite["winner_id"] is None

    def test_rejected_winner_leaves_its_elite_unlinked(self, sync, store, make_record):
        store.reject_insert_if(lambda collection, record: record.get("name") == "Dup")
        payload = RestorePayload(
            winners=[
                _export(WINNERS, make_record, "w-ok", name="Fine"),
                _export(WINNERS, make_record, "w-dup", name="Dup"),
            ],
            elite=[_export(ELITE, make_record, "e-1", name="Elite", winner_id="w-dup")],
        )
        report = sync.restorer.restore(payload)

        assert report.mode == "remote"
        assert report.inserted[WINNERS] == 1
        assert report.failed[WINNERS] == 1
        assert "w-dup" not in report.identity_map
        assert [r["name"] for r in sync.state.view(WINNERS)] == ["Fine"]
        [elite] = sync.state.view(ELITE)
        assert elite["winner_id"] is None

    def test_rejected_elite_is_counted_once(self, sync, store, make_record):
        store.reject_insert_if(lambda collection, record: collection == ELITE)
        payload = RestorePayload(
            winners=[_export(WINNERS, make_record, "w-1")],
            elite=[_export(ELITE, make_record, "e-1", winner_id="w-unknown")],
        )
        report = sync.restorer.restore(payload)

        assert report.failed[ELITE] == 1
        assert report.inserted[ELITE] == 0
        assert report.unlinked_elite == 0
        assert sync.state.view(ELITE) == ()

    def test_restoring_twice_yields_fresh_ids(self, sync, make_record):
        payload = RestorePayload(winners=[_export(WINNERS, make_record, "w-1")])
        first = sync.restorer.restore(payload).identity_map["w-1"]
        second = sync.restorer.restore(payload).identity_map["w-1"]

        assert first != second
        assert [r["id"] for r in sync.state.view(WINNERS)] == [second]

    def test_missing_optional_collections_are_left_alone(self, sync, store, make_record):
        kept = sync.gateway.insert(LOSERS, make_record("Keep me")).record

        sync.restorer.restore(RestorePayload(winners=[_export(WINNERS, make_record, "w-1")]))

        assert [r["id"] for r in sync.state.view(LOSERS)] == [kept["id"]]
        purges = [c for op, c in store.calls if op == "purge"]
        assert purges == [WINNERS]

    def test_mirror_reflects_restored_store(self, sync, mirror, make_record):
        sync.restorer.restore(RestorePayload(winners=[_export(WINNERS, make_record, "w-1", name="Ada")]))
        assert [r["name"] for r in mirror.get(CACHE_KEYS[WINNERS])] == ["Ada"]


class TestFallback:
    def _payload(self, make_record):
        return RestorePayload(
            winners=[
                _export(WINNERS, make_record, "w-2", timestamp="2026-03-02T00:00:00Z"),
                _export(WINNERS, make_record, "w-1", timestamp="2026-03-01T00:00:00Z"),
            ],
            losers=[_export(LOSERS, make_record, "l-1")],
            elite=[_export(ELITE, make_record, "e-1", winner_id="w-1")],
        )

    def test_unreachable_store_installs_payload_verbatim(self, sync, store, mirror, make_record):
        store.down()
        payload = self._payload(make_record)

        report = sync.restorer.restore(payload)

        assert report.mode == "fallback"
        assert report.error
        assert report.inserted == {WINNERS: 2, LOSERS: 1, ELITE: 1}
        # Original ids, original order, no remap
        assert [r["id"] for r in sync.state.view(WINNERS)] == ["w-2", "w-1"]
        assert sync.state.view(ELITE)[0]["winner_id"] == "w-1"
        assert mirror.get(CACHE_KEYS[LOSERS]) == payload.losers

    def test_store_lost_mid_restore_falls_back(self, sync, store, make_record):
        store.down("insert")
        report = sync.restorer.restore(self._payload(make_record))

        assert report.mode == "fallback"
        assert [r["id"] for r in sync.state.view(WINNERS)] == ["w-2", "w-1"]
        assert not any(op == "insert" and c == LOSERS for op, c in store.calls)

    def test_rejected_purge_falls_back(self, sync, store, make_record):
        store.reject("purge")
        report = sync.restorer.restore(self._payload(make_record))

        assert report.mode == "fallback"
        assert not any(op == "insert" for op, _ in store.calls)

    def test_fallback_leaves_unsupplied_collections(self, sync, store, make_record):
        kept = sync.gateway.insert(ELITE, make_record("Elite")).record
        store.down()

        sync.restorer.restore(RestorePayload(winners=[_export(WINNERS, make_record, "w-1")]))

        assert [r["id"] for r in sync.state.view(ELITE)] == [kept["id"]]

    def test_report_to_dict(self, sync, store, make_record):
        store.down()
        body = sync.restorer.restore(self._payload(make_record)).to_dict()
        assert body["mode"] == "fallback"
        assert body["identity_map"] == {}
