"""
Sync Gateway: per-collection load / insert / delete with cache fallback.

Rule: trust the primary store on success, trust the local cache mirror on
failure.

    load()    store ok → install rows in state + mirror (write-through)
              store fails → mirror, sorted by client timestamp → state only
    insert()  store ok → load()
              store fails → append locally (placeholder id), re-sort,
              persist to mirror
    delete()  store ok → load()
              store fails → drop the id from state + mirror

Transport failures and store rejections take the same fallback path. No
method raises for a store failure; callers receive a SyncOutcome. Only
invalid input (unknown collection, invalid record) raises ValidationError,
before anything is sent.

Usage:
    gateway = SyncGateway(store, mirror, state)
    outcome = gateway.insert("winners", {...})
    if outcome.degraded:
        ...  # kept locally until the primary store is reachable again
"""

from __future__ import annotations

import logging
import uuid

from pitchboard.integrations.store_gateway import PrimaryStore, StoreResult
from pitchboard.models.records import (
    CACHE_KEYS,
    COLLECTIONS,
    check_collection,
    normalize_record,
    sort_by_timestamp,
    submission_payload,
)
from pitchboard.services.cache_mirror import LocalCacheMirror
from pitchboard.services.state_cache import ApplicationStateCache

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"


def local_placeholder_id() -> str:
    """Id given to records that only exist in the cache mirror."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


class SyncOutcome:
    """Result of one sync gateway operation.

    Attributes:
        collection: Collection name.
        ok:         True if the primary store confirmed the operation.
        degraded:   True if the outcome was served from the cache mirror.
        record:     Inserted record (store row or local copy), if any.
        records:    Collection view after the operation.
        error:      Store error text when degraded.
    """

    __slots__ = ("collection", "ok", "degraded", "record", "records", "error")

    def __init__(self, collection, *, ok, degraded=False, record=None, records=(), error=None):
        self.collection = collection
        self.ok = ok
        self.degraded = degraded
        self.record = record
        self.records = records
        self.error = error

    def to_dict(self) -> dict:
        return {
            "collection": self.collection,
            "ok": self.ok,
            "degraded": self.degraded,
            "record": self.record,
            "count": len(self.records),
            "error": self.error,
        }


class SyncGateway:
    def __init__(
        self,
        store: PrimaryStore,
        mirror: LocalCacheMirror,
        state: ApplicationStateCache,
    ) -> None:
        self.store = store
        self.mirror = mirror
        self.state = state

    # ── Load ─────────────────────────────────────────────────────────────────

    def load(self, collection: str) -> SyncOutcome:
        """Refresh *collection* from the primary store, or from the mirror on failure."""
        check_collection(collection)
        result = self.store.select_ordered(collection)
        if result.ok:
            rows = list(result.data or [])
            self.state.install(collection, rows)
            self.mirror.set(CACHE_KEYS[collection], rows)
            logger.debug(
                "Loaded %d %s from primary store", len(rows), collection,
                extra={"collection": collection, "duration_ms": result.duration_ms},
            )
            return SyncOutcome(collection, ok=True, records=self.state.view(collection))

        self._log_fallback("load", collection, result)
        cached = self.mirror.get(CACHE_KEYS[collection]) or []
        self.state.install(collection, sort_by_timestamp(cached))
        return SyncOutcome(
            collection, ok=False, degraded=True,
            records=self.state.view(collection), error=result.error,
        )

    def load_all(self) -> dict[str, SyncOutcome]:
        return {name: self.load(name) for name in COLLECTIONS}

    # ── Insert ───────────────────────────────────────────────────────────────

    def submit(self, collection: str, record: dict) -> StoreResult:
        """Send *record* to the primary store only; no refresh, no fallback.

        The record's own ``id`` (if any) is never sent.
        """
        check_collection(collection)
        return self.store.insert(collection, submission_payload(collection, record))

    def insert(self, collection: str, record: dict) -> SyncOutcome:
        """Submit a new record; keep it locally if the primary store fails.

        Raises:
            ValidationError: if *record* is invalid (nothing is written).
        """
        record = normalize_record(collection, record)
        result = self.submit(collection, record)
        if result.ok:
            logger.info(
                "Inserted %s id=%s", collection, result.data.get("id"),
                extra={"collection": collection, "record_id": result.data.get("id")},
            )
            outcome = self.load(collection)
            return SyncOutcome(
                collection, ok=True, degraded=outcome.degraded,
                record=result.data, records=outcome.records, error=outcome.error,
            )

        self._log_fallback("insert", collection, result)
        local = dict(record)
        local.pop("created_at", None)
        local["id"] = local_placeholder_id()
        updated = sort_by_timestamp([*self.state.view(collection), local])
        self.state.install(collection, updated)
        self.mirror.set(CACHE_KEYS[collection], self.state.view(collection))
        return SyncOutcome(
            collection, ok=False, degraded=True, record=local,
            records=self.state.view(collection), error=result.error,
        )

    # ── Delete ───────────────────────────────────────────────────────────────

    def delete(self, collection: str, record_id: str) -> SyncOutcome:
        """Delete *record_id*; on store failure remove it locally only."""
        check_collection(collection)
        result = self.store.delete(collection, record_id)
        if result.ok:
            logger.info(
                "Deleted %s id=%s", collection, record_id,
                extra={"collection": collection, "record_id": record_id},
            )
            return self.load(collection)

        self._log_fallback("delete", collection, result)
        remaining = [r for r in self.state.view(collection) if r.get("id") != record_id]
        self.state.install(collection, remaining)
        self.mirror.set(CACHE_KEYS[collection], self.state.view(collection))
        return SyncOutcome(
            collection, ok=False, degraded=True,
            records=self.state.view(collection), error=result.error,
        )

    # ── Bulk install (restore fallback) ──────────────────────────────────────

    def install_local(self, collection: str, records) -> None:
        """Replace *collection* in state and mirror verbatim, bypassing the store."""
        check_collection(collection)
        rows = list(records)
        self.state.install(collection, rows)
        self.mirror.set(CACHE_KEYS[collection], rows)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _log_fallback(self, op: str, collection: str, result: StoreResult) -> None:
        kind = "unreachable" if result.unreachable else "rejected"
        logger.warning(
            "Primary store %s on %s (%s): using local cache mirror",
            kind, op, result.error,
            extra={"collection": collection, "store": self.store.name, "degraded": True},
        )
