"""
Restore Orchestrator: replace all three collections from a backup payload.

Best-effort and non-transactional. The primary store assigns new ids on
insert, so elite → winner references are rewritten through an IdentityMap:

    1. purge elite, then losers, then winners   (dependents first)
    2. submit each winner, record old id → new id
    3. submit each loser
    4. rewrite each elite winner_id via the map (None when unmapped), submit
    5. load all three collections

A store rejection of a single record is logged and skipped. If the primary
store is unreachable during any phase (or rejects a purge), the restore
switches to the local fallback: the payload is installed verbatim into the
state cache and the cache mirror, with no remapping and no attempt to
reconcile with whatever is left in the primary store.

Restoring the same payload twice produces two distinct id sets; restore is
"replace", never "merge".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pitchboard.core.exceptions import StoreUnavailableError
from pitchboard.integrations.store_gateway import PURGE_CUTOFF
from pitchboard.models.records import COLLECTIONS, ELITE, LOSERS, WINNERS
from pitchboard.services.sync_gateway import SyncGateway

logger = logging.getLogger(__name__)

# Purge order: records that reference others go first
PURGE_ORDER = (ELITE, LOSERS, WINNERS)


class IdentityMap:
    """Old (exporting system) id → new (primary store) id, built incrementally."""

    def __init__(self):
        self._mapping: dict[str, str] = {}

    def record(self, old_id, new_id) -> None:
        if old_id is None or new_id is None:
            return
        self._mapping[str(old_id)] = str(new_id)

    def resolve(self, old_id):
        """New id for *old_id*, or None when there is no mapping."""
        if old_id is None:
            return None
        return self._mapping.get(str(old_id))

    def as_dict(self) -> dict[str, str]:
        return dict(self._mapping)

    def __contains__(self, old_id) -> bool:
        return old_id is not None and str(old_id) in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)


def remap_elite(elite: dict, identity_map: IdentityMap) -> dict:
    """Copy of *elite* with ``winner_id`` rewritten through *identity_map*."""
    rewritten = dict(elite)
    rewritten["winner_id"] = identity_map.resolve(elite.get("winner_id"))
    return rewritten


@dataclass
class RestorePayload:
    """Validated restore input. ``None`` means the collection was not supplied."""

    winners: list[dict]
    losers: list[dict] | None = None
    elite: list[dict] | None = None

    def collection(self, name):
        return {WINNERS: self.winners, LOSERS: self.losers, ELITE: self.elite}[name]


@dataclass
class RestoreReport:
    mode: str = "remote"                      # "remote" or "fallback"
    inserted: dict = field(default_factory=lambda: {name: 0 for name in COLLECTIONS})
    failed: dict = field(default_factory=lambda: {name: 0 for name in COLLECTIONS})
    identity_map: dict = field(default_factory=dict)
    unlinked_elite: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "inserted": dict(self.inserted),
            "failed": dict(self.failed),
            "identity_map": dict(self.identity_map),
            "unlinked_elite": self.unlinked_elite,
            "error": self.error,
        }


class RestoreOrchestrator:
    def __init__(self, gateway: SyncGateway) -> None:
        self.gateway = gateway

    def restore(self, payload: RestorePayload) -> RestoreReport:
        report = RestoreReport()
        try:
            self._purge(payload)
            identity_map = self._insert_winners(payload.winners, report)
            report.identity_map = identity_map.as_dict()
            if payload.losers is not None:
                self._insert_plain(LOSERS, payload.losers, report)
            if payload.elite is not None:
                self._insert_elite(payload.elite, identity_map, report)
        except StoreUnavailableError as exc:
            logger.error("Restore falling back to local install: %s", exc)
            return self._fallback(payload, str(exc))

        self.gateway.load_all()
        logger.info(
            "Restore complete: winners=%d losers=%d elite=%d failed=%s unlinked_elite=%d",
            report.inserted[WINNERS], report.inserted[LOSERS], report.inserted[ELITE],
            report.failed, report.unlinked_elite,
        )
        return report

    # ── Phases ───────────────────────────────────────────────────────────────

    def _purge(self, payload: RestorePayload) -> None:
        for name in PURGE_ORDER:
            if payload.collection(name) is None:
                continue
            result = self.gateway.store.delete_where_created_after(name, PURGE_CUTOFF)
            if not result.ok:
                # A half-purged store cannot be safely re-filled
                raise StoreUnavailableError(name, result.error)
            logger.info("Purged %s", name, extra={"collection": name})

    def _submit(self, collection: str, record: dict, report: RestoreReport):
        """Submit one record; returns the stored row or None if rejected."""
        result = self.gateway.submit(collection, record)
        if result.ok:
            report.inserted[collection] += 1
            return result.data
        if result.unreachable:
            raise StoreUnavailableError(collection, result.error)
        report.failed[collection] += 1
        logger.error(
            "Restore: store rejected %s record (old id=%s): %s",
            collection, record.get("id"), result.error,
            extra={"collection": collection, "record_id": record.get("id")},
        )
        return None

    def _insert_winners(self, winners: list[dict], report: RestoreReport) -> IdentityMap:
        identity_map = IdentityMap()
        for winner in winners:
            stored = self._submit(WINNERS, winner, report)
            if stored is not None:
                identity_map.record(winner.get("id"), stored.get("id"))
        return identity_map

    def _insert_plain(self, collection: str, records: list[dict], report: RestoreReport) -> None:
        for record in records:
            self._submit(collection, record, report)

    def _insert_elite(self, elites: list[dict], identity_map: IdentityMap, report: RestoreReport) -> None:
        for elite in elites:
            rewritten = remap_elite(elite, identity_map)
            stored = self._submit(ELITE, rewritten, report)
            if stored is not None and rewritten["winner_id"] is None:
                report.unlinked_elite += 1

    # ── Fallback ─────────────────────────────────────────────────────────────

    def _fallback(self, payload: RestorePayload, error: str) -> RestoreReport:
        report = RestoreReport(mode="fallback", error=error)
        for name in COLLECTIONS:
            records = payload.collection(name)
            if records is None:
                continue
            self.gateway.install_local(name, records)
            report.inserted[name] = len(records)
        return report
