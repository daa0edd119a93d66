"""
Contest service: turns collaborator actions into records.

Functions:
    record_outcome(sync, guide, action, chat_ids)  pass → winner, fail → loser
    promote_to_elite(sync, winner_id)              winner → elite record
    export_backup(sync)                            restore-format snapshot
    parse_restore_payload(data)                    validate restore input
"""

import logging
from datetime import datetime, timezone

from pitchboard.core.exceptions import NotFoundError, ValidationError
from pitchboard.models.records import (
    COLLECTIONS,
    ELITE,
    LOSERS,
    WINNERS,
    normalize_record,
    utc_now_iso,
)
from pitchboard.services.restore_service import RestorePayload

logger = logging.getLogger(__name__)

OUTCOME_ACTIONS = {"pass": WINNERS, "fail": LOSERS}


def record_outcome(sync, guide, action, chat_ids=None):
    """Record a pitch review decision for *guide*.

    Args:
        sync: SyncContext from ``pitchboard.services.get_sync()``.
        guide: dict with ``id`` (or ``guide_id``), ``name``, ``department``,
               ``supervisor``.
        action: ``"pass"`` or ``"fail"``.
        chat_ids: chat identifiers reviewed for this decision.

    Returns:
        SyncOutcome of the insert.
    """
    collection = OUTCOME_ACTIONS.get(action)
    if collection is None:
        raise ValidationError(
            f"Unknown action: {action!r}", details={"action": "must be 'pass' or 'fail'"},
        )
    if not isinstance(guide, dict):
        raise ValidationError("guide must be an object", details={"guide": "required"})

    record = {
        "guide_id": guide.get("guide_id") or guide.get("id"),
        "name": guide.get("name"),
        "department": guide.get("department"),
        "supervisor": guide.get("supervisor"),
        "timestamp": utc_now_iso(),
        "chat_ids": [] if chat_ids is None else chat_ids,
    }
    outcome = sync.gateway.insert(collection, record)
    logger.info(
        "Recorded %s for guide=%s degraded=%s", action, record["guide_id"], outcome.degraded,
        extra={"collection": collection},
    )
    return outcome


def promote_to_elite(sync, winner_id):
    """Create an elite record from a winner currently in view."""
    winner = sync.state.find(WINNERS, winner_id)
    if winner is None:
        raise NotFoundError(resource="Winner", resource_id=winner_id)

    elite = {
        "winner_id": winner["id"],
        "guide_id": winner["guide_id"],
        "name": winner["name"],
        "department": winner["department"],
        "supervisor": winner["supervisor"],
        "timestamp": utc_now_iso(),
        "chat_ids": list(winner.get("chat_ids") or []),
    }
    return sync.gateway.insert(ELITE, elite)


def export_backup(sync):
    """Snapshot of all three collections in restore format."""
    return {
        WINNERS: [dict(r) for r in sync.state.view(WINNERS)],
        LOSERS: [dict(r) for r in sync.state.view(LOSERS)],
        ELITE: [dict(r) for r in sync.state.view(ELITE)],
        "exported_at": datetime.now(timezone.utc).isoformat(),
    }


def _parse_list(data, key):
    records = data.get(key)
    if records is None:
        return None
    if not isinstance(records, list):
        raise ValidationError(f"{key} must be a list", details={key: "must be a list"})
    parsed = []
    errors = {}
    for index, item in enumerate(records):
        try:
            parsed.append(normalize_record(key, item))
        except ValidationError as exc:
            errors[f"{key}[{index}]"] = exc.details or str(exc)
    if errors:
        raise ValidationError(f"Invalid records in {key}", details=errors)
    return parsed


def parse_restore_payload(data):
    """Validate a restore payload and return a RestorePayload.

    ``winners`` is required; ``losers`` and ``elite`` are optional
    (``eliteWinners`` is accepted as an alias for ``elite``). Ids are kept:
    they are the exporting system's identities and drive the elite remap.
    """
    if not isinstance(data, dict):
        raise ValidationError("Restore payload must be an object")
    if "winners" not in data:
        raise ValidationError("winners is required", details={"winners": "required"})
    if ELITE not in data and "eliteWinners" in data:
        data = {**data, ELITE: data["eliteWinners"]}

    lists = {name: _parse_list(data, name) for name in COLLECTIONS}
    if lists[WINNERS] is None:
        raise ValidationError("winners must be a list", details={"winners": "must be a list"})
    return RestorePayload(winners=lists[WINNERS], losers=lists[LOSERS], elite=lists[ELITE])
