"""
Pitchboard
Record model: Winner, Loser and EliteRecord shapes + validation.

Records travel through the sync layer as plain dicts (the same shape the
primary store returns and the cache mirror serializes):

    {
        "id": "…",              # store-assigned, absent before first insert
        "guide_id": "G-17",
        "name": "Ada",
        "department": "Support",
        "supervisor": "Grace",
        "timestamp": "2026-10-19T08:15:02.123456+00:00",
        "chat_ids": ["c-1", "c-2"],
        "winner_id": "…",       # elite only, nullable
    }
"""

from datetime import datetime, timezone

from pitchboard.core.exceptions import ValidationError

# ── Collections ──────────────────────────────────────────────────────────────

WINNERS = "winners"
LOSERS = "losers"
ELITE = "elite"

COLLECTIONS = (WINNERS, LOSERS, ELITE)

# Primary-store table per collection
TABLES = {
    WINNERS: "winners",
    LOSERS: "losers",
    ELITE: "elite_spiral",
}

# Local cache mirror key per collection (process-wide constants)
CACHE_KEYS = {
    WINNERS: "stitchAndPitchWinners",
    LOSERS: "stitchAndPitchLosers",
    ELITE: "stitchAndPitchEliteWinners",
}

RECORD_LABELS = {
    WINNERS: "Winner",
    LOSERS: "Loser",
    ELITE: "EliteRecord",
}

REQUIRED_FIELDS = ("guide_id", "name", "department", "supervisor")
BASE_FIELDS = REQUIRED_FIELDS + ("timestamp", "chat_ids")
ELITE_FIELDS = BASE_FIELDS + ("winner_id",)

# Fields owned by the store; never sent on insert
STORE_FIELDS = ("id", "created_at")


def check_collection(collection):
    """Raise ValidationError unless *collection* is a known collection name."""
    if collection not in COLLECTIONS:
        raise ValidationError(
            f"Unknown collection: {collection!r}",
            details={"collection": f"must be one of {', '.join(COLLECTIONS)}"},
        )
    return collection


def fields_for(collection):
    return ELITE_FIELDS if collection == ELITE else BASE_FIELDS


# ── Timestamps ───────────────────────────────────────────────────────────────


def utc_now_iso():
    """Current instant as ISO-8601 with microseconds, UTC."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value):
    """Parse an ISO-8601 string into an aware datetime.

    Accepts the trailing ``Z`` form produced by JavaScript clients. Naive
    values are taken as UTC so every instant compares on the same clock.

    Raises:
        ValueError: If *value* is not a parseable ISO-8601 string.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Not an ISO-8601 timestamp: {value!r}")
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_key(record):
    try:
        return parse_timestamp(record.get("timestamp"))
    except (ValueError, TypeError):
        return _EPOCH_MIN


def sort_by_timestamp(records):
    """Return *records* sorted ascending by client ``timestamp``.

    The sort is stable, so records sharing an instant keep insertion order.
    Unparseable timestamps sort first.
    """
    return sorted(records, key=_timestamp_key)


# ── Validation ───────────────────────────────────────────────────────────────


def normalize_record(collection, payload):
    """Validate *payload* for *collection* and return a normalized copy.

    - required text fields must be non-empty strings (``guide_id`` may be
      an int and is stored as text)
    - ``timestamp`` must be valid ISO-8601 (kept verbatim, never rewritten)
    - ``chat_ids`` defaults to ``[]`` and must be a list of strings
    - ``winner_id`` is only meaningful on elite records (nullable)
    - a store-assigned ``id`` / ``created_at`` is carried through untouched

    Raises:
        ValidationError: with per-field details.
    """
    check_collection(collection)
    if not isinstance(payload, dict):
        raise ValidationError(f"{RECORD_LABELS[collection]} must be an object")

    errors = {}
    for field in REQUIRED_FIELDS:
        value = payload.get(field)
        if value is None or not str(value).strip():
            errors[field] = "required"
        elif field == "guide_id":
            # Guide directories hand out numeric ids too; stored as text
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                errors[field] = "must be a string"
        elif not isinstance(value, str):
            errors[field] = "must be a string"

    timestamp = payload.get("timestamp")
    try:
        parse_timestamp(timestamp)
    except (ValueError, TypeError):
        errors["timestamp"] = "must be an ISO-8601 timestamp"

    chat_ids = payload.get("chat_ids")
    if chat_ids is None:
        chat_ids = []
    elif not isinstance(chat_ids, list) or not all(isinstance(c, str) for c in chat_ids):
        errors["chat_ids"] = "must be a list of strings"

    if errors:
        raise ValidationError(f"{RECORD_LABELS[collection]} is invalid", details=errors)

    record = {
        "guide_id": str(payload["guide_id"]),
        "name": payload["name"],
        "department": payload["department"],
        "supervisor": payload["supervisor"],
        "timestamp": timestamp,
        "chat_ids": list(chat_ids),
    }
    if collection == ELITE:
        record["winner_id"] = payload.get("winner_id") or None
    for field in STORE_FIELDS:
        if payload.get(field) is not None:
            record[field] = payload[field]
    return record


def submission_payload(collection, record):
    """Return the body sent to the primary store on insert (no id, no created_at)."""
    body = {field: record.get(field) for field in fields_for(collection)}
    body["chat_ids"] = list(body["chat_ids"] or [])
    return body


def strip_store_fields(record):
    """Return *record* without the store-owned fields (used for equality checks)."""
    return {k: v for k, v in record.items() if k not in STORE_FIELDS}
