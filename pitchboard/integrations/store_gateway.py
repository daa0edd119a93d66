"""
Primary store gateway: interface + REST (PostgREST / Supabase) implementation.

All outbound HTTP calls to the primary store go through RestPrimaryStore.
Direct `requests` calls in services or blueprints are FORBIDDEN.

Behaviour:
  - Retry: max 2 extra attempts, backoff (1 s → 4 s), only for network
    errors and 5xx responses on reads and deletes; 4xx is a store rejection
    and is final; inserts (POST) are sent once and never retried
  - Timeout: STORE_TIMEOUT seconds per call (default 30)
  - Circuit breaker: ≥5 failures in 60 s → 30 s pause per table
  - Structured StoreResult returned to the sync layer; never raises

Failure classes (StoreResult):
  unreachable=True    network error, timeout, 502/503/504, circuit open
  unreachable=False   store-reported rejection (constraint violation, 4xx…)
The sync gateway treats both identically; the restore orchestrator aborts
to its local fallback only on unreachable.

Testability: pass a mock `session` to RestPrimaryStore() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from pitchboard.models.records import TABLES

logger = logging.getLogger(__name__)

# ── Circuit breaker constants ──────────────────────────────────────────────
_CB_FAILURE_THRESHOLD = 5          # failures within window before opening
_CB_WINDOW_SECONDS = 60            # failure counting window (seconds)
_CB_OPEN_DURATION_SECONDS = 30     # how long circuit stays open

# ── Retry constants ────────────────────────────────────────────────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [1, 4]    # sleep[0] after 1st fail, sleep[1] after 2nd

_DEFAULT_TIMEOUT = 30

# Upstream-down statuses count as connectivity failures, not rejections
_UNREACHABLE_STATUSES = {502, 503, 504}

# Lower bound used by "purge everything" deletes
PURGE_CUTOFF = "1900-01-01"


class StoreResult:
    """Structured return value from every PrimaryStore call.

    Attributes:
        ok:           True if the store accepted the call.
        data:         Rows (list) for selects, the stored row (dict) for
                      inserts, None otherwise.
        error:        Human-readable error message or None.
        status_code:  HTTP status (REST store) or None.
        unreachable:  True when the store could not be reached at all.
        duration_ms:  Round-trip latency in milliseconds.
    """

    __slots__ = ("ok", "data", "error", "status_code", "unreachable", "duration_ms")

    def __init__(
        self,
        *,
        ok: bool,
        data: Any = None,
        error: str | None = None,
        status_code: int | None = None,
        unreachable: bool = False,
        duration_ms: int = 0,
    ) -> None:
        self.ok = ok
        self.data = data
        self.error = error
        self.status_code = status_code
        self.unreachable = unreachable
        self.duration_ms = duration_ms

    @classmethod
    def success(cls, data: Any = None, *, status_code: int | None = None, duration_ms: int = 0) -> "StoreResult":
        return cls(ok=True, data=data, status_code=status_code, duration_ms=duration_ms)

    @classmethod
    def rejected(cls, error: str, *, status_code: int | None = None, duration_ms: int = 0) -> "StoreResult":
        return cls(ok=False, error=error, status_code=status_code, duration_ms=duration_ms)

    @classmethod
    def unavailable(cls, error: str, *, status_code: int | None = None, duration_ms: int = 0) -> "StoreResult":
        return cls(ok=False, error=error, status_code=status_code, unreachable=True, duration_ms=duration_ms)

    def __repr__(self) -> str:
        state = "ok" if self.ok else ("unreachable" if self.unreachable else "rejected")
        return f"<StoreResult {state} status={self.status_code} error={self.error!r}>"


class PrimaryStore(ABC):
    """Contract for the authoritative record store.

    Collections are the logical names (``winners``, ``losers``, ``elite``);
    implementations map them to tables. No method may raise.
    """

    name = "primary"

    @abstractmethod
    def select_ordered(self, collection: str) -> StoreResult:
        """All rows of *collection*, ascending by store ``created_at``."""

    @abstractmethod
    def insert(self, collection: str, record: dict) -> StoreResult:
        """Insert *record* (no id) and return the stored row with its id."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> StoreResult:
        """Delete the row with *record_id*."""

    @abstractmethod
    def delete_where_created_after(self, collection: str, cutoff: str = PURGE_CUTOFF) -> StoreResult:
        """Delete every row whose ``created_at`` >= *cutoff*."""

    @abstractmethod
    def ping(self) -> StoreResult:
        """Lightweight connectivity probe."""


class RestPrimaryStore(PrimaryStore):
    """PostgREST / Supabase REST API gateway.

    Usage:
        store = RestPrimaryStore("https://xyz.supabase.co", api_key)
        result = store.select_ordered("winners")
        if result.ok:
            rows = result.data
    """

    name = "rest"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        session: requests.Session | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

        # Circuit breaker: table → {"failures": [datetime, ...], "open_until": datetime|None}
        self._cb_state: dict[str, dict] = {}

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _table_url(self, collection: str) -> str:
        return f"{self.base_url}/rest/v1/{TABLES[collection]}"

    # ── Circuit breaker ───────────────────────────────────────────────────────

    def _ensure_cb_entry(self, key: str) -> dict:
        if key not in self._cb_state:
            self._cb_state[key] = {"failures": [], "open_until": None}
        return self._cb_state[key]

    def _circuit_closed(self, key: str) -> bool:
        """Return True if the circuit allows calls; False if open (paused)."""
        state = self._ensure_cb_entry(key)
        now = datetime.now(timezone.utc)

        if state["open_until"] and now < state["open_until"]:
            logger.warning("Circuit open for table=%s until %s", key, state["open_until"])
            return False

        # Prune failures outside the counting window
        window_start = now - timedelta(seconds=_CB_WINDOW_SECONDS)
        state["failures"] = [f for f in state["failures"] if f >= window_start]

        if len(state["failures"]) >= _CB_FAILURE_THRESHOLD:
            state["open_until"] = now + timedelta(seconds=_CB_OPEN_DURATION_SECONDS)
            logger.error(
                "Circuit opened for table=%s: %d failures in %ds window",
                key, len(state["failures"]), _CB_WINDOW_SECONDS,
            )
            return False

        return True

    def _record_failure(self, key: str) -> None:
        self._ensure_cb_entry(key)["failures"].append(datetime.now(timezone.utc))

    def _record_success(self, key: str) -> None:
        """On success, reset failure history and close the circuit."""
        state = self._ensure_cb_entry(key)
        state["failures"].clear()
        state["open_until"] = None

    # ── Core request dispatcher ───────────────────────────────────────────────

    def request(
        self,
        method: str,
        collection: str,
        *,
        params: dict | None = None,
        json_body: dict | list | None = None,
        headers: dict | None = None,
        retry: bool = True,
    ) -> StoreResult:
        """Execute a request against the table behind *collection* with retries.

        With ``retry=False`` the request is sent exactly once (non-idempotent
        writes: a lost response may still mean the row was committed).

        Returns:
            StoreResult: always returns (never raises). Callers check .ok.
        """
        table = TABLES[collection]
        if not self._circuit_closed(table):
            return StoreResult.unavailable(
                "Circuit breaker is open: primary store calls temporarily suspended"
            )

        url = self._table_url(collection)
        kwargs: dict[str, Any] = {"headers": self._headers(headers), "timeout": self._timeout}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body

        last: StoreResult = StoreResult.unavailable("Unknown error")

        attempts = _RETRY_MAX + 1 if retry else 1
        for attempt in range(attempts):
            t0 = time.perf_counter()
            try:
                resp = self.session.request(method, url, **kwargs)
                duration_ms = int((time.perf_counter() - t0) * 1000)

                if resp.ok:
                    self._record_success(table)
                    try:
                        data = resp.json() if resp.content else None
                    except ValueError:
                        data = None
                    return StoreResult.success(data, status_code=resp.status_code, duration_ms=duration_ms)

                error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code < 500:
                    # Store rejected the request; retrying will not change that
                    logger.warning(
                        "Primary store rejected %s table=%s status=%d",
                        method, table, resp.status_code,
                        extra={"collection": collection, "duration_ms": duration_ms},
                    )
                    return StoreResult.rejected(error, status_code=resp.status_code, duration_ms=duration_ms)

                self._record_failure(table)
                if resp.status_code in _UNREACHABLE_STATUSES:
                    last = StoreResult.unavailable(error, status_code=resp.status_code, duration_ms=duration_ms)
                else:
                    last = StoreResult.rejected(error, status_code=resp.status_code, duration_ms=duration_ms)
                logger.warning(
                    "Primary store request failed attempt=%d/%d status=%d %s table=%s",
                    attempt + 1, attempts, resp.status_code, method, table,
                )

            except requests.Timeout:
                self._record_failure(table)
                last = StoreResult.unavailable(
                    f"Request timed out after {self._timeout}s",
                    duration_ms=int(self._timeout * 1000),
                )
                logger.warning(
                    "Primary store request timed out attempt=%d/%d %s table=%s",
                    attempt + 1, attempts, method, table,
                )

            except requests.RequestException as exc:
                self._record_failure(table)
                last = StoreResult.unavailable(str(exc)[:500])
                logger.warning(
                    "Primary store network error attempt=%d/%d %s table=%s error=%s",
                    attempt + 1, attempts, method, table, last.error,
                )

            if attempt < attempts - 1:
                sleep_s = _RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)]
                logger.info("Retrying primary store request in %ss (attempt %d)", sleep_s, attempt + 2)
                time.sleep(sleep_s)

        return last

    # ── Store operations ──────────────────────────────────────────────────────

    def select_ordered(self, collection: str) -> StoreResult:
        result = self.request(
            "GET", collection,
            params={"select": "*", "order": "created_at.asc"},
        )
        if result.ok and not isinstance(result.data, list):
            result.data = list(result.data or [])
        return result

    def insert(self, collection: str, record: dict) -> StoreResult:
        """POST one row with ``Prefer: return=representation``.

        PostgREST answers with a one-element list; the row (with its
        assigned ``id``) is unwrapped into ``result.data``.
        """
        result = self.request(
            "POST", collection,
            json_body=[record],
            headers={"Prefer": "return=representation"},
            retry=False,
        )
        if not result.ok:
            return result
        rows = result.data if isinstance(result.data, list) else [result.data]
        row = rows[0] if rows and isinstance(rows[0], dict) else None
        if not row or row.get("id") is None:
            return StoreResult.rejected(
                "Insert response did not include the stored row",
                status_code=result.status_code,
                duration_ms=result.duration_ms,
            )
        result.data = row
        return result

    def delete(self, collection: str, record_id: str) -> StoreResult:
        return self.request("DELETE", collection, params={"id": f"eq.{record_id}"})

    def delete_where_created_after(self, collection: str, cutoff: str = PURGE_CUTOFF) -> StoreResult:
        return self.request("DELETE", collection, params={"created_at": f"gte.{cutoff}"})

    def ping(self) -> StoreResult:
        return self.request("GET", "winners", params={"select": "id", "limit": "1"})
