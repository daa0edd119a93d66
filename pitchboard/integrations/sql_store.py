"""
SQL primary store: the contest tables behind Flask-SQLAlchemy.

Used for self-hosted deployments (PostgreSQL via DATABASE_URL) and as the
primary store in the test suite (in-memory SQLite).

Error mapping:
  OperationalError / DisconnectionError → StoreResult.unavailable
  any other SQLAlchemyError             → StoreResult.rejected
The session is rolled back on every failure so the next call starts clean.
Must be called inside an application context.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import select
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError

from pitchboard.integrations.store_gateway import PURGE_CUTOFF, PrimaryStore, StoreResult
from pitchboard.models import db
from pitchboard.models.contest import MODELS
from pitchboard.models.records import ELITE, fields_for, parse_timestamp

logger = logging.getLogger(__name__)


class SqlPrimaryStore(PrimaryStore):
    """PrimaryStore backed by the winners / losers / elite_spiral tables."""

    name = "sql"

    def _run(self, collection: str, op: str, fn) -> StoreResult:
        t0 = time.perf_counter()
        try:
            data = fn()
        except (OperationalError, DisconnectionError) as exc:
            db.session.rollback()
            duration_ms = int((time.perf_counter() - t0) * 1000)
            logger.warning(
                "SQL store unreachable op=%s error=%s", op, str(exc)[:300],
                extra={"collection": collection, "duration_ms": duration_ms},
            )
            return StoreResult.unavailable(str(exc)[:500], duration_ms=duration_ms)
        except SQLAlchemyError as exc:
            db.session.rollback()
            duration_ms = int((time.perf_counter() - t0) * 1000)
            logger.warning(
                "SQL store rejected op=%s error=%s", op, str(exc)[:300],
                extra={"collection": collection, "duration_ms": duration_ms},
            )
            return StoreResult.rejected(str(exc)[:500], duration_ms=duration_ms)
        duration_ms = int((time.perf_counter() - t0) * 1000)
        return StoreResult.success(data, duration_ms=duration_ms)

    def select_ordered(self, collection: str) -> StoreResult:
        model = MODELS[collection]

        def _select():
            rows = db.session.execute(
                select(model).order_by(model.created_at.asc())
            ).scalars().all()
            return [row.to_dict() for row in rows]

        return self._run(collection, "select", _select)

    def insert(self, collection: str, record: dict) -> StoreResult:
        model = MODELS[collection]

        def _insert():
            values = {field: record.get(field) for field in fields_for(collection)}
            values["chat_ids"] = list(values.get("chat_ids") or [])
            if collection == ELITE and not values.get("winner_id"):
                values["winner_id"] = None
            row = model(**values)
            db.session.add(row)
            db.session.commit()
            return row.to_dict()

        return self._run(collection, "insert", _insert)

    def delete(self, collection: str, record_id: str) -> StoreResult:
        model = MODELS[collection]

        def _delete():
            deleted = db.session.query(model).filter(model.id == record_id).delete(
                synchronize_session=False,
            )
            db.session.commit()
            return {"deleted": deleted}

        return self._run(collection, "delete", _delete)

    def delete_where_created_after(self, collection: str, cutoff: str = PURGE_CUTOFF) -> StoreResult:
        model = MODELS[collection]
        boundary = parse_timestamp(cutoff)

        def _purge():
            deleted = db.session.query(model).filter(model.created_at >= boundary).delete(
                synchronize_session=False,
            )
            db.session.commit()
            return {"deleted": deleted}

        return self._run(collection, "purge", _purge)

    def ping(self) -> StoreResult:
        return self._run("winners", "ping", lambda: db.session.execute(db.text("SELECT 1")).scalar())
