"""
Pitchboard
Contest tables for the SQL primary store.

Models:
    - Winner:      guide that passed a pitch review
    - Loser:       guide that failed a pitch review
    - EliteSpiral: elite achievement derived from a winner (winner_id FK)

Ids are opaque string UUIDs assigned on insert; ``created_at`` is the
store-side ordering key and is never supplied by clients.
"""

import uuid
from datetime import datetime, timezone

from pitchboard.models import db
from pitchboard.models.records import ELITE, LOSERS, WINNERS


def _new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class ContestRecordModel(db.Model):
    """Abstract base with the columns shared by all three record tables."""

    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    guide_id = db.Column(db.String(100), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    department = db.Column(db.String(200), nullable=False)
    supervisor = db.Column(db.String(200), nullable=False)
    timestamp = db.Column(db.String(40), nullable=False, comment="Client-assigned ISO-8601 creation instant")
    chat_ids = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        created = self.created_at
        if created is not None and created.tzinfo is None:
            # SQLite drops tzinfo on the way back
            created = created.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "guide_id": self.guide_id,
            "name": self.name,
            "department": self.department,
            "supervisor": self.supervisor,
            "timestamp": self.timestamp,
            "chat_ids": list(self.chat_ids or []),
            "created_at": created.isoformat() if created else None,
        }


class Winner(ContestRecordModel):
    __tablename__ = "winners"

    def __repr__(self):
        return f"<Winner {self.id}: {self.name}>"


class Loser(ContestRecordModel):
    __tablename__ = "losers"

    def __repr__(self):
        return f"<Loser {self.id}: {self.name}>"


class EliteSpiral(ContestRecordModel):
    """Elite achievement; ``winner_id`` survives the winner as NULL."""

    __tablename__ = "elite_spiral"

    winner_id = db.Column(
        db.String(36), db.ForeignKey("winners.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    def to_dict(self):
        d = super().to_dict()
        d["winner_id"] = self.winner_id
        return d

    def __repr__(self):
        return f"<EliteSpiral {self.id}: {self.name} (winner={self.winner_id})>"


MODELS = {
    WINNERS: Winner,
    LOSERS: Loser,
    ELITE: EliteSpiral,
}
