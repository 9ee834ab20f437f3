# zera_oracle/models/audit_entry.py

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from zera_oracle.db_types import JSONType
from zera_oracle.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class AuditEntry(db.Model):
    __tablename__ = "audit_log"
    # AUTOINCREMENT keeps SQLite from reusing sequence numbers, so the
    # pagination cursor stays monotonic.
    __table_args__ = {"sqlite_autoincrement": True}

    seq = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(16), nullable=False)
    key = Column(String(128), nullable=False)
    action = Column(String(32), nullable=False)
    before = Column(JSONType, nullable=True)
    after = Column(JSONType, nullable=True)
    actor = Column(String(160), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        """Serializes the AuditEntry object to a dictionary."""
        ts = self.created_at
        if ts is not None and ts.tzinfo is None:
            # SQLite hands back naive datetimes; they were written as UTC.
            ts = ts.replace(tzinfo=timezone.utc)
        return {
            "seq": self.seq,
            "kind": self.kind,
            "key": self.key,
            "action": self.action,
            "before": self.before,
            "after": self.after,
            "actor": self.actor,
            "ts": ts.isoformat() if ts else None,
        }
