import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from zera_oracle.errors import ValidationError
from zera_oracle.models import AuditEntry

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


def parse_cursor(raw: Optional[str]) -> Optional[int]:
    """Turns a `cursor` query parameter into a sequence number."""
    if raw is None or raw == "":
        return None
    try:
        cursor = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("cursor must be an integer sequence number")
    if cursor < 1:
        raise ValidationError("cursor must be positive")
    return cursor


class AuditService:
    """Append-only ledger of every successful mutation."""

    def append(
        self,
        session: Session,
        *,
        kind: str,
        key: str,
        action: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        actor: str,
    ) -> int:
        """
        Adds an entry inside the caller's transaction and returns its sequence number.

        No business validation happens here; the store already validated the
        change. If the caller's transaction rolls back, so does the entry.
        """
        entry = AuditEntry(kind=kind, key=key, action=action, before=before, after=after, actor=actor)
        session.add(entry)
        session.flush()
        return entry.seq

    def list_entries(
        self,
        session: Session,
        limit: Optional[int] = None,
        cursor: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """
        Returns a page of entries, most recent first.

        With a cursor, only entries whose sequence number is strictly below it
        are considered. The next cursor is the last returned sequence number
        when the page is full, otherwise None.
        """
        limit = DEFAULT_PAGE_SIZE if limit is None else max(1, min(int(limit), MAX_PAGE_SIZE))

        query = session.query(AuditEntry)
        if cursor is not None:
            query = query.filter(AuditEntry.seq < cursor)
        rows = query.order_by(AuditEntry.seq.desc()).limit(limit).all()

        entries = [row.to_dict() for row in rows]
        next_cursor = rows[-1].seq if len(rows) == limit else None
        return entries, next_cursor


audit_service = AuditService()
