import logging
from contextlib import contextmanager

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zera_oracle.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def get_session_scope():
    """
    Provide a transactional scope for database operations.

    Usage:
        with get_session_scope() as session:
            session.add(...)
            # commit happens automatically unless an exception occurs

    Objects loaded inside the scope are expired on commit, so callers
    serialize what they need before the block ends.
    """
    session: Session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error during scoped session: {e}", exc_info=True)
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        try:
            session.close()
        except SQLAlchemyError as e:
            logger.error(f"Error closing session: {e}", exc_info=True)


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """WAL + NORMAL sync for file-backed SQLite; a no-op for other drivers."""
    module = type(dbapi_connection).__module__
    if not module.startswith("sqlite3"):
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()
