# zera_oracle/db_types.py

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import JSON as SA_JSON

# JSONB on PostgreSQL, generic JSON (TEXT) on SQLite
JSONType = SA_JSON().with_variant(JSONB, "postgresql")

__all__ = ["JSONType"]
