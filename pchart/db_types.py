"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# JSON works with both SQLite and PostgreSQL (JSONB is PostgreSQL-only)
JSONType = JSON

# Stored natively on PostgreSQL, as CHAR(32) hex on SQLite
UUIDType = PG_UUID


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp column."""
    return datetime.now(timezone.utc)
