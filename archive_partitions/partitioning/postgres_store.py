"""
Postgres implementation of the partition store.

Bucket tables use table inheritance (CREATE TABLE ... INHERITS) plus a CHECK
constraint on smpl_time, so constraint_exclusion = partition lets the planner
skip buckets that cannot match a time predicate.

Generated DDL goes through exec_driver_sql with no_parameters so the '%'
placeholders of the RAISE statement reach the server untouched.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from archive_partitions.errors import ConfigurationError, MaintenanceInProgress
from archive_partitions.logging_config import get_logger
from archive_partitions.models import SAMPLE_COLUMNS

from .plans import PARENT_TABLE, Bucket
from .router import compile_insert_trigger
from .sql import qualified, quote_ident, quote_literal, timestamp_literal
from .store import DISPATCH_FUNCTION, INSERT_TRIGGER, PartitionStore

logger = get_logger(__name__)

VERSION_PREFIX = "dispatch-version:"

_DDL_OPTIONS = {"no_parameters": True}

# SQLSTATEs that mean the target namespace is misconfigured, not a bug
_CONFIG_SQLSTATES = {
    "42704": "undefined object (owner role?)",
    "42P01": "undefined table",
    "3F000": "invalid schema name",
}

# (constraint, column, lookup table, lookup column)
FOREIGN_KEYS = (
    ("sample_channel_id_fkey", "channel_id", "channel", "channel_id"),
    ("sample_severity_fkey", "severity_id", "severity", "severity_id"),
    ("sample_status_id_fkey", "status_id", "status", "status_id"),
)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def bucket_ddl(schema: str, bucket: Bucket, owner: str) -> List[str]:
    """Statements that materialize one bucket, in execution order."""
    table = qualified(schema, bucket.name)
    statements = [
        f"CREATE TABLE {table} ("
        f"CONSTRAINT {quote_ident(bucket.name + '_smpl_time_check')} "
        f"CHECK (smpl_time >= {timestamp_literal(bucket.start)} AND smpl_time < {timestamp_literal(bucket.end)})"
        f") INHERITS ({qualified(schema, PARENT_TABLE)})",
        f"ALTER TABLE {table} OWNER TO {quote_ident(owner)}",
        f"CREATE INDEX {quote_ident(bucket.name + '_channel_time_pkey')} "
        f"ON {table} (channel_id, smpl_time, nanosecs)",
    ]
    for constraint, column, lookup, lookup_column in FOREIGN_KEYS:
        statements.append(
            f"ALTER TABLE {table} ADD CONSTRAINT {quote_ident(constraint)} "
            f"FOREIGN KEY ({quote_ident(column)}) "
            f"REFERENCES {qualified(schema, lookup)}({quote_ident(lookup_column)}) ON DELETE CASCADE"
        )
    return statements


def dispatch_ddl(schema: str, source: Optional[str], version: str, install_hook: bool) -> List[str]:
    """Routine replacement, its version comment and the trigger, for one transaction."""
    statements = []
    if source is not None:
        function = f"{quote_ident(schema)}.{DISPATCH_FUNCTION}()"
        statements.append(source)
        statements.append(f"COMMENT ON FUNCTION {function} IS {quote_literal(VERSION_PREFIX + version)}")
    if install_hook:
        statements.append(compile_insert_trigger(schema))
    return statements


class PostgresPartitionStore(PartitionStore):
    """PartitionStore over a SQLAlchemy engine bound to Postgres."""

    def __init__(self, engine: Optional[Engine] = None):
        if engine is None:
            from archive_partitions.db import get_engine
            engine = get_engine()
        self.engine = engine

    # -----------------------
    # Introspection
    # -----------------------
    def role_exists(self, role: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(text("SELECT 1 FROM pg_roles WHERE rolname = :role"), {"role": role}).first()
        return row is not None

    def relation_exists(self, schema: str, name: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    "SELECT 1 FROM information_schema.tables "
                    "WHERE table_schema = :schema AND table_name = :name"
                ),
                {"schema": schema, "name": name},
            ).first()
        return row is not None

    def list_bucket_tables(self, schema: str) -> List[str]:
        with self.engine.connect() as conn:
            res = conn.execute(
                text(
                    """
                    SELECT c.relname
                    FROM pg_inherits i
                    JOIN pg_class c ON c.oid = i.inhrelid
                    JOIN pg_class p ON p.oid = i.inhparent
                    JOIN pg_namespace n ON n.oid = p.relnamespace
                    WHERE n.nspname = :schema AND p.relname = :parent
                    ORDER BY c.relname
                    """
                ),
                {"schema": schema, "parent": PARENT_TABLE},
            )
            return [relname for (relname,) in res.fetchall()]

    def dispatch_version(self, schema: str) -> Optional[str]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT obj_description(p.oid, 'pg_proc')
                    FROM pg_proc p
                    JOIN pg_namespace n ON n.oid = p.pronamespace
                    WHERE n.nspname = :schema AND p.proname = :fn
                    """
                ),
                {"schema": schema, "fn": DISPATCH_FUNCTION},
            ).first()
        if row is None:
            return None
        comment = row[0] or ""
        if comment.startswith(VERSION_PREFIX):
            return comment[len(VERSION_PREFIX):]
        # Routine exists but was not written by us (e.g. the legacy plpgsql job)
        return ""

    def trigger_exists(self, schema: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT 1
                    FROM pg_trigger t
                    JOIN pg_class c ON c.oid = t.tgrelid
                    JOIN pg_namespace n ON n.oid = c.relnamespace
                    WHERE n.nspname = :schema AND c.relname = :parent
                      AND t.tgname = :trigger AND NOT t.tgisinternal
                    """
                ),
                {"schema": schema, "parent": PARENT_TABLE, "trigger": INSERT_TRIGGER},
            ).first()
        return row is not None

    # -----------------------
    # DDL
    # -----------------------
    def create_bucket(self, schema: str, bucket: Bucket, owner: str) -> None:
        try:
            with self.engine.begin() as conn:
                for stmt in bucket_ddl(schema, bucket, owner):
                    conn.exec_driver_sql(stmt, execution_options=_DDL_OPTIONS)
        except DBAPIError as exc:
            state = _sqlstate(exc)
            if state in _CONFIG_SQLSTATES:
                raise ConfigurationError(
                    f"Cannot create {schema}.{bucket.name}: {_CONFIG_SQLSTATES[state]}: {exc.orig}",
                    bucket=bucket.name,
                ) from exc
            raise

    def install_dispatch(self, schema: str, source: Optional[str], version: str, install_hook: bool) -> None:
        with self.engine.begin() as conn:
            for stmt in dispatch_ddl(schema, source, version, install_hook):
                conn.exec_driver_sql(stmt, execution_options=_DDL_OPTIONS)

    # -----------------------
    # DML
    # -----------------------
    @staticmethod
    def _insert(conn, schema: str, table: str, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        target = sa.table(table, *[sa.column(name) for name in SAMPLE_COLUMNS], schema=schema)
        conn.execute(target.insert(), [dict(r) for r in rows])
        return len(rows)

    def insert_rows(self, schema: str, table: str, rows: Sequence[Dict[str, Any]]) -> int:
        with self.engine.begin() as conn:
            return self._insert(conn, schema, table, rows)

    def insert_groups(self, schema: str, groups: Dict[str, Sequence[Dict[str, Any]]]) -> Dict[str, int]:
        with self.engine.begin() as conn:
            return {table: self._insert(conn, schema, table, rows) for table, rows in groups.items()}

    # -----------------------
    # Locking
    # -----------------------
    @contextmanager
    def maintenance_lock(self, schema: str) -> Iterator[None]:
        key = f"{schema}.{PARENT_TABLE}_update_partitions"
        conn = self.engine.connect()
        try:
            acquired = conn.execute(text("SELECT pg_try_advisory_lock(hashtext(:key))"), {"key": key}).scalar()
            conn.commit()
            if not acquired:
                raise MaintenanceInProgress(schema)
            logger.debug("maintenance_lock_acquired", schema=schema)
            try:
                yield
            finally:
                conn.execute(text("SELECT pg_advisory_unlock(hashtext(:key))"), {"key": key})
                conn.commit()
        finally:
            conn.close()
