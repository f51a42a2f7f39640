"""
Initial sample partitions and insert routing (Postgres only, no-op on SQLite).

Creates the buckets from PARTITION_BEGIN_TIME through one plan ahead of now,
the dispatch routine and the insert trigger. Later buckets come from the
scheduled update_partitions run.

Revision ID: 002_partition_bootstrap
Revises: 001_archive_schema
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from archive_partitions.config import settings
from archive_partitions.partitioning.plans import bucket_sequence
from archive_partitions.partitioning.postgres_store import bucket_ddl, dispatch_ddl
from archive_partitions.partitioning.router import DispatchTable, compile_dispatch_function


# revision identifiers, used by Alembic.
revision = '002_partition_bootstrap'
down_revision = '001_archive_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    if conn.dialect.name != 'postgresql':
        # No-op on SQLite and others
        return

    schema = settings.ARCHIVE_SCHEMA
    owner = settings.ARCHIVE_TABLE_OWNER
    role = conn.execute(sa.text("SELECT 1 FROM pg_roles WHERE rolname = :role"), {"role": owner}).first()
    if role is None:
        raise RuntimeError(f"ARCHIVE_TABLE_OWNER role '{owner}' does not exist; create it before migrating")

    buckets = bucket_sequence(settings.PARTITION_BEGIN_TIME, settings.PARTITION_PLAN)
    statements = []
    for bucket in buckets:
        statements.extend(bucket_ddl(schema, bucket, owner))

    table = DispatchTable(schema, buckets)
    statements.extend(dispatch_ddl(schema, compile_dispatch_function(table), table.version, install_hook=True))

    for stmt in statements:
        conn.exec_driver_sql(stmt, execution_options={"no_parameters": True})


def downgrade() -> None:
    conn = op.get_bind()
    if conn.dialect.name != 'postgresql':
        return
    schema = settings.ARCHIVE_SCHEMA
    # Buckets are kept: they hold archived samples. Only the routing goes.
    op.execute(sa.text(f'DROP TRIGGER IF EXISTS sample_insert_trigger ON "{schema}".sample'))
    op.execute(sa.text(f'DROP FUNCTION IF EXISTS "{schema}".sample_insert_trigger_function()'))
