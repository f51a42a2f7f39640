"""archive schema, lookup tables and sample parent

Revision ID: 001_archive_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from archive_partitions.config import settings

# revision identifiers, used by Alembic.
revision: str = '001_archive_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the lookups and the sample parent table (Postgres only)."""
    bind = op.get_bind()
    if bind.dialect.name != 'postgresql':
        return
    schema = settings.ARCHIVE_SCHEMA

    op.execute(sa.schema.CreateSchema(schema, if_not_exists=True))

    op.create_table(
        'channel',
        sa.Column('channel_id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('descr', sa.String(100), nullable=True),
        sa.Column('grp_id', sa.BigInteger(), nullable=True),
        sa.Column('smpl_mode_id', sa.BigInteger(), nullable=True),
        sa.Column('smpl_val', sa.Float(), nullable=True),
        sa.Column('smpl_per', sa.Float(), nullable=True),
        sa.Column('retent_id', sa.BigInteger(), nullable=True),
        sa.Column('retent_val', sa.Float(), nullable=True),
        schema=schema,
    )
    op.create_table(
        'severity',
        sa.Column('severity_id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        schema=schema,
    )
    op.create_table(
        'status',
        sa.Column('status_id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        schema=schema,
    )

    # Template for every bucket; rows are routed to buckets by the insert trigger
    op.create_table(
        'sample',
        sa.Column('channel_id', sa.BigInteger(), nullable=False),
        sa.Column('smpl_time', sa.DateTime(timezone=False), nullable=False),
        sa.Column('nanosecs', sa.BigInteger(), nullable=False),
        sa.Column('severity_id', sa.BigInteger(), nullable=False),
        sa.Column('status_id', sa.BigInteger(), nullable=False),
        sa.Column('num_val', sa.Integer(), nullable=True),
        sa.Column('float_val', sa.REAL(), nullable=True),
        sa.Column('str_val', sa.String(120), nullable=True),
        sa.Column('datatype', sa.CHAR(1), nullable=True, server_default=' '),
        sa.Column('array_val', sa.LargeBinary(), nullable=True),
        schema=schema,
    )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name != 'postgresql':
        return
    schema = settings.ARCHIVE_SCHEMA
    # CASCADE takes the bucket tables and the insert trigger with the parent
    op.execute(sa.text(f'DROP TABLE IF EXISTS "{schema}".sample CASCADE'))
    op.execute(sa.text(f'DROP FUNCTION IF EXISTS "{schema}".sample_insert_trigger_function()'))
    op.drop_table('status', schema=schema)
    op.drop_table('severity', schema=schema)
    op.drop_table('channel', schema=schema)
