"""
ARCHIVE – SQLAlchemy Models

This file defines the archive tables the partition manager depends on:
- Channel / Severity / Status lookups (foreign key targets of every bucket)
- Sample, the logical parent table that every bucket table inherits from

The sample column list is a fixed contract with upstream writers and
downstream readers; bucket tables replicate it through INHERITS.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, String, CHAR, DateTime, Float,
    LargeBinary, Table, Identity, REAL,
)
from .db import Base


# =====================================================
# LOOKUP MODELS
# =====================================================

class Channel(Base):
    __tablename__ = "channel"

    channel_id = Column(BigInteger, Identity(), primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    descr = Column(String(100), nullable=True)
    grp_id = Column(BigInteger, nullable=True)
    smpl_mode_id = Column(BigInteger, nullable=True)
    smpl_val = Column(Float, nullable=True)
    smpl_per = Column(Float, nullable=True)
    retent_id = Column(BigInteger, nullable=True)
    retent_val = Column(Float, nullable=True)

    def __repr__(self):
        return f"<Channel {self.channel_id} {self.name}>"


class Severity(Base):
    __tablename__ = "severity"

    severity_id = Column(BigInteger, Identity(), primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


class Status(Base):
    __tablename__ = "status"

    status_id = Column(BigInteger, Identity(), primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


# =====================================================
# SAMPLE PARENT TABLE
# =====================================================

# No primary key: rows never live in the parent once routing is installed,
# and the buckets carry the (channel_id, smpl_time, nanosecs) index instead.
sample = Table(
    "sample",
    Base.metadata,
    Column("channel_id", BigInteger, nullable=False),
    Column("smpl_time", DateTime(timezone=False), nullable=False),
    Column("nanosecs", BigInteger, nullable=False),
    Column("severity_id", BigInteger, nullable=False),
    Column("status_id", BigInteger, nullable=False),
    Column("num_val", Integer, nullable=True),
    Column("float_val", REAL, nullable=True),
    Column("str_val", String(120), nullable=True),
    Column("datatype", CHAR(1), nullable=True, server_default=" "),
    Column("array_val", LargeBinary, nullable=True),
)

SAMPLE_COLUMNS = tuple(c.name for c in sample.columns)
