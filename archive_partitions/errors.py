"""
Partition maintenance errors.

Everything raised on purpose by the partitioning code derives from
PartitionError so callers (router, CLI, worker) can handle one type.
"""
from datetime import datetime
from typing import Optional


class PartitionError(Exception):
    """Base class for partition maintenance failures."""


class InvalidGranularity(PartitionError, ValueError):
    """Unknown partition plan; raised before any DDL runs."""

    def __init__(self, plan):
        self.plan = plan
        super().__init__(f"Invalid plan --> {plan}")


class ConfigurationError(PartitionError):
    """Missing owner role, lookup relation or parent table."""

    def __init__(self, message: str, bucket: Optional[str] = None):
        self.bucket = bucket
        super().__init__(message)


class OutOfRange(PartitionError, LookupError):
    """No known bucket covers the sample time."""

    def __init__(self, schema: str, smpl_time: datetime):
        self.schema = schema
        self.smpl_time = smpl_time
        super().__init__(
            f"Error in {schema}.sample_insert_trigger_function(): "
            f"smpl_time {smpl_time.isoformat()} out of range"
        )


class MaintenanceInProgress(PartitionError):
    """Another maintenance run holds the lock for this schema."""

    def __init__(self, schema: str):
        self.schema = schema
        super().__init__(f"Partition maintenance already running for schema '{schema}'")
