"""
Partition catalog synchronizer.

Walks the bucket sequence from begin_time to one plan ahead of now and
creates every bucket table that does not exist yet. Existing buckets are never
touched, so re-running with the same or an overlapping begin_time is a no-op
for them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Union

from archive_partitions.errors import ConfigurationError
from archive_partitions.logging_config import get_logger

from .plans import PARENT_TABLE, Bucket, Granularity, PlanLike, bucket_sequence
from .store import LOOKUP_RELATIONS, PartitionStore

logger = get_logger(__name__)


@dataclass
class SyncResult:
    plan: Granularity
    buckets: List[Bucket] = field(default_factory=list)
    created: List[str] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)


def check_configuration(store: PartitionStore, schema: str, owner: str) -> None:
    """Fail before any DDL if the owner role or a referenced relation is missing."""
    if not store.role_exists(owner):
        raise ConfigurationError(f"Owner role '{owner}' does not exist")
    for relation in (PARENT_TABLE,) + LOOKUP_RELATIONS:
        if not store.relation_exists(schema, relation):
            raise ConfigurationError(f"Relation {schema}.{relation} does not exist")


def synchronize(
    store: PartitionStore,
    begin_time: Union[datetime, date],
    schema: str,
    owner: str,
    plan: PlanLike,
    now: Optional[datetime] = None,
) -> SyncResult:
    """
    Ensure a bucket table exists for every bucket from begin_time through now + 1 plan.

    Args:
        store: Partition store adapter
        begin_time: Any instant; truncated down to the plan boundary
        schema: Namespace holding the sample parent and lookup tables
        owner: Role that owns newly created buckets
        plan: day, week, month or year
        now: Reference time (defaults to current UTC time)

    Returns:
        SyncResult with every bucket of the window (ascending) and the names
        of the ones created by this call

    Raises:
        InvalidGranularity: unknown plan, before any store access
        ConfigurationError: missing owner role or lookup relation
    """
    plan = Granularity.parse(plan)
    window = bucket_sequence(begin_time, plan, now)
    result = SyncResult(plan=plan)

    check_configuration(store, schema, owner)

    for bucket in window:
        if not store.table_exists(schema, bucket.name):
            try:
                store.create_bucket(schema, bucket, owner)
            except ConfigurationError:
                logger.error("partition_create_failed", schema=schema, bucket=bucket.name, created=result.created)
                raise
            result.created.append(bucket.name)
            logger.info(
                "partition_created",
                schema=schema,
                bucket=bucket.name,
                start=bucket.start.isoformat(),
                end=bucket.end.isoformat(),
                owner=owner,
            )
        result.buckets.append(bucket)

    logger.info(
        "partitions_synchronized",
        schema=schema,
        plan=plan.value,
        window=len(window),
        created_count=result.created_count,
    )
    return result
