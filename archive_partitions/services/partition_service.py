from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from archive_partitions.errors import PartitionError
from archive_partitions.logging_config import get_logger
from archive_partitions.partitioning.plans import Bucket, Granularity, PlanLike, parse_bucket_name
from archive_partitions.partitioning.router import DispatchResult, DispatchTable, rebuild_dispatch
from archive_partitions.partitioning.store import PartitionStore
from archive_partitions.partitioning.synchronizer import synchronize

logger = get_logger(__name__)

_store: Optional[PartitionStore] = None


def get_store() -> PartitionStore:
    global _store
    if _store is None:
        from archive_partitions.partitioning.postgres_store import PostgresPartitionStore
        _store = PostgresPartitionStore()
    return _store


@dataclass
class MaintenanceReport:
    schema: str
    plan: Granularity
    created: List[str]
    window: List[Bucket]
    buckets: List[Bucket]
    dispatch: DispatchResult
    duration_ms: float = 0.0
    ignored: List[str] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    def as_dict(self) -> Dict:
        return {
            "schema": self.schema,
            "plan": self.plan.value,
            "created_count": self.created_count,
            "created": list(self.created),
            "buckets": [b.as_dict() for b in self.buckets],
            "dispatch_version": self.dispatch.version,
            "dispatch_replaced": self.dispatch.replaced,
            "hook_installed": self.dispatch.hook_installed,
            "duration_ms": round(self.duration_ms, 2),
        }


def current_partitions(schema: str, store: Optional[PartitionStore] = None) -> List[Bucket]:
    """Existing bucket tables of <schema>.sample, oldest first. Unrecognised children are skipped."""
    store = store or get_store()
    buckets = []
    for name in store.list_bucket_tables(schema):
        bucket = parse_bucket_name(name)
        if bucket is not None:
            buckets.append(bucket)
    return sorted(buckets, key=lambda b: b.start)


def _split_by_plan(buckets: List[Bucket], plan: Granularity):
    matching = [b for b in buckets if b.plan is plan]
    other = [b.name for b in buckets if b.plan is not plan]
    return matching, other


def load_dispatch_table(schema: str, plan: PlanLike, store: Optional[PartitionStore] = None) -> DispatchTable:
    """Dispatch table over the existing buckets of one plan."""
    plan = Granularity.parse(plan)
    matching, _ = _split_by_plan(current_partitions(schema, store), plan)
    return DispatchTable(schema, matching)


def update_partitions(
    begin_time: Union[datetime, date],
    schema: str,
    owner: str,
    plan: PlanLike,
    store: Optional[PartitionStore] = None,
    now: Optional[datetime] = None,
    force: bool = False,
) -> MaintenanceReport:
    """
    Run one maintenance pass: materialize missing buckets, then rebuild the
    dispatch routine and bind the insert hook if absent.

    The routine covers every existing bucket of the plan, not only the window
    computed from begin_time, so moving begin_time forward never orphans
    older buckets.

    Raises:
        InvalidGranularity: unknown plan (nothing is executed)
        ConfigurationError: missing owner role or lookup relation
        MaintenanceInProgress: another run holds the lock
    """
    plan = Granularity.parse(plan)
    store = store or get_store()
    log = logger.bind(schema=schema, plan=plan.value, owner=owner)
    started = time.time()
    log.info("maintenance_started", begin_time=str(begin_time))

    try:
        with store.maintenance_lock(schema):
            sync = synchronize(store, begin_time, schema, owner, plan, now=now)

            # Bucket DDL is committed per bucket above; only now is the routine rebuilt.
            existing, ignored = _split_by_plan(current_partitions(schema, store), plan)
            if ignored:
                log.warning("partition_plan_mismatch", ignored=ignored)
            known = {b.name: b for b in existing}
            known.update((b.name, b) for b in sync.buckets)
            buckets = sorted(known.values(), key=lambda b: b.start)

            dispatch = rebuild_dispatch(store, schema, buckets, force=force)
    except Exception as exc:
        log.error(
            "maintenance_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            expected=isinstance(exc, PartitionError),
        )
        raise

    report = MaintenanceReport(
        schema=schema,
        plan=plan,
        created=sync.created,
        window=sync.buckets,
        buckets=buckets,
        dispatch=dispatch,
        duration_ms=(time.time() - started) * 1000,
        ignored=ignored,
    )
    log.info(
        "maintenance_completed",
        created_count=report.created_count,
        buckets=len(buckets),
        dispatch_replaced=dispatch.replaced,
        duration_ms=round(report.duration_ms, 2),
    )
    return report
