"""
Application-side sample routing.

Writers that know the plan can skip the trigger and insert straight into the
bucket tables. Routing uses the same DispatchTable as the installed routine,
so a row lands in the same bucket either way.
"""
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from archive_partitions.logging_config import get_logger
from archive_partitions.partitioning.plans import PlanLike
from archive_partitions.partitioning.router import DispatchTable
from archive_partitions.partitioning.store import PartitionStore
from archive_partitions.services.partition_service import get_store, load_dispatch_table

logger = get_logger(__name__)


def group_by_bucket(rows: Iterable[Dict[str, Any]], table: DispatchTable) -> Dict[str, List[Dict[str, Any]]]:
    """Group rows by target bucket name. Raises OutOfRange on the first unroutable row."""
    groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        bucket = table.route(row["smpl_time"])
        groups[bucket.name].append(row)
    return dict(groups)


def write_samples(
    rows: Iterable[Dict[str, Any]],
    schema: str,
    plan: PlanLike,
    store: Optional[PartitionStore] = None,
    table: Optional[DispatchTable] = None,
) -> Dict[str, int]:
    """
    Insert sample rows directly into their bucket tables.

    Every row is routed before anything is written, so an out-of-range
    timestamp rejects the whole batch. All bucket groups are then inserted in
    one store transaction; a failure on any bucket writes nothing.

    Returns:
        {bucket_name: inserted row count}
    """
    store = store or get_store()
    if table is None:
        table = load_dispatch_table(schema, plan, store)
    groups = group_by_bucket(rows, table)

    try:
        written = store.insert_groups(schema, groups)
    except Exception as exc:
        logger.error("samples_write_failed", schema=schema, buckets=sorted(groups), error=str(exc))
        raise
    logger.info("samples_written", schema=schema, buckets=len(written), rows=sum(written.values()))
    return written
