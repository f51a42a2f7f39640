"""
Dispatch routine compiler.

The bucket set is turned into one ordered decision structure:

- DispatchTable routes a timestamp in the application layer (binary search
  over the sorted bucket starts).
- compile_dispatch_function renders the same table as the PL/pgSQL trigger
  function installed on the parent, newest bucket tested first since most
  inserts carry recent timestamps.

The routine is always regenerated from scratch; a content hash recorded on the
installed function lets a run skip the replace when nothing changed.
"""
from __future__ import annotations

import hashlib
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from archive_partitions.errors import OutOfRange
from archive_partitions.logging_config import get_logger

from .plans import PARENT_TABLE, Bucket, to_naive_utc
from .sql import qualified, quote_ident, quote_literal, timestamp_literal
from .store import DISPATCH_FUNCTION, INSERT_TRIGGER, PartitionStore

logger = get_logger(__name__)

# Bump whenever compile_dispatch_function changes its output, so installed
# routines are replaced on the next run without --force.
DISPATCH_TEMPLATE_REVISION = "2"


class DispatchTable:
    """Immutable, sorted set of bucket ranges for one schema."""

    def __init__(self, schema: str, buckets: Iterable[Bucket]):
        self.schema = schema
        unique = {b.name: b for b in buckets}
        self.buckets: List[Bucket] = sorted(unique.values(), key=lambda b: b.start)
        for prev, cur in zip(self.buckets, self.buckets[1:]):
            if prev.end > cur.start:
                raise ValueError(f"Overlapping buckets: {prev.name} and {cur.name}")
        self._starts = [b.start for b in self.buckets]

    def __len__(self) -> int:
        return len(self.buckets)

    def __iter__(self) -> Iterator[Bucket]:
        return iter(self.buckets)

    def newest_first(self) -> List[Bucket]:
        return list(reversed(self.buckets))

    def route(self, smpl_time: datetime) -> Bucket:
        """Bucket whose [start, end) contains smpl_time.

        Raises:
            OutOfRange: no known bucket covers smpl_time
        """
        ts = to_naive_utc(smpl_time)
        idx = bisect_right(self._starts, ts) - 1
        if idx >= 0 and ts < self.buckets[idx].end:
            return self.buckets[idx]
        raise OutOfRange(self.schema, ts)

    @property
    def version(self) -> str:
        digest = hashlib.sha256()
        digest.update(f"template:{DISPATCH_TEMPLATE_REVISION}\n".encode())
        digest.update(self.schema.encode())
        for b in self.buckets:
            digest.update(f"\n{b.start.isoformat()}|{b.end.isoformat()}|{b.name}".encode())
        return digest.hexdigest()


def compile_dispatch_function(table: DispatchTable) -> str:
    """Render CREATE OR REPLACE FUNCTION for the trigger routine."""
    schema = table.schema
    function = f"{quote_ident(schema)}.{DISPATCH_FUNCTION}"
    # RAISE treats every % in the format string as a placeholder
    error = quote_literal(f"Error in {schema.replace('%', '%%')}.{DISPATCH_FUNCTION}(): smpl_time % out of range")

    branches = []
    for bucket in table.newest_first():
        keyword = "IF" if not branches else "ELSIF"
        branches.append(
            f"{keyword} ( NEW.smpl_time >= {timestamp_literal(bucket.start)} "
            f"AND NEW.smpl_time < {timestamp_literal(bucket.end)} ) THEN "
            f"INSERT INTO {qualified(schema, bucket.name)} VALUES (NEW.*);"
        )

    raise_stmt = f"RAISE EXCEPTION {error}, NEW.smpl_time;"
    if branches:
        body = "\n".join(branches) + f"\nELSE\n{raise_stmt}\nEND IF;"
    else:
        body = raise_stmt

    return (
        f"CREATE OR REPLACE FUNCTION {function}()\n"
        "RETURNS TRIGGER AS $$\n"
        "BEGIN\n"
        f"{body}\n"
        "RETURN NULL;\n"
        "END;\n"
        "$$\n"
        "LANGUAGE plpgsql;"
    )


def compile_insert_trigger(schema: str) -> str:
    return (
        f"CREATE TRIGGER {quote_ident(INSERT_TRIGGER)} BEFORE INSERT ON {qualified(schema, PARENT_TABLE)} "
        f"FOR EACH ROW EXECUTE PROCEDURE {quote_ident(schema)}.{DISPATCH_FUNCTION}();"
    )


@dataclass(frozen=True)
class DispatchResult:
    version: str
    replaced: bool
    hook_installed: bool
    branch_count: int


def rebuild_dispatch(
    store: PartitionStore,
    schema: str,
    buckets: Iterable[Bucket],
    force: bool = False,
) -> DispatchResult:
    """Regenerate the dispatch routine for `buckets` and bind the insert hook once.

    The routine is replaced only when its recorded version differs from the
    bucket set (or `force`). Routine and hook go through one store call so the
    hook never points at a half-written routine.
    """
    table = DispatchTable(schema, buckets)
    installed: Optional[str] = store.dispatch_version(schema)
    replace = force or installed != table.version
    install_hook = not store.trigger_exists(schema)

    if replace or install_hook:
        source = compile_dispatch_function(table) if replace else None
        store.install_dispatch(schema, source, table.version, install_hook)

    if replace:
        logger.info(
            "dispatch_replaced",
            schema=schema,
            version=table.version[:12],
            previous_version=installed[:12] if installed else None,
            branches=len(table),
        )
    else:
        logger.debug("dispatch_unchanged", schema=schema, version=table.version[:12])
    if install_hook:
        logger.info("insert_hook_installed", schema=schema, trigger=INSERT_TRIGGER)

    return DispatchResult(
        version=table.version,
        replaced=replace,
        hook_installed=install_hook,
        branch_count=len(table),
    )
