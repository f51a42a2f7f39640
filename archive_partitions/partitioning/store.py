"""
Store adapter interface.

The partitioning code only talks to the database through this interface so the
bucket/dispatch logic stays independent of the SQL dialect. The Postgres
implementation lives in postgres_store.py.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .plans import Bucket

LOOKUP_RELATIONS = ("channel", "severity", "status")
DISPATCH_FUNCTION = "sample_insert_trigger_function"
INSERT_TRIGGER = "sample_insert_trigger"


class PartitionStore(ABC):
    """
    Capabilities the partition manager needs from the relational store.
    All implementations must inherit from this class.
    """

    @abstractmethod
    def role_exists(self, role: str) -> bool:
        pass

    @abstractmethod
    def relation_exists(self, schema: str, name: str) -> bool:
        """True if a table/view called `name` exists in `schema`."""
        pass

    def table_exists(self, schema: str, name: str) -> bool:
        return self.relation_exists(schema, name)

    @abstractmethod
    def list_bucket_tables(self, schema: str) -> List[str]:
        """Names of the existing child tables of <schema>.sample."""
        pass

    @abstractmethod
    def create_bucket(self, schema: str, bucket: Bucket, owner: str) -> None:
        """
        Create the bucket table with its check constraint, owner, index and
        foreign keys in one transaction. Either everything exists afterwards
        or nothing does.

        Raises:
            ConfigurationError: owner role or a referenced relation is missing
        """
        pass

    @abstractmethod
    def dispatch_version(self, schema: str) -> Optional[str]:
        """Version recorded on the installed dispatch routine, if any."""
        pass

    @abstractmethod
    def trigger_exists(self, schema: str) -> bool:
        pass

    @abstractmethod
    def install_dispatch(self, schema: str, source: Optional[str], version: str, install_hook: bool) -> None:
        """
        Atomically replace the dispatch routine (when `source` is given),
        record `version` on it and, if `install_hook`, bind the before-insert
        trigger on the parent.
        """
        pass

    @abstractmethod
    def insert_rows(self, schema: str, table: str, rows: Sequence[Dict[str, Any]]) -> int:
        pass

    @abstractmethod
    def insert_groups(self, schema: str, groups: Dict[str, Sequence[Dict[str, Any]]]) -> Dict[str, int]:
        """
        Insert {table: rows} for several bucket tables in one transaction.
        A failure on any table leaves none of the rows written.
        """
        pass

    @contextmanager
    def maintenance_lock(self, schema: str) -> Iterator[None]:
        """
        Exclusive lock for one maintenance run per schema.
        The default is a no-op for stores that serialize runs externally.

        Raises:
            MaintenanceInProgress: the lock is held by another run
        """
        yield
