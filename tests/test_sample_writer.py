import unittest
from datetime import datetime, timedelta, timezone

from archive_partitions.errors import OutOfRange
from archive_partitions.services.partition_service import load_dispatch_table, update_partitions
from archive_partitions.services.sample_writer import group_by_bucket, write_samples
from tests.memory_store import InMemoryPartitionStore


def sample(ts, value=1.0):
    return {"channel_id": 1, "smpl_time": ts, "nanosecs": 0, "severity_id": 1, "status_id": 1, "float_val": value}


class BrokenBucketStore(InMemoryPartitionStore):
    """Fails every insert into one bucket table, like a lost connection mid-batch."""

    def __init__(self, broken, **kwargs):
        super().__init__(**kwargs)
        self.broken = broken

    def insert_rows(self, schema, table, rows):
        if table == self.broken:
            raise RuntimeError(f"connection lost while writing {table}")
        return super().insert_rows(schema, table, rows)


class TestSampleWriter(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPartitionStore()
        update_partitions(
            datetime(2012, 6, 1), "archive", "archive", "week", store=self.store, now=datetime(2012, 6, 3, 12)
        )

    def test_rows_land_in_their_buckets(self):
        rows = [sample(datetime(2012, 6, 1, 9)), sample(datetime(2012, 6, 4)), sample(datetime(2012, 6, 3, 23))]
        written = write_samples(rows, "archive", "week", store=self.store)
        self.assertEqual(written, {"sample_y2012w22": 2, "sample_y2012w23": 1})
        self.assertEqual(len(self.store.rows["sample_y2012w23"]), 1)

    def test_out_of_range_rejects_whole_batch(self):
        rows = [sample(datetime(2012, 6, 1, 9)), sample(datetime(2012, 7, 1))]
        with self.assertRaises(OutOfRange) as ctx:
            write_samples(rows, "archive", "week", store=self.store)
        self.assertIn("out of range", str(ctx.exception))
        self.assertEqual(self.store.rows, {})

    def test_insert_failure_on_one_bucket_writes_nothing(self):
        store = BrokenBucketStore(broken="sample_y2012w23")
        update_partitions(
            datetime(2012, 6, 1), "archive", "archive", "week", store=store, now=datetime(2012, 6, 3, 12)
        )
        rows = [sample(datetime(2012, 6, 1)), sample(datetime(2012, 6, 5))]
        with self.assertRaises(RuntimeError):
            write_samples(rows, "archive", "week", store=store)
        self.assertEqual(store.rows, {})
        self.assertIn("insert_groups", store.calls)

    def test_aware_timestamp_routes_by_utc(self):
        # 01:30 on Monday in UTC+2 is still Sunday in UTC
        ts = datetime(2012, 6, 4, 1, 30, tzinfo=timezone(timedelta(hours=2)))
        written = write_samples([sample(ts)], "archive", "week", store=self.store)
        self.assertEqual(written, {"sample_y2012w22": 1})

    def test_group_by_bucket_preserves_row_order(self):
        rows = [sample(datetime(2012, 6, 2), v) for v in (1.0, 2.0, 3.0)]
        groups = group_by_bucket(rows, load_dispatch_table("archive", "week", self.store))
        self.assertEqual([r["float_val"] for r in groups["sample_y2012w22"]], [1.0, 2.0, 3.0])


if __name__ == "__main__":
    unittest.main()
