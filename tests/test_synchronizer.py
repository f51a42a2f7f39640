import unittest
from datetime import datetime

from archive_partitions.errors import ConfigurationError, InvalidGranularity
from archive_partitions.partitioning.synchronizer import synchronize
from tests.memory_store import InMemoryPartitionStore

BEGIN = datetime(2012, 6, 1)
NOW = datetime(2012, 6, 3, 12, 0)


class TestSynchronize(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPartitionStore()

    def test_first_run_creates_window(self):
        result = synchronize(self.store, BEGIN, "archive", "archive", "week", now=NOW)
        self.assertEqual(result.created_count, 2)
        self.assertEqual(result.created, ["sample_y2012w22", "sample_y2012w23"])
        self.assertEqual([b.name for b in result.buckets], result.created)
        self.assertEqual(self.store.owners["sample_y2012w22"], "archive")

    def test_second_run_is_idempotent(self):
        synchronize(self.store, BEGIN, "archive", "archive", "week", now=NOW)
        before = dict(self.store.buckets["archive"])
        result = synchronize(self.store, BEGIN, "archive", "archive", "week", now=NOW)
        self.assertEqual(result.created_count, 0)
        self.assertEqual(len(result.buckets), 2)
        self.assertEqual(self.store.buckets["archive"], before)

    def test_week_later_creates_one_bucket(self):
        synchronize(self.store, BEGIN, "archive", "archive", "week", now=NOW)
        result = synchronize(self.store, BEGIN, "archive", "archive", "week", now=datetime(2012, 6, 10, 12))
        self.assertEqual(result.created, ["sample_y2012w24"])
        self.assertEqual(len(result.buckets), 3)

    def test_overlapping_begin_time_only_adds_missing(self):
        synchronize(self.store, BEGIN, "archive", "archive", "month", now=NOW)
        result = synchronize(self.store, datetime(2012, 3, 15), "archive", "archive", "month", now=NOW)
        self.assertEqual(result.created, ["sample_y2012m03", "sample_y2012m04", "sample_y2012m05"])

    def test_invalid_plan_fails_before_store_access(self):
        with self.assertRaises(InvalidGranularity):
            synchronize(self.store, BEGIN, "archive", "archive", "fortnight", now=NOW)
        self.assertEqual(self.store.calls, [])

    def test_missing_owner_role(self):
        with self.assertRaises(ConfigurationError) as ctx:
            synchronize(self.store, BEGIN, "archive", "nobody", "week", now=NOW)
        self.assertIn("nobody", str(ctx.exception))
        self.assertEqual(self.store.buckets, {})

    def test_missing_lookup_relation(self):
        store = InMemoryPartitionStore(relations=("sample", "channel", "status"))
        with self.assertRaises(ConfigurationError) as ctx:
            synchronize(store, BEGIN, "archive", "archive", "week", now=NOW)
        self.assertIn("archive.severity", str(ctx.exception))
        self.assertEqual(store.buckets, {})

    def test_failure_mid_run_keeps_earlier_buckets(self):
        self.store.fail_on = "sample_y2012w23"
        with self.assertRaises(ConfigurationError):
            synchronize(self.store, BEGIN, "archive", "archive", "week", now=NOW)
        self.assertEqual(list(self.store.buckets["archive"]), ["sample_y2012w22"])

    def test_day_plan_window(self):
        result = synchronize(self.store, datetime(2012, 6, 1, 18), "archive", "archive", "day", now=NOW)
        # June 1..4: begin day through the day after now
        self.assertEqual(result.created_count, 4)
        self.assertEqual(result.created[-1], "sample_y2012d156")


if __name__ == "__main__":
    unittest.main()
