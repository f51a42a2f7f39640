import unittest
from datetime import datetime
from unittest.mock import patch

from archive_partitions.errors import ConfigurationError, InvalidGranularity, MaintenanceInProgress
from archive_partitions.partitioning.plans import bucket_for
from archive_partitions.services import partition_service
from archive_partitions.services.partition_service import (
    current_partitions,
    load_dispatch_table,
    update_partitions,
)
from tests.memory_store import InMemoryPartitionStore

NOW = datetime(2012, 6, 3, 12, 0)


class TestUpdatePartitions(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPartitionStore()

    def run_update(self, begin=datetime(2012, 6, 1), plan="week", now=NOW, **kwargs):
        return update_partitions(begin, "archive", "archive", plan, store=self.store, now=now, **kwargs)

    def test_first_run_report(self):
        report = self.run_update()
        self.assertEqual(report.created_count, 2)
        self.assertTrue(report.dispatch.replaced)
        self.assertTrue(report.dispatch.hook_installed)

        data = report.as_dict()
        self.assertEqual(data["schema"], "archive")
        self.assertEqual(data["plan"], "week")
        self.assertEqual(data["created"], ["sample_y2012w22", "sample_y2012w23"])
        self.assertEqual(data["buckets"][0]["start"], "2012-05-28T00:00:00")
        self.assertEqual(data["dispatch_version"], report.dispatch.version)

    def test_rerun_creates_nothing_and_keeps_routine(self):
        first = self.run_update()
        second = self.run_update()
        self.assertEqual(second.created_count, 0)
        self.assertFalse(second.dispatch.replaced)
        self.assertFalse(second.dispatch.hook_installed)
        self.assertEqual(first.dispatch.version, second.dispatch.version)

    def test_week_later_extends_routine(self):
        self.run_update()
        report = self.run_update(now=datetime(2012, 6, 10, 12))
        self.assertEqual(report.created, ["sample_y2012w24"])
        self.assertTrue(report.dispatch.replaced)
        self.assertIn('"archive"."sample_y2012w24"', self.store.routine_source["archive"])

    def test_later_begin_time_keeps_older_buckets_routed(self):
        self.run_update(begin=datetime(2012, 5, 1))
        report = self.run_update(begin=datetime(2012, 6, 1))
        self.assertEqual(report.created_count, 0)
        self.assertEqual(len(report.window), 2)
        self.assertEqual(report.buckets[0].name, "sample_y2012w18")
        self.assertIn('"archive"."sample_y2012w18"', self.store.routine_source["archive"])
        self.assertFalse(report.dispatch.replaced)

    def test_other_plan_buckets_are_ignored(self):
        month = bucket_for(datetime(2011, 1, 1), "month")
        self.store.buckets["archive"] = {month.name: month}
        report = self.run_update()
        self.assertEqual(report.ignored, ["sample_y2011m01"])
        self.assertNotIn("sample_y2011m01", self.store.routine_source["archive"])

    def test_invalid_plan_runs_nothing(self):
        with self.assertRaises(InvalidGranularity):
            self.run_update(plan="hourly")
        self.assertEqual(self.store.calls, [])

    def test_configuration_error_leaves_no_routine(self):
        with self.assertRaises(ConfigurationError):
            update_partitions(datetime(2012, 6, 1), "archive", "ghost", "week", store=self.store, now=NOW)
        self.assertNotIn("archive", self.store.routine_source)
        self.assertNotIn("archive", self.store.triggers)
        self.assertEqual(self.store.locked, set())

    def test_database_error_is_logged_and_reraised(self):
        def broken_create(schema, bucket, owner):
            raise RuntimeError("server closed the connection unexpectedly")

        self.store.create_bucket = broken_create
        with patch.object(partition_service, "logger") as logger:
            with self.assertRaises(RuntimeError):
                self.run_update()
        log = logger.bind.return_value
        log.error.assert_called_once()
        args, kwargs = log.error.call_args
        self.assertEqual(args, ("maintenance_failed",))
        self.assertEqual(kwargs["error_type"], "RuntimeError")
        self.assertFalse(kwargs["expected"])
        self.assertEqual(self.store.locked, set())

    def test_concurrent_run_is_rejected(self):
        self.store.locked.add("archive")
        with self.assertRaises(MaintenanceInProgress):
            self.run_update()
        self.assertEqual(self.store.buckets, {})

    def test_force_rewrites_routine(self):
        self.run_update()
        self.assertTrue(self.run_update(force=True).dispatch.replaced)


class TestCurrentPartitions(unittest.TestCase):
    def test_lists_recognised_buckets_oldest_first(self):
        store = InMemoryPartitionStore()
        update_partitions(datetime(2012, 6, 1), "archive", "archive", "week", store=store, now=NOW)
        names = [b.name for b in current_partitions("archive", store)]
        self.assertEqual(names, ["sample_y2012w22", "sample_y2012w23"])

    def test_dispatch_table_matches_routine(self):
        store = InMemoryPartitionStore()
        report = update_partitions(datetime(2012, 6, 1), "archive", "archive", "week", store=store, now=NOW)
        table = load_dispatch_table("archive", "week", store)
        self.assertEqual(table.version, report.dispatch.version)
        self.assertEqual(table.route(datetime(2012, 6, 5)).name, "sample_y2012w23")


if __name__ == "__main__":
    unittest.main()
