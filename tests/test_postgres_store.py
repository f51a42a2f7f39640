import unittest
from datetime import datetime

from archive_partitions.partitioning.plans import bucket_for
from archive_partitions.partitioning.postgres_store import VERSION_PREFIX, bucket_ddl, dispatch_ddl


class TestBucketDDL(unittest.TestCase):
    def setUp(self):
        self.bucket = bucket_for(datetime(2012, 6, 1), "week")
        self.statements = bucket_ddl("archive", self.bucket, "archive")

    def test_table_inherits_with_time_check(self):
        create = self.statements[0]
        self.assertTrue(create.startswith('CREATE TABLE "archive"."sample_y2012w22" ('))
        self.assertIn(
            "CHECK (smpl_time >= TIMESTAMP '2012-05-28 00:00:00' AND smpl_time < TIMESTAMP '2012-06-04 00:00:00')",
            create,
        )
        self.assertTrue(create.endswith('INHERITS ("archive"."sample")'))

    def test_owner_and_index(self):
        self.assertEqual(self.statements[1], 'ALTER TABLE "archive"."sample_y2012w22" OWNER TO "archive"')
        self.assertEqual(
            self.statements[2],
            'CREATE INDEX "sample_y2012w22_channel_time_pkey" ON "archive"."sample_y2012w22" '
            "(channel_id, smpl_time, nanosecs)",
        )

    def test_foreign_keys_cascade(self):
        fks = self.statements[3:]
        self.assertEqual(len(fks), 3)
        self.assertIn('"sample_severity_fkey" FOREIGN KEY ("severity_id") '
                      'REFERENCES "archive"."severity"("severity_id") ON DELETE CASCADE', fks[1])
        self.assertTrue(all(s.endswith("ON DELETE CASCADE") for s in fks))

    def test_identifiers_are_quoted(self):
        create = bucket_ddl('we"ird', self.bucket, "archive")[0]
        self.assertIn('"we""ird"."sample_y2012w22"', create)
        self.assertIn('"odd%name"."sample_y2012w22"', bucket_ddl("odd%name", self.bucket, "archive")[0])


class TestDispatchDDL(unittest.TestCase):
    def test_routine_comment_and_hook(self):
        statements = dispatch_ddl("archive", "CREATE OR REPLACE FUNCTION ...", "abc123", install_hook=True)
        self.assertEqual(len(statements), 3)
        self.assertEqual(
            statements[1],
            f"COMMENT ON FUNCTION \"archive\".sample_insert_trigger_function() IS '{VERSION_PREFIX}abc123'",
        )
        self.assertTrue(statements[2].startswith('CREATE TRIGGER "sample_insert_trigger"'))

    def test_hook_only(self):
        statements = dispatch_ddl("archive", None, "abc123", install_hook=True)
        self.assertEqual(len(statements), 1)

    def test_routine_only(self):
        statements = dispatch_ddl("archive", "CREATE OR REPLACE FUNCTION ...", "abc123", install_hook=False)
        self.assertEqual(len(statements), 2)


if __name__ == "__main__":
    unittest.main()
