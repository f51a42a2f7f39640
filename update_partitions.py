"""Create missing sample partitions and refresh the insert routing.

Usage (cron, hourly):
  0 * * * *  python update_partitions.py 2012-06-01 archive archive week

Prints the number of newly created partitions. Exit code 1 on a partition
error (invalid plan, missing role or lookup table, run already in progress).
"""
import argparse
import sys
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

from archive_partitions.config import settings
from archive_partitions.errors import PartitionError
from archive_partitions.services.partition_service import update_partitions


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("begin_time", nargs="?", type=datetime.fromisoformat,
                        default=settings.PARTITION_BEGIN_TIME)
    parser.add_argument("schema", nargs="?", default=settings.ARCHIVE_SCHEMA)
    parser.add_argument("owner", nargs="?", default=settings.ARCHIVE_TABLE_OWNER)
    parser.add_argument("plan", nargs="?", default=settings.PARTITION_PLAN.value)
    parser.add_argument("--force", action="store_true", help="replace the routine even if unchanged")
    args = parser.parse_args(argv)

    try:
        report = update_partitions(args.begin_time, args.schema, args.owner, args.plan, force=args.force)
    except PartitionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(report.created_count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
