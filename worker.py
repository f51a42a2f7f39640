import time
import sys
import os

# Add current directory to path
sys.path.append(os.getcwd())

from archive_partitions.config import settings
from archive_partitions.errors import MaintenanceInProgress, PartitionError
from archive_partitions.logging_config import get_logger
from archive_partitions.services.partition_service import update_partitions

logger = get_logger(__name__)


def run_once() -> int:
    report = update_partitions(
        begin_time=settings.PARTITION_BEGIN_TIME,
        schema=settings.ARCHIVE_SCHEMA,
        owner=settings.ARCHIVE_TABLE_OWNER,
        plan=settings.PARTITION_PLAN,
    )
    return report.created_count


def start_worker():
    interval = settings.PARTITION_MAINTENANCE_INTERVAL_SECONDS
    logger.info(
        "worker_started",
        schema=settings.ARCHIVE_SCHEMA,
        plan=settings.PARTITION_PLAN.value,
        interval_seconds=interval,
    )

    while True:
        try:
            run_once()
            time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("worker_stopping")
            break
        except MaintenanceInProgress:
            # Another instance is running; try again next period
            time.sleep(interval)
        except PartitionError as e:
            logger.error("worker_run_failed", error=str(e))
            time.sleep(interval)
        except Exception as e:
            logger.error("worker_crashed", error=str(e), exc_info=e)
            time.sleep(5)


if __name__ == "__main__":
    start_worker()
