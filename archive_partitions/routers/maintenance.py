"""
API router for triggering partition maintenance and inspecting buckets.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from archive_partitions.config import settings
from archive_partitions.deps import get_partition_store, require_maintenance_key
from archive_partitions.errors import (
    ConfigurationError,
    InvalidGranularity,
    MaintenanceInProgress,
    OutOfRange,
)
from archive_partitions.logging_config import get_logger
from archive_partitions.middleware import record_maintenance
from archive_partitions.partitioning.plans import Granularity, to_naive_utc
from archive_partitions.partitioning.store import PartitionStore
from archive_partitions.schemas import (
    BucketOut,
    PartitionListResponse,
    PartitionRunRequest,
    PartitionRunResponse,
    RouteResponse,
)
from archive_partitions.services.partition_service import (
    current_partitions,
    load_dispatch_table,
    update_partitions,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Maintenance"], dependencies=[Depends(require_maintenance_key)])


@router.post("/partitions", response_model=PartitionRunResponse)
def run_partition_maintenance(
    request: Request,
    body: Optional[PartitionRunRequest] = None,
    store: PartitionStore = Depends(get_partition_store),
):
    """
    Create missing sample buckets and rebuild the insert routing.
    Same contract as the scheduled job; returns the number of new buckets.
    """
    body = body or PartitionRunRequest()
    schema = body.schema_name or settings.ARCHIVE_SCHEMA
    plan = body.plan or settings.PARTITION_PLAN
    record_maintenance(request, schema=schema, plan=str(getattr(plan, "value", plan)))
    try:
        report = update_partitions(
            begin_time=body.begin_time or settings.PARTITION_BEGIN_TIME,
            schema=schema,
            owner=body.owner or settings.ARCHIVE_TABLE_OWNER,
            plan=plan,
            store=store,
            force=body.force,
        )
    except InvalidGranularity as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except MaintenanceInProgress as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    record_maintenance(
        request,
        created_count=report.created_count,
        dispatch_replaced=report.dispatch.replaced,
        run_duration_ms=round(report.duration_ms, 2),
    )
    return PartitionRunResponse(**report.as_dict())


@router.get("/partitions", response_model=PartitionListResponse)
def list_partitions(
    request: Request,
    schema: Optional[str] = Query(None, min_length=1, max_length=63),
    store: PartitionStore = Depends(get_partition_store),
):
    """List existing bucket tables with their time ranges."""
    schema = schema or settings.ARCHIVE_SCHEMA
    buckets = current_partitions(schema, store)
    record_maintenance(request, schema=schema, bucket_count=len(buckets))
    return PartitionListResponse(schema=schema, buckets=[BucketOut.model_validate(b) for b in buckets])


@router.get("/partitions/route", response_model=RouteResponse)
def route_sample(
    request: Request,
    smpl_time: datetime = Query(...),
    schema: Optional[str] = Query(None, min_length=1, max_length=63),
    plan: Optional[str] = Query(None),
    store: PartitionStore = Depends(get_partition_store),
):
    """Which bucket a sample with this timestamp is routed to."""
    schema = schema or settings.ARCHIVE_SCHEMA
    record_maintenance(request, schema=schema)
    try:
        table = load_dispatch_table(schema, Granularity.parse(plan or settings.PARTITION_PLAN), store)
        bucket = table.route(smpl_time)
    except InvalidGranularity as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except OutOfRange as e:
        logger.warning("route_out_of_range", schema=schema, smpl_time=smpl_time.isoformat())
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return RouteResponse(schema=schema, smpl_time=to_naive_utc(smpl_time), bucket=BucketOut.model_validate(bucket))
