from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from archive_partitions.partitioning.plans import Granularity


class PartitionRunRequest(BaseModel):
    """Arguments of one maintenance run; omitted fields fall back to settings."""
    begin_time: Optional[datetime] = None
    schema_name: Optional[str] = Field(default=None, alias="schema", min_length=1, max_length=63)
    owner: Optional[str] = Field(default=None, min_length=1, max_length=63)
    # Plain string so unknown plans reach the service and fail as InvalidGranularity
    plan: Optional[str] = None
    force: bool = False

    model_config = ConfigDict(populate_by_name=True)


class BucketOut(BaseModel):
    name: str
    plan: Granularity
    start: datetime
    end: datetime

    model_config = ConfigDict(from_attributes=True)


class PartitionRunResponse(BaseModel):
    schema_name: str = Field(alias="schema")
    plan: Granularity
    created_count: int
    created: List[str]
    buckets: List[BucketOut]
    dispatch_version: str
    dispatch_replaced: bool
    hook_installed: bool
    duration_ms: float

    model_config = ConfigDict(populate_by_name=True)


class PartitionListResponse(BaseModel):
    schema_name: str = Field(alias="schema")
    buckets: List[BucketOut]

    model_config = ConfigDict(populate_by_name=True)


class RouteResponse(BaseModel):
    schema_name: str = Field(alias="schema")
    smpl_time: datetime
    bucket: BucketOut

    model_config = ConfigDict(populate_by_name=True)
