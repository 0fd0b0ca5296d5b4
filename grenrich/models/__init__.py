"""Database models and Pydantic schemas."""

from .database import Base, Job, init_db
from .schemas import (
    EnrichmentParams,
    EnrichmentRecord,
    EnrichmentResponse,
    JobCreate,
    JobListResponse,
    JobResponse,
    JobStatus,
    RegionEnrichmentRequest,
)

__all__ = [
    "Base",
    "Job",
    "init_db",
    "EnrichmentParams",
    "EnrichmentRecord",
    "EnrichmentResponse",
    "JobCreate",
    "JobListResponse",
    "JobResponse",
    "JobStatus",
    "RegionEnrichmentRequest",
]
