"""
Pydantic schemas for API request/response validation.

Defines schemas for:
- Enrichment requests and parameters
- Enrichment results
- Job management
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, Field
from enum import Enum


# Enums for validation
class JobStatusEnum(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobTypeEnum(str, Enum):
    REGION_ENRICHMENT = "region_enrichment"


class InputFormatEnum(str, Enum):
    DATA_FRAME = "data.frame"
    BED = "bed"
    RANGE_STRING = "chr:start-end"


class PAdjustMethodEnum(str, Enum):
    BH = "BH"
    BY = "BY"
    BONFERRONI = "bonferroni"
    HOLM = "holm"
    HOCHBERG = "hochberg"
    HOMMEL = "hommel"


# One table row: ["chr1", 100, 200] or ["chr1:100-200"]
RegionRow = List[Union[str, int, float]]


# ============================================================================
# Enrichment Schemas
# ============================================================================


class EnrichmentParams(BaseModel):
    """Run parameters; unset values fall back to the server settings."""

    format: Optional[InputFormatEnum] = Field(default=None, description="Input encoding of all tables")
    background_annotatable_only: Optional[bool] = Field(
        default=None, description="Restrict the background to annotation-covered bases"
    )
    num_samples: Optional[int] = Field(default=None, ge=1, description="Number of null samples")
    gap_max: Optional[float] = Field(default=None, ge=0, description="Max distance to eligible islands")
    max_distance: Optional[int] = Field(default=None, ge=0, description="Max start displacement")
    p_adjust_method: Optional[PAdjustMethodEnum] = None
    parallel: Optional[bool] = None
    multicores: Optional[int] = Field(default=None, ge=1)
    seed: Optional[int] = Field(default=None, description="Seed for reproducible sampling")

    def overrides(self) -> Dict[str, Any]:
        """Set parameters as plain values, ready for EnrichmentConfig."""
        return self.model_dump(
            include=set(EnrichmentParams.model_fields), exclude_none=True, mode="json"
        )


class RegionEnrichmentRequest(EnrichmentParams):
    """Schema for an enrichment request."""

    data: List[RegionRow] = Field(..., description="Input regions")
    annotation: Union[Dict[str, List[RegionRow]], List[RegionRow]] = Field(
        ..., description="Category -> regions, or a flat table with a label column"
    )
    background: Optional[List[RegionRow]] = Field(default=None, description="Background regions")


class EnrichmentRecord(BaseModel):
    """One annotation category in an enrichment result."""

    name: str
    nAnno: int
    nOverlap: int
    fc: float
    zscore: float
    pvalue: float = Field(..., ge=0, le=1)
    adjp: float = Field(..., ge=0, le=1)
    nData: int
    nBG: int
    nExpect: Optional[float] = None


class EnrichmentResponse(BaseModel):
    """Response for an enrichment run."""

    num_samples: int
    data_nbases: int
    background_nbases: int
    n_categories: int
    n_significant: int
    runtime_seconds: float
    results: List[EnrichmentRecord]


# ============================================================================
# Job Schemas
# ============================================================================


class JobBase(BaseModel):
    """Base job schema."""

    name: str = Field(..., description="Job name")
    job_type: JobTypeEnum = Field(default=JobTypeEnum.REGION_ENRICHMENT, description="Type of analysis")


class JobCreate(JobBase):
    """Schema for creating a job."""

    request: RegionEnrichmentRequest


class JobResponse(JobBase):
    """Schema for job response."""

    id: str
    status: JobStatusEnum
    progress: float = 0.0
    current_step: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    output_dir: Optional[str] = None

    class Config:
        from_attributes = True


class JobStatus(BaseModel):
    """Schema for job status updates."""

    id: str
    status: JobStatusEnum
    progress: float
    current_step: Optional[str] = None
    error_message: Optional[str] = None


class JobListResponse(BaseModel):
    """Response for listing jobs."""

    jobs: List[JobResponse]
    total: int
