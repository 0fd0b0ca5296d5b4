"""
FastAPI application for GREnrich.

Provides REST API endpoints for:
- Synchronous region enrichment
- Job management (submit, status, cancel)
- Results retrieval
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings, MethodConfig
from .core.exceptions import AnalysisError, ConfigurationError, FileFormatError, ValidationError
from .models.database import init_db, Job, JobStatus as DBJobStatus, JobType
from .models.schemas import (
    EnrichmentResponse, RegionEnrichmentRequest,
    JobCreate, JobResponse, JobListResponse,
)
from .workers.executor import (
    config_from_request, execute_job, register_job, request_cancel, REQUEST_KEYS
)
from .core.enrichment import RegionEnrichmentAnalyzer

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Database setup
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting GREnrich API...")
    settings.ensure_directories()
    init_db(engine)
    logger.info("Database initialized")
    yield
    # Shutdown
    logger.info("Shutting down GREnrich API...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="API for sampling-based enrichment of genomic regions in annotation categories",
    version=settings.app_version,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency for database session
def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory used by background jobs (they outlive the request session)."""
    return SessionLocal


# ============================================================================
# Error handling
# ============================================================================

@app.exception_handler(ConfigurationError)
@app.exception_handler(FileFormatError)
@app.exception_handler(ValidationError)
async def input_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    logger.error(f"Enrichment failed: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/config")
async def get_config():
    """Get application configuration."""
    return {
        "input_formats": list(MethodConfig.INPUT_FORMATS.keys()),
        "p_adjust_methods": list(MethodConfig.P_ADJUST_METHODS.keys()),
        "default_num_samples": settings.default_num_samples,
        "default_gap_max": settings.default_gap_max,
        "default_p_adjust_method": settings.default_p_adjust_method,
        "default_parallel": settings.default_parallel,
    }


# ============================================================================
# Enrichment Endpoints
# ============================================================================

@app.post("/enrichment/regions", response_model=EnrichmentResponse)
def run_enrichment(request: RegionEnrichmentRequest):
    """Run a region enrichment synchronously and return the table."""
    config = config_from_request(request.overrides())
    results = RegionEnrichmentAnalyzer().run(
        request.data,
        request.annotation,
        background=request.background,
        config=config,
    )
    return EnrichmentResponse(**results.to_dict())


# ============================================================================
# Job Endpoints
# ============================================================================

@app.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    status: str = None,
    job_type: str = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """List all jobs with optional filtering."""
    query = db.query(Job).order_by(Job.created_at.desc())

    try:
        if status:
            query = query.filter(Job.status == DBJobStatus(status))
        if job_type:
            query = query.filter(Job.job_type == JobType(job_type))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = query.count()
    jobs = query.offset(skip).limit(limit).all()

    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=total
    )


@app.post("/jobs", response_model=JobResponse)
async def create_job(
    job: JobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """Create and submit a new enrichment job."""
    # Reject bad parameters before anything is queued
    config_from_request(job.request.overrides()).validate()

    db_job = Job(
        name=job.name,
        job_type=JobType(job.job_type.value),
        status=DBJobStatus.PENDING,
        config=job.request.model_dump(mode="json", exclude_none=True)
    )
    db.add(db_job)
    db.commit()
    db.refresh(db_job)

    register_job(db_job.id)
    background_tasks.add_task(execute_job, db_job.id, session_factory, settings.results_dir)

    return JobResponse.model_validate(db_job)


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, db: Session = Depends(get_db)):
    """Get job status and details."""
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.model_validate(job)


@app.post("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, db: Session = Depends(get_db)):
    """Cancel a pending or running job."""
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if job.status not in [DBJobStatus.PENDING, DBJobStatus.RUNNING]:
        raise HTTPException(status_code=400, detail="Job cannot be cancelled")

    job.status = DBJobStatus.CANCELLED
    db.commit()
    request_cancel(job_id)

    return {"message": "Job cancelled"}


# ============================================================================
# Results Endpoints
# ============================================================================

@app.get("/results/{job_id}")
async def get_results(job_id: str, db: Session = Depends(get_db)):
    """Get enrichment results for a completed job."""
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if job.status != DBJobStatus.COMPLETED:
        raise HTTPException(
            status_code=400,
            detail=f"Job is not completed (status: {job.status.value})"
        )

    return {
        "job_id": job.id,
        "job_type": job.job_type.value,
        "parameters": {k: v for k, v in (job.config or {}).items() if k not in REQUEST_KEYS},
        "results": job.results,
        "output_dir": job.output_dir
    }


# ============================================================================
# Run with uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "grenrich.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
