"""
Background job executor for GREnrich.

Executes enrichment jobs in the background using FastAPI BackgroundTasks.
Updates job status, progress and results in the database as the run
progresses, and honours cancellation requests made while it is running.
"""

import logging
import threading
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import settings
from ..core.enrichment import EnrichmentConfig, RegionEnrichmentAnalyzer
from ..core.exceptions import RunAbortedError

logger = logging.getLogger(__name__)

# Cancel events of jobs that are queued or running, keyed by job ID
_cancel_events: Dict[str, threading.Event] = {}
_registry_lock = threading.Lock()

REQUEST_KEYS = ("data", "annotation", "background")


def register_job(job_id: str) -> threading.Event:
    """Create the cancel event for a job about to be queued."""
    with _registry_lock:
        return _cancel_events.setdefault(job_id, threading.Event())


def request_cancel(job_id: str) -> bool:
    """Signal a queued or running job to stop. Returns False if it is unknown."""
    with _registry_lock:
        event = _cancel_events.get(job_id)
    if event is None:
        return False
    event.set()
    return True


def _release_job(job_id: str) -> None:
    with _registry_lock:
        _cancel_events.pop(job_id, None)


def config_from_request(request: Dict[str, Any], **overrides) -> EnrichmentConfig:
    """Build an EnrichmentConfig from a stored request, filling in settings defaults."""
    params = {k: v for k, v in request.items() if k not in REQUEST_KEYS}
    params.update(overrides)
    return EnrichmentConfig.from_settings(settings, **params)


def execute_job(job_id: str, db_factory, results_dir: Optional[Path] = None):
    """Execute an enrichment job in the background.

    Parameters
    ----------
    job_id : str
        The ID of the job to execute.
    db_factory : callable
        A callable that returns a new SQLAlchemy session.
    results_dir : Path, optional
        Parent directory for the job's saved tables.
    """
    from ..models.database import Job, JobStatus, JobType

    db = db_factory()
    cancel_event = register_job(job_id)
    try:
        job = db.query(Job).filter(Job.id == job_id).first()
        if not job:
            logger.error(f"Job {job_id} not found")
            return
        if job.status == JobStatus.CANCELLED:
            logger.info(f"Job {job_id} was cancelled before it started")
            return

        # Mark as running
        job.status = JobStatus.RUNNING
        job.started_at = datetime.now(timezone.utc)
        job.current_step = "Initializing"
        db.commit()

        logger.info(f"Starting job {job_id}: {job.name} (type={job.job_type.value})")

        handlers = {
            JobType.REGION_ENRICHMENT: _run_region_enrichment,
        }

        handler = handlers.get(job.job_type)
        if not handler:
            raise NotImplementedError(f"No handler for job type: {job.job_type.value}")

        results = handler(job, db, cancel_event, results_dir)

        # Mark as completed
        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.now(timezone.utc)
        job.progress = 100.0
        job.current_step = "Done"
        job.results = results
        db.commit()

        logger.info(f"Job {job_id} completed successfully")

    except RunAbortedError as e:
        db.rollback()
        job = db.query(Job).filter(Job.id == job_id).first()
        if job:
            job.status = JobStatus.CANCELLED if cancel_event.is_set() else JobStatus.FAILED
            job.completed_at = datetime.now(timezone.utc)
            job.error_message = str(e)
            db.commit()
        logger.warning(f"Job {job_id} aborted: {e}")

    except Exception as e:
        logger.error(f"Job {job_id} failed: {e}")
        db.rollback()
        job = db.query(Job).filter(Job.id == job_id).first()
        if job:
            job.status = JobStatus.FAILED
            job.completed_at = datetime.now(timezone.utc)
            job.error_message = str(e)
            job.error_traceback = traceback.format_exc()
            db.commit()
    finally:
        _release_job(job_id)
        db.close()


def _update_progress(job, db, progress: float, step: str):
    """Update job progress in the database."""
    job.progress = progress
    job.current_step = step
    db.commit()


def _run_region_enrichment(job, db, cancel_event: threading.Event, results_dir: Optional[Path]) -> Dict[str, Any]:
    """Execute a region enrichment job."""
    request = job.config or {}
    if "data" not in request or "annotation" not in request:
        raise ValueError("Enrichment job needs 'data' and 'annotation'")

    output_dir = None
    if results_dir is not None:
        output_dir = str(Path(results_dir) / job.id)
        job.output_dir = output_dir

    config = config_from_request(request, output_dir=output_dir)

    _update_progress(job, db, 5, "Importing regions")

    # Sampling spans 10-90%; commit only on whole 5% steps
    last_reported = [0]

    def on_progress(done: int, total: int):
        pct = 10 + 80 * done / total
        if pct - last_reported[0] >= 5 or done == total:
            last_reported[0] = pct
            _update_progress(job, db, round(pct, 1), f"Sampling {done}/{total}")

    analyzer = RegionEnrichmentAnalyzer()
    results = analyzer.run(
        request["data"],
        request["annotation"],
        background=request.get("background"),
        config=config,
        cancel_event=cancel_event,
        progress=on_progress,
    )

    _update_progress(job, db, 95, "Saving results")

    summary = results.to_dict()
    summary["output_dir"] = output_dir
    return summary
