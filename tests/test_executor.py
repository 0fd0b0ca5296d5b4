"""
Unit tests for the background job executor.
"""

import pytest
from sqlalchemy.orm import sessionmaker

from grenrich.models.database import Job, JobStatus, JobType
from grenrich.workers.executor import (
    config_from_request,
    execute_job,
    register_job,
    request_cancel,
)


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


def _add_job(session_factory, config, status=JobStatus.PENDING):
    db = session_factory()
    job = Job(name="job", job_type=JobType.REGION_ENRICHMENT, status=status, config=config)
    db.add(job)
    db.commit()
    job_id = job.id
    db.close()
    return job_id


def _get_job(session_factory, job_id):
    db = session_factory()
    job = db.query(Job).filter(Job.id == job_id).first()
    db.expunge(job)
    db.close()
    return job


@pytest.fixture
def request_config():
    return {
        "data": [["chr1", 120, 130]],
        "annotation": {"A": [["chr1", 100, 200]], "B": [["chr1", 400, 500]]},
        "num_samples": 10,
        "seed": 1,
        "parallel": False,
    }


class TestExecuteJob:
    """Tests for execute_job."""

    def test_completes(self, session_factory, request_config, temp_dir):
        job_id = _add_job(session_factory, request_config)
        execute_job(job_id, session_factory, results_dir=temp_dir)

        job = _get_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.current_step == "Done"
        assert job.results["num_samples"] == 10
        assert job.output_dir == str(temp_dir / job_id)
        assert (temp_dir / job_id / "enrichment.tsv").exists()

    def test_without_results_dir(self, session_factory, request_config):
        job_id = _add_job(session_factory, request_config)
        execute_job(job_id, session_factory)
        job = _get_job(session_factory, job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.output_dir is None

    def test_missing_inputs_fail(self, session_factory):
        job_id = _add_job(session_factory, {"num_samples": 5})
        execute_job(job_id, session_factory)
        job = _get_job(session_factory, job_id)
        assert job.status == JobStatus.FAILED
        assert "annotation" in job.error_message
        assert job.error_traceback

    def test_cancelled_before_start(self, session_factory, request_config):
        job_id = _add_job(session_factory, request_config, status=JobStatus.CANCELLED)
        execute_job(job_id, session_factory)
        job = _get_job(session_factory, job_id)
        assert job.status == JobStatus.CANCELLED
        assert job.started_at is None

    def test_cancel_signal_aborts_run(self, session_factory, request_config):
        job_id = _add_job(session_factory, request_config)
        register_job(job_id)
        assert request_cancel(job_id)

        execute_job(job_id, session_factory)
        job = _get_job(session_factory, job_id)
        assert job.status == JobStatus.CANCELLED
        assert "cancelled" in job.error_message

    def test_unknown_job(self, session_factory):
        execute_job("missing", session_factory)
        assert not request_cancel("missing")


class TestConfigFromRequest:
    """Tests for building run configs from stored requests."""

    def test_inputs_excluded_and_defaults_filled(self, request_config):
        config = config_from_request(request_config)
        assert config.num_samples == 10
        assert config.seed == 1
        assert config.p_adjust_method == "BH"

    def test_overrides(self, request_config):
        config = config_from_request(request_config, output_dir="/tmp/out")
        assert config.output_dir == "/tmp/out"
