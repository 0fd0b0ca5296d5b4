"""
SQLAlchemy database models for GREnrich.

Defines tables for:
- Jobs: Track enrichment job status, configuration and results
"""

import uuid
from typing import Dict, Any
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import enum

Base = declarative_base()


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobType(str, enum.Enum):
    """Type of analysis job."""
    REGION_ENRICHMENT = "region_enrichment"


class Job(Base):
    """Job tracking table."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    job_type = Column(SQLEnum(JobType), nullable=False, default=JobType.REGION_ENRICHMENT)
    status = Column(SQLEnum(JobStatus), default=JobStatus.PENDING)

    # Timestamps
    created_at = Column(DateTime, default=func.now())
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Request and results
    config = Column(JSON, nullable=True)  # Enrichment request (inputs and parameters)
    results = Column(JSON, nullable=True)  # Summary and enrichment records
    output_dir = Column(String, nullable=True)  # Saved tables

    # Progress tracking
    progress = Column(Float, default=0.0)  # 0-100
    current_step = Column(String, nullable=True)
    total_steps = Column(Integer, nullable=True)

    # Error handling
    error_message = Column(Text, nullable=True)
    error_traceback = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Job(id={self.id}, name={self.name}, status={self.status})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "job_type": self.job_type.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "progress": self.progress,
            "current_step": self.current_step,
            "error_message": self.error_message
        }


# Database initialization functions
def init_db(engine):
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
