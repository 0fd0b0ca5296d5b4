"""
Shared test fixtures for the GREnrich test suite.
"""

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from grenrich.core.catalog import AnnotationCatalog
from grenrich.core.intervals import IntervalSet

# ============================================================================
# Interval sets
# ============================================================================


@pytest.fixture
def sample_regions():
    """A small region table (1-based, inclusive)."""
    return pd.DataFrame({
        "chr": ["chr1", "chr1", "chr2", "chr2", "chr3"],
        "start": [1000, 5000, 2000, 8000, 3000],
        "end": [2000, 6000, 3000, 9000, 4000],
    })


@pytest.fixture
def overlapping_regions():
    """Two sets of intervals with known overlaps."""
    query = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr2"],
        "start": [100, 500, 200],
        "end": [300, 700, 400],
    })
    subject = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr3"],
        "start": [250, 800, 100],
        "end": [350, 900, 300],
    })
    return query, subject


@pytest.fixture
def single_region_data():
    """One region at chr1:100-200."""
    return IntervalSet.from_arrays(["chr1"], [100], [200])


@pytest.fixture
def wide_background():
    """Background chr1:1-1000."""
    return IntervalSet.from_arrays(["chr1"], [1], [1000])


@pytest.fixture
def small_catalog():
    """Catalog with one category inside the data region and one far from it."""
    return AnnotationCatalog({
        "X": IntervalSet.from_arrays(["chr1"], [150], [160]),
        "Y": IntervalSet.from_arrays(["chr1"], [500], [510]),
    })


@pytest.fixture
def enrichment_inputs():
    """Data concentrated on category A's intervals across two chromosomes."""
    data = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr1", "chr2", "chr2"],
        "start": [1100, 3100, 6100, 1100, 4100],
        "end": [1200, 3200, 6200, 1200, 4200],
    })
    annotation = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr1", "chr2", "chr2", "chr1", "chr2"],
        "start": [1000, 3000, 6000, 1000, 4000, 8000, 8000],
        "end": [1300, 3300, 6300, 1300, 4300, 9000, 9000],
        "label": ["A", "A", "A", "A", "A", "B", "B"],
    })
    background = pd.DataFrame({
        "chr": ["chr1", "chr2"],
        "start": [1, 1],
        "end": [10000, 10000],
    })
    return data, annotation, background


# ============================================================================
# Temporary files
# ============================================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_bed_file(temp_dir):
    """Create a temporary BED file (0-based starts) for testing."""
    bed_path = temp_dir / "test_regions.bed"
    bed_content = """chr1\t999\t2000
chr1\t4999\t6000
chr2\t1999\t3000"""
    bed_path.write_text(bed_content)
    return bed_path


@pytest.fixture
def sample_annotation_file(temp_dir):
    """Create a temporary labelled annotation file."""
    path = temp_dir / "annotation.txt"
    path.write_text(
        "# chrom\tstart\tend\tlabel\n"
        "chr1\t100\t200\tTFBS\n"
        "chr1\t150\t300\tTFBS\n"
        "chr2\t500\t600\tEnhancer\n"
    )
    return path


@pytest.fixture
def empty_bed_file(temp_dir):
    """Create an empty BED file."""
    bed_path = temp_dir / "empty.bed"
    bed_path.write_text("")
    return bed_path


@pytest.fixture
def malformed_bed_file(temp_dir):
    """Create a BED file with invalid rows."""
    bed_path = temp_dir / "malformed.bed"
    bed_content = """chr1\tnot_a_number\t2000
chr2\t3000\talso_bad
chr3\t100\t200"""
    bed_path.write_text(bed_content)
    return bed_path


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def test_db_url():
    """In-memory SQLite database URL for testing."""
    return "sqlite:///:memory:"


@pytest.fixture
def db_engine(test_db_url):
    """Create a test database engine.

    Uses StaticPool so that all connections share the same in-memory
    SQLite database (otherwise each connection gets its own empty DB).
    """
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool
    from grenrich.models.database import Base

    engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(db_engine):
    """Create a test database session."""
    from sqlalchemy.orm import sessionmaker

    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.close()


# ============================================================================
# FastAPI test client
# ============================================================================


@pytest.fixture
def api_client(db_engine, temp_dir, monkeypatch):
    """Create a FastAPI test client with a test database and results directory."""
    from fastapi.testclient import TestClient
    from sqlalchemy.orm import sessionmaker

    from grenrich.config import settings
    from grenrich.main import app, get_db, get_session_factory

    TestSession = sessionmaker(bind=db_engine)
    monkeypatch.setattr(settings, "results_dir", temp_dir / "results")

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSession
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
