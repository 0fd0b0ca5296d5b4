"""
Configuration settings for GREnrich.

Settings are read from environment variables (prefix ``GRENRICH_``) or a
``.env`` file, and provide the defaults of every enrichment run.
"""

from pathlib import Path
from typing import Dict, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class MethodConfig:
    """Supported input encodings and multiple-testing procedures."""

    INPUT_FORMATS = {
        "data.frame": {
            "description": "chromosome, start and optional end columns, 1-based",
            "coordinates": "1-based",
        },
        "bed": {
            "description": "as data.frame, with 0-based start positions",
            "coordinates": "0-based",
        },
        "chr:start-end": {
            "description": "a single 'chr:start-end' (or 'chr:pos') column",
            "coordinates": "1-based",
        },
        "GRanges": {
            "description": "pre-built IntervalSet / AnnotationCatalog objects",
            "coordinates": "1-based",
        },
    }

    P_ADJUST_METHODS = {
        "BH": {"controls": "FDR", "description": "Benjamini-Hochberg step-up"},
        "BY": {"controls": "FDR", "description": "Benjamini-Yekutieli, arbitrary dependence"},
        "bonferroni": {"controls": "FWER", "description": "Bonferroni single-step"},
        "holm": {"controls": "FWER", "description": "Holm step-down"},
        "hochberg": {"controls": "FWER", "description": "Hochberg step-up"},
        "hommel": {"controls": "FWER", "description": "Hommel closed testing"},
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "GREnrich"
    app_version: str = "0.1.0"
    debug: bool = False

    # Paths
    base_dir: Path = Field(default_factory=lambda: Path(__file__).parent.parent)
    results_dir: Path = Field(default_factory=lambda: Path(__file__).parent.parent / "results")

    # Database
    database_url: str = "sqlite:///./grenrich.db"

    # Default enrichment parameters
    default_format: str = "data.frame"
    default_background_annotatable_only: bool = False
    default_num_samples: int = 1000
    default_gap_max: float = 50000
    default_max_distance: Optional[int] = None
    default_p_adjust_method: str = "BH"
    default_parallel: bool = True
    default_multicores: Optional[int] = None  # half of the available cores
    default_backend: str = "thread"
    default_seed: Optional[int] = None
    run_timeout: Optional[float] = None  # seconds, whole run

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    class Config:
        env_prefix = "GRENRICH_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self.results_dir.mkdir(parents=True, exist_ok=True)

    def get_format_config(self, fmt: str) -> Dict:
        """Get the description of an input format."""
        if fmt not in MethodConfig.INPUT_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}. Supported: {list(MethodConfig.INPUT_FORMATS.keys())}")
        return MethodConfig.INPUT_FORMATS[fmt]


# Global settings instance
settings = Settings()
