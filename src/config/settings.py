"""
Configuration settings for schedule analysis.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _int_list(value: str) -> list[int]:
    return [int(v) for v in value.split(',') if v.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.parent.parent
    OUTPUT_DIR = Path(os.getenv('OUTPUT_DIR', str(PROJECT_ROOT / 'data' / 'output')))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', '')          # empty = console only

    # ============================================================================
    # CPM
    # ============================================================================
    CRITICAL_TOLERANCE_DAYS = int(os.getenv('CRITICAL_TOLERANCE_DAYS', '1'))
    NEAR_CRITICAL_DAYS = int(os.getenv('NEAR_CRITICAL_DAYS', '5'))

    # ============================================================================
    # Checker thresholds (work days)
    # ============================================================================
    LONG_LAG_DAYS = int(os.getenv('LONG_LAG_DAYS', '20'))
    LARGE_MARGIN_DAYS = int(os.getenv('LARGE_MARGIN_DAYS', '20'))
    LONG_DURATION_DAYS = int(os.getenv('LONG_DURATION_DAYS', '20'))

    # ============================================================================
    # Monte Carlo
    # ============================================================================
    MC_ITERATIONS = int(os.getenv('MC_ITERATIONS', '1000'))
    MC_SEED = int(os.getenv('MC_SEED')) if os.getenv('MC_SEED') else None
    MC_WORKERS = int(os.getenv('MC_WORKERS', '1'))
    MC_CONFIDENCE_LEVELS = _int_list(os.getenv('MC_CONFIDENCE_LEVELS', '10,50,80,90'))

    @classmethod
    def validate_required_settings(cls) -> list[str]:
        """
        Validate settings values.
        Returns list of problems found.
        """
        problems = []
        for name in ('LONG_LAG_DAYS', 'LARGE_MARGIN_DAYS', 'LONG_DURATION_DAYS',
                     'CRITICAL_TOLERANCE_DAYS', 'NEAR_CRITICAL_DAYS'):
            if getattr(cls, name) < 0:
                problems.append(f'{name} must be non-negative')
        if cls.MC_ITERATIONS < 1:
            problems.append('MC_ITERATIONS must be at least 1')
        if cls.MC_WORKERS < 1:
            problems.append('MC_WORKERS must be at least 1')
        if any(not 0 <= p <= 100 for p in cls.MC_CONFIDENCE_LEVELS):
            problems.append('MC_CONFIDENCE_LEVELS must be within 0-100')
        return problems


# Create settings instance
settings = Settings()
