"""
Configuration settings for survey data preparation.
Uses pydantic-settings for environment variable loading.
"""

import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Preparation settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KOBO_PREP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # CSV format
    delimiter: str = ";"
    delimiter_substitute: str = ","
    line_break_substitute: str = " "
    encoding: str = "utf-8"

    # Defaults for prepare_data()
    default_output_filename: str = "fundata.csv"
    default_project: str = "funaction"
    default_rule_set: str = "funaction"

    # Rule sets (YAML)
    rules_dir: Path = Path(__file__).parent.parent / "schemas"

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts that call the pipeline."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
