"""
FUNACTION KoboToolbox export preparation.

Usage:
    from kobo_prep import prepare_data

    df = prepare_data("kobo_export.csv", "fundata.csv", project_filter="funaction")
"""

from kobo_prep.preprocessing.pipeline import (
    PreparedData,
    PreprocessingConfig,
    PreprocessingPipeline,
    prepare_data,
)
from kobo_prep.exceptions import (
    ColumnCollisionError,
    ConfigurationError,
    InputNotFoundError,
    KoboPrepError,
    WriteError,
)

__all__ = [
    "prepare_data",
    "PreparedData",
    "PreprocessingConfig",
    "PreprocessingPipeline",
    "KoboPrepError",
    "InputNotFoundError",
    "WriteError",
    "ColumnCollisionError",
    "ConfigurationError",
]
