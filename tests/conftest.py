"""Shared fixtures for kobo_prep tests."""

from pathlib import Path
from typing import List, Sequence

import pandas as pd
import pytest


SCENARIO_COLUMNS = ["Project", "X_validation_status", "X_Capture.your.location_lat", "Photo1"]
SCENARIO_ROWS = [
    ("funaction", "Approved", "46.01", "img.jpg"),
    ("other", "Not Approved", "45.9", "img2.jpg"),
]


def write_export(path: Path, columns: Sequence[str], rows: List[Sequence[str]]) -> Path:
    """Write a ";"-separated export the way the survey tool does."""
    lines = [";".join(columns)]
    lines.extend(";".join(row) for row in rows)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def scenario_export(tmp_path):
    """Raw export with one approved FUNACTION record and one rejected one."""
    return write_export(tmp_path / "kobo_export.csv", SCENARIO_COLUMNS, SCENARIO_ROWS)


@pytest.fixture
def survey_df():
    """In-memory table with project and validation status columns."""
    return pd.DataFrame({
        "Project": ["funaction", "FunAction", "pilot", "funaction", "other", "funaction"],
        "X_validation_status": [
            "Approved",
            "Not Approved",
            "Approved",
            "On Hold",
            "approved",
            "Validation: not approved (GPS)",
        ],
        "site": ["S1", "S2", "S3", "S4", "S5", "S6"],
    })


@pytest.fixture
def export_writer():
    """Helper that writes a raw export file."""
    return write_export
