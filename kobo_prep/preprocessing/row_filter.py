"""
SQL-based Row Filter for survey exports.

Filters rows from DataFrames using SQL conditions via DuckDB. The two
built-in filters (project allow-list, approval status) are expressed as
FilterConfig conditions like any user-supplied filter.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import duckdb
import pandas as pd

from kobo_prep.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALL_PROJECTS = "all"
PROJECT_COLUMN = "Project"
STATUS_COLUMN = "X_validation_status"
BANNED_STATUSES = ("not approved", "on hold")

# Row position column added to the table DuckDB sees
POSITION_COLUMN = "__kobo_prep_row"


@dataclass
class FilterConfig:
    """Configuration for a row filter."""
    name: str
    condition: str  # SQL WHERE condition
    description: Optional[str] = None
    enabled: bool = True
    columns: List[str] = field(default_factory=list)  # columns the condition needs

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterConfig":
        """Create from dictionary (from YAML)."""
        return cls(
            name=data.get("name", "unnamed_filter"),
            condition=data["condition"],
            description=data.get("description"),
            enabled=data.get("enabled", True),
            columns=list(data.get("columns", [])),
        )


@dataclass
class FilterResult:
    """Result of applying filters to a DataFrame."""
    df: pd.DataFrame
    filters_applied: int
    rows_before: int
    rows_after: int
    rows_removed: int
    filter_details: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def quote_identifier(name: str) -> str:
    """Quote a column name for use in a DuckDB condition."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal for use in a DuckDB condition."""
    return "'" + value.replace("'", "''") + "'"


def _normalize_names(names: Union[str, Iterable[str], None]) -> List[str]:
    if names is None:
        return []
    if isinstance(names, str):
        names = [names]
    return [n.strip() for n in names if n and n.strip()]


def is_all_projects(names: Union[str, Iterable[str], None]) -> bool:
    """True if the project selection is the wildcard "all"."""
    return any(n.lower() == ALL_PROJECTS for n in _normalize_names(names))


class RowFilter:
    """
    Filters DataFrame rows using SQL conditions.

    Uses DuckDB as an in-memory SQL engine. Filters are applied in order
    and keep the relative order of the remaining rows.

    Usage:
        row_filter = RowFilter()

        configs = [
            create_project_filter(["funaction"]),
            create_status_filter(),
            FilterConfig(
                name="only_2024",
                condition="today LIKE '2024-%'",
                columns=["today"],
            ),
        ]

        result = row_filter.apply_all(df, configs)
        print(f"Removed {result.rows_removed} rows")
    """

    def __init__(self):
        """Initialize the row filter."""
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create DuckDB connection."""
        if self._conn is None:
            self._conn = duckdb.connect(":memory:")
        return self._conn

    def apply_all(
        self,
        df: pd.DataFrame,
        configs: List[Union[FilterConfig, Dict[str, Any]]],
        table_name: str = "data",
    ) -> FilterResult:
        """
        Apply all filters to the DataFrame.

        Each filter operates on the result of the previous filter. A filter
        whose required columns are missing is skipped with a warning.

        Args:
            df: Input DataFrame
            configs: List of filter configurations
            table_name: Name for the temporary table in SQL

        Returns:
            FilterResult with the filtered DataFrame
        """
        result_df = df
        rows_before = len(result_df)
        filters_applied = 0
        filter_details = []
        errors = []

        for config in configs:
            if isinstance(config, dict):
                config = FilterConfig.from_dict(config)

            if not config.enabled:
                continue

            missing = [c for c in config.columns if c not in result_df.columns]
            if missing:
                logger.warning(
                    f"Skipping filter '{config.name}': column(s) not found: {missing}"
                )
                continue

            try:
                result_df, rows_removed = self.apply_filter(
                    result_df, config, table_name
                )
            except duckdb.Error as e:
                error_msg = f"Error applying filter '{config.name}': {e}"
                errors.append(error_msg)
                logger.warning(error_msg)
                continue

            filters_applied += 1
            filter_details.append({
                "name": config.name,
                "condition": config.condition,
                "rows_removed": rows_removed,
                "rows_remaining": len(result_df),
            })

            logger.info(
                f"Applied filter '{config.name}': "
                f"removed {rows_removed} rows, {len(result_df)} remaining"
            )

        rows_after = len(result_df)

        return FilterResult(
            df=result_df,
            filters_applied=filters_applied,
            rows_before=rows_before,
            rows_after=rows_after,
            rows_removed=rows_before - rows_after,
            filter_details=filter_details,
            errors=errors,
        )

    def apply_filter(
        self,
        df: pd.DataFrame,
        config: FilterConfig,
        table_name: str = "data",
    ) -> tuple:
        """
        Apply a single filter to the DataFrame.

        DuckDB only evaluates the condition and returns the positions of
        the matching rows. The rows are then taken from df itself, so
        column names, dtypes and the index are never rebuilt by DuckDB
        (it would rename columns differing only by case).

        Returns:
            Tuple of (filtered_df, rows_removed)
        """
        rows_before = len(df)

        # Sanitize table name
        safe_table_name = re.sub(r'[^a-zA-Z0-9_]', '_', table_name)

        indexed = df.assign(**{POSITION_COLUMN: range(rows_before)})
        self.connection.register(safe_table_name, indexed)

        try:
            condition = config.condition.strip()

            # Remove leading WHERE if present
            if condition.upper().startswith("WHERE "):
                condition = condition[6:]

            position = quote_identifier(POSITION_COLUMN)
            query = (
                f"SELECT {position} FROM {safe_table_name} "
                f"WHERE {condition} ORDER BY {position}"
            )
            positions = [row[0] for row in self.connection.execute(query).fetchall()]

        finally:
            self.connection.unregister(safe_table_name)

        result_df = df.iloc[positions]
        return result_df, rows_before - len(result_df)

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def create_project_filter(
    names: Union[str, Sequence[str]],
    column: str = PROJECT_COLUMN,
) -> FilterConfig:
    """
    Create a filter keeping rows whose project is one of names.

    Matching is case-insensitive and ignores surrounding whitespace.
    """
    project_names = _normalize_names(names)
    if not project_names:
        raise ConfigurationError(
            "Project filter needs at least one project name or 'all'",
            field="project_filter",
        )

    values = ", ".join(quote_literal(n.lower()) for n in project_names)
    condition = f"lower(trim(CAST({quote_identifier(column)} AS VARCHAR))) IN ({values})"

    return FilterConfig(
        name="project",
        condition=condition,
        description=f"Keep only rows where {column} is one of: {project_names}",
        columns=[column],
    )


def create_status_filter(
    column: str = STATUS_COLUMN,
    banned: Sequence[str] = BANNED_STATUSES,
) -> FilterConfig:
    """
    Create a filter dropping rows whose status contains a banned phrase.

    The status is lower-cased and tested for substring containment, so
    "Not Approved (GPS)" is excluded as well as "Not Approved".
    """
    status = f"lower(coalesce(CAST({quote_identifier(column)} AS VARCHAR), ''))"
    tests = [f"contains({status}, {quote_literal(b.lower())})" for b in banned]
    condition = f"NOT ({' OR '.join(tests)})" if tests else "TRUE"

    return FilterConfig(
        name="approval_status",
        condition=condition,
        description=f"Exclude rows where {column} contains any of: {list(banned)}",
        columns=[column],
    )


def filter_by_project(
    df: pd.DataFrame,
    names: Union[str, Sequence[str]],
    column: str = PROJECT_COLUMN,
) -> pd.DataFrame:
    """Keep rows of the given project(s); "all" returns the table unchanged."""
    if is_all_projects(names):
        return df

    row_filter = RowFilter()
    try:
        return row_filter.apply_all(df, [create_project_filter(names, column)]).df
    finally:
        row_filter.close()


def filter_approved(
    df: pd.DataFrame,
    column: str = STATUS_COLUMN,
    banned: Sequence[str] = BANNED_STATUSES,
) -> pd.DataFrame:
    """Drop rows whose validation status is not approved or on hold."""
    row_filter = RowFilter()
    try:
        return row_filter.apply_all(df, [create_status_filter(column, banned)]).df
    finally:
        row_filter.close()
