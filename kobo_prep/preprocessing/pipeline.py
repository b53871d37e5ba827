"""
Preprocessing Pipeline Orchestrator.

Combines loading, row filtering, column renaming, value sanitization and
column pruning into one linear pass over a survey export:

    load -> filter rows -> rename columns -> sanitize values
         -> drop column groups -> persist -> return
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from kobo_prep.core.config import get_settings
from kobo_prep.core.rule_registry import RuleSet, get_rule_registry
from kobo_prep.exceptions import ConfigurationError, InputNotFoundError
from kobo_prep.preprocessing.io import load_table, persist_table
from kobo_prep.preprocessing.pruner import columns_matching, drop_columns_matching
from kobo_prep.preprocessing.renamer import (
    apply_column_overrides,
    apply_rename_rules,
    ensure_unique_columns,
    strip_boundary_noise,
)
from kobo_prep.preprocessing.row_filter import (
    FilterResult,
    RowFilter,
    create_project_filter,
    create_status_filter,
    is_all_projects,
)
from kobo_prep.preprocessing.sanitizer import ValueSanitizer

logger = logging.getLogger(__name__)


@dataclass
class PreprocessingConfig:
    """
    Options for one preparation run.

    Defaults come from Settings (environment / .env).
    """
    project_filter: Union[str, List[str]] = "funaction"
    remove_photo_columns: bool = True
    remove_check_columns: bool = True
    delimiter: str = ";"
    delimiter_substitute: str = ","
    line_break_substitute: str = " "
    encoding: str = "utf-8"

    @classmethod
    def from_settings(cls, **overrides) -> "PreprocessingConfig":
        """Build a config from Settings, with explicit overrides."""
        settings = get_settings()
        values = {
            "project_filter": settings.default_project,
            "delimiter": settings.delimiter,
            "delimiter_substitute": settings.delimiter_substitute,
            "line_break_substitute": settings.line_break_substitute,
            "encoding": settings.encoding,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class PreparedData:
    """
    Result of preparing a survey export.

    Contains the prepared DataFrame and what each stage did to it.
    """
    df: pd.DataFrame
    original_path: Optional[str] = None
    output_path: Optional[str] = None

    filter_result: Optional[FilterResult] = None

    original_rows: int = 0
    final_rows: int = 0
    columns_renamed: Dict[str, str] = field(default_factory=dict)
    columns_sanitized: List[str] = field(default_factory=list)
    columns_dropped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting (without DataFrame)."""
        return {
            "original_path": self.original_path,
            "output_path": self.output_path,
            "original_rows": self.original_rows,
            "final_rows": self.final_rows,
            "final_columns": [str(c) for c in self.df.columns],
            "columns_renamed": self.columns_renamed,
            "columns_sanitized": self.columns_sanitized,
            "columns_dropped": self.columns_dropped,
            "filter_stats": {
                "applied": self.filter_result.filters_applied if self.filter_result else 0,
                "rows_removed": self.filter_result.rows_removed if self.filter_result else 0,
                "errors": self.filter_result.errors if self.filter_result else [],
            },
        }


class PreprocessingPipeline:
    """
    Orchestrates survey export preparation.

    Pipeline stages:
    1. Load (";"-separated, every cell a string)
    2. Row filtering (project allow-list, approval status, extra SQL filters)
    3. Column renaming (overrides, rename rules, noise stripping, final renames)
    4. Value sanitization (output delimiter inside values)
    5. Column pruning (photo / data-check groups)
    6. Persist

    Usage:
        pipeline = PreprocessingPipeline()
        result = pipeline.process(
            "funaction_kobo.csv",
            "out/fundata.csv",
            config=PreprocessingConfig(project_filter=["funaction", "pilot"]),
        )
        print(result.to_dict())
    """

    def __init__(self, rule_set: Optional[Union[str, RuleSet]] = None):
        """
        Initialize the pipeline.

        Args:
            rule_set: RuleSet instance or the name of a bundled rule set
                      (defaults to Settings.default_rule_set)
        """
        if rule_set is None or isinstance(rule_set, str):
            settings = get_settings()
            rule_set = get_rule_registry().get(
                rule_set or settings.default_rule_set
            )
        self.rule_set = rule_set
        self.row_filter = RowFilter()

    def filter_rows(
        self,
        df: pd.DataFrame,
        project_filter: Union[str, Sequence[str]],
    ) -> FilterResult:
        """Apply project, approval status and extra SQL filters."""
        configs = []
        if is_all_projects(project_filter):
            logger.info("Project filter 'all': keeping every project")
        else:
            configs.append(create_project_filter(project_filter, self.rule_set.project_column))

        configs.append(
            create_status_filter(self.rule_set.status_column, self.rule_set.banned_statuses)
        )
        configs.extend(self.rule_set.row_filters)

        return self.row_filter.apply_all(df, configs)

    def rename_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Run the full rename stage and check that final names are unique."""
        original_columns = [str(c) for c in df.columns]

        result = apply_column_overrides(df, self.rule_set.overrides)
        result = apply_rename_rules(result, self.rule_set.rename_rules)
        result = strip_boundary_noise(result)
        result = apply_rename_rules(result, self.rule_set.final_renames)

        ensure_unique_columns(result, original_columns)
        return result

    def drop_column_groups(
        self,
        df: pd.DataFrame,
        remove_photo_columns: bool = True,
        remove_check_columns: bool = True,
    ) -> tuple:
        """
        Drop the enabled column groups.

        Returns:
            Tuple of (pruned_df, dropped column names)
        """
        toggles = {"photo": remove_photo_columns, "checks": remove_check_columns}
        dropped = []

        for group_name, wanted in toggles.items():
            group = self.rule_set.get_group(group_name)
            if not wanted or group is None or not group.enabled:
                continue
            dropped.extend(columns_matching(df, group))
            df = drop_columns_matching(df, group)

        return df, dropped

    def process(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        config: Optional[PreprocessingConfig] = None,
    ) -> PreparedData:
        """
        Prepare a survey export and write it to output_path.

        Args:
            input_path: Path to the raw export
            output_path: Where to write the prepared table
            config: Run options (defaults from Settings)

        Returns:
            PreparedData with the prepared DataFrame and stage details

        Raises:
            InputNotFoundError: Input file does not exist
            ConfigurationError: A row filter condition could not be applied
            ColumnCollisionError: Rename rules produce duplicate names
            WriteError: Output cannot be written
        """
        config = config or PreprocessingConfig.from_settings()
        input_path = Path(input_path)
        output_path = Path(output_path)

        logger.info(f"Preparing {input_path} with rule set '{self.rule_set.name}'")

        # Stage 1: load
        df = load_table(
            input_path,
            config.delimiter,
            config.encoding,
            syntactic_names=self.rule_set.syntactic_names,
        )
        original_rows = len(df)

        # Stage 2: rows
        filter_result = self.filter_rows(df, config.project_filter)
        if filter_result.errors:
            raise ConfigurationError(
                f"Row filters failed, nothing written: {filter_result.errors}",
                field="row_filters",
            )
        df = filter_result.df

        # Stage 3: column names
        before = [str(c) for c in df.columns]
        df = self.rename_columns(df)
        columns_renamed = {
            old: new for old, new in zip(before, df.columns) if old != new
        }
        logger.info(f"Renamed {len(columns_renamed)} of {len(before)} columns")

        # Stage 4: values
        sanitize_result = ValueSanitizer(
            config.delimiter,
            config.delimiter_substitute,
            config.line_break_substitute,
        ).apply(df)
        df = sanitize_result.df

        # Stage 5: column groups
        df, dropped = self.drop_column_groups(
            df, config.remove_photo_columns, config.remove_check_columns
        )

        # Stage 6: persist
        persist_table(df, output_path, config.delimiter, config.encoding)

        logger.info(
            f"Prepared {input_path.name}: {original_rows} -> {len(df)} rows, "
            f"{len(before)} -> {len(df.columns)} columns"
        )

        return PreparedData(
            df=df,
            original_path=str(input_path),
            output_path=str(output_path),
            filter_result=filter_result,
            original_rows=original_rows,
            final_rows=len(df),
            columns_renamed=columns_renamed,
            columns_sanitized=sanitize_result.columns_modified,
            columns_dropped=dropped,
        )

    def close(self) -> None:
        """Release the row filter's DuckDB connection."""
        self.row_filter.close()


def prepare_data(
    input_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    project_filter: Optional[Union[str, List[str]]] = None,
    remove_photo_columns: bool = True,
    remove_check_columns: bool = True,
    rule_set: Optional[Union[str, RuleSet]] = None,
) -> Union[pd.DataFrame, str]:
    """
    Prepare a FUNACTION KoboToolbox export.

    Reads the export, removes not-approved / on-hold records and records of
    other projects, simplifies the generated column names, drops photo and
    data-check columns, writes the result to output_path and returns it.

    Args:
        input_path: Path to the raw ";"-separated export
        output_path: Output file. Defaults to "fundata.csv" in the input
                     file's directory; an explicit relative path is
                     taken relative to the working directory
        project_filter: Project name(s) to keep, or "all" (default "funaction")
        remove_photo_columns: Drop photo attachment columns
        remove_check_columns: Drop boolean data-check columns
        rule_set: RuleSet or bundled rule set name (default "funaction")

    Returns:
        The prepared DataFrame, or a "file not found" message when
        input_path does not exist
    """
    config = PreprocessingConfig.from_settings(
        project_filter=project_filter,
        remove_photo_columns=remove_photo_columns,
        remove_check_columns=remove_check_columns,
    )

    if output_path is None:
        output_path = Path(input_path).parent / get_settings().default_output_filename

    pipeline = PreprocessingPipeline(rule_set)
    try:
        return pipeline.process(input_path, output_path, config).df
    except InputNotFoundError as e:
        logger.warning(e.message)
        return e.message
    finally:
        pipeline.close()
