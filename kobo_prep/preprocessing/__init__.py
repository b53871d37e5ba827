"""
Survey Export Preprocessing.

Provides:
- Loading / persisting ";"-separated exports
- Row filtering via SQL conditions (project, approval status)
- Column renaming rules and boundary noise stripping
- Column group pruning (photo, data-check columns)
- Delimiter sanitization of cell values

The orchestrating pipeline lives in kobo_prep.preprocessing.pipeline.
"""

from kobo_prep.preprocessing.io import load_prepared, load_table, persist_table
from kobo_prep.preprocessing.row_filter import (
    FilterConfig,
    FilterResult,
    RowFilter,
    filter_approved,
    filter_by_project,
)
from kobo_prep.preprocessing.renamer import (
    ColumnOverride,
    RenameRule,
    apply_column_overrides,
    apply_rename_rules,
    ensure_unique_columns,
    make_syntactic_names,
    strip_boundary_noise,
)
from kobo_prep.preprocessing.pruner import (
    ColumnGroup,
    drop_columns_matching,
)
from kobo_prep.preprocessing.sanitizer import (
    SanitizeResult,
    ValueSanitizer,
    escape_delimiter_conflicts,
)

__all__ = [
    "load_table",
    "load_prepared",
    "persist_table",
    "FilterConfig",
    "FilterResult",
    "RowFilter",
    "filter_approved",
    "filter_by_project",
    "ColumnOverride",
    "RenameRule",
    "apply_column_overrides",
    "apply_rename_rules",
    "ensure_unique_columns",
    "make_syntactic_names",
    "strip_boundary_noise",
    "ColumnGroup",
    "drop_columns_matching",
    "SanitizeResult",
    "ValueSanitizer",
    "escape_delimiter_conflicts",
]
