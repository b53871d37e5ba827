"""
Bulk removal of column groups (photo attachments, data-check flags).

Groups test the post-rename column names, so pruning runs after the
rename stage.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class ColumnGroup:
    """A named predicate over column names; matching is case-insensitive."""
    name: str
    patterns: List[str]
    regex: bool = False
    enabled: bool = True
    description: Optional[str] = None
    _compiled: List[re.Pattern] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        if self.regex:
            self._compiled = [re.compile(p, re.IGNORECASE) for p in self.patterns]

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ColumnGroup":
        """Create from dictionary (from YAML)."""
        patterns = data.get("patterns", [])
        if isinstance(patterns, str):
            patterns = [patterns]
        return cls(
            name=name,
            patterns=list(patterns),
            regex=data.get("regex", False),
            enabled=data.get("enabled", True),
            description=data.get("description"),
        )

    def matches(self, column: str) -> bool:
        """True if the column name belongs to this group."""
        if self.regex:
            return any(p.search(column) for p in self._compiled)
        lowered = column.lower()
        return any(p.lower() in lowered for p in self.patterns)


PHOTO_GROUP = ColumnGroup(
    name="photo",
    patterns=["photo"],
    description="Photo attachment columns",
)

CHECK_GROUP = ColumnGroup(
    name="checks",
    patterns=["sample", "X_"],
    description="Boolean data-check columns",
)

ColumnPredicate = Union[ColumnGroup, str, Callable[[str], bool]]


def _as_callable(predicate: ColumnPredicate) -> Callable[[str], bool]:
    if isinstance(predicate, ColumnGroup):
        return predicate.matches
    if isinstance(predicate, str):
        needle = predicate.lower()
        return lambda column: needle in column.lower()
    return predicate


def columns_matching(df: pd.DataFrame, predicate: ColumnPredicate) -> List[str]:
    """List the columns selected by predicate, in table order."""
    test = _as_callable(predicate)
    return [c for c in df.columns if test(str(c))]


def drop_columns_matching(df: pd.DataFrame, predicate: ColumnPredicate) -> pd.DataFrame:
    """
    Remove every column whose name matches predicate.

    Args:
        df: Input DataFrame
        predicate: ColumnGroup, substring (case-insensitive) or callable

    Returns:
        New DataFrame without the matching columns
    """
    selection = columns_matching(df, predicate)
    if not selection:
        return df.copy()

    label = predicate.name if isinstance(predicate, ColumnGroup) else str(predicate)
    logger.info(f"Dropping {len(selection)} '{label}' columns")
    logger.debug(f"Dropped columns: {selection}")

    return df.drop(columns=selection)
