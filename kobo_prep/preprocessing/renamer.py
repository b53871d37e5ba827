"""
Column-name normalization for survey exports.

Survey tools generate long, unstable headers such as
"X_Capture.your.location_latitude" or "Sample.types.taken.water". The
rename engine collapses them into short canonical names:

0. Syntactic names (optional, at load time): raw headers such as
   "_validation_status" become "X_validation_status"
1. Column overrides: explicit {index, name} for columns left unnamed
2. Rename rules: ordered substitutions, each working on the output of
   the previous one
3. Boundary noise stripping: "X_" tags, repeated separators, stray
   separators at either end
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from kobo_prep.exceptions import ColumnCollisionError, ConfigurationError

logger = logging.getLogger(__name__)

SCOPE_ALL = "all-columns"
SCOPE_NAMED = "named-column"
SCOPE_INDEXED = "indexed-columns"
SCOPES = (SCOPE_ALL, SCOPE_NAMED, SCOPE_INDEXED)

TOOL_TAG = "X_"
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_REPEATED_DOTS = re.compile(r"\.{2,}")
_BOUNDARY_SEPARATORS = "._"

SYNTACTIC_PREFIX = "X"
_INVALID_NAME_CHARS = re.compile(r"[^\w.]")


@dataclass
class RenameRule:
    """A single ordered substitution on column names."""
    pattern: str
    replacement: str = ""
    scope: str = SCOPE_ALL
    regex: bool = False
    indices: List[int] = field(default_factory=list)  # only for indexed-columns
    description: Optional[str] = None

    def __post_init__(self):
        if self.scope not in SCOPES:
            raise ConfigurationError(
                f"Unknown rename scope '{self.scope}' (expected one of {SCOPES})",
                field="scope",
            )
        if not self.pattern:
            raise ConfigurationError("Rename rule needs a non-empty pattern", field="pattern")
        if self.scope == SCOPE_INDEXED and not self.indices:
            raise ConfigurationError(
                f"Rule '{self.pattern}' has scope {SCOPE_INDEXED} but no indices",
                field="indices",
            )
        if self.regex:
            try:
                self._compiled = re.compile(self.pattern)
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid regex in rename rule '{self.pattern}': {e}",
                    field="pattern",
                ) from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenameRule":
        """Create from dictionary (from YAML)."""
        return cls(
            pattern=data["pattern"],
            replacement=data.get("replacement", "") or "",
            scope=data.get("scope", SCOPE_ALL),
            regex=data.get("regex", False),
            indices=list(data.get("indices", [])),
            description=data.get("description"),
        )

    def substitute(self, name: str) -> str:
        """Replace the first occurrence of the pattern in name."""
        if self.regex:
            return self._compiled.sub(self.replacement, name, count=1)
        return name.replace(self.pattern, self.replacement, 1)


@dataclass
class ColumnOverride:
    """Explicit name for the column at a given position."""
    index: int
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnOverride":
        return cls(index=int(data["index"]), name=data["name"])


def rename_names(names: Sequence[str], rules: Sequence[RenameRule]) -> List[str]:
    """
    Apply rename rules in order to a list of column names.

    Positions for indexed-columns rules refer to the list as passed in.
    A column renamed by a named-column rule is not touched by later rules.
    """
    current = [str(n) for n in names]
    pinned = set()

    for rule in rules:
        if rule.scope == SCOPE_NAMED:
            matches = [
                i for i, name in enumerate(current)
                if name == rule.pattern and i not in pinned
            ]
            if not matches:
                logger.debug(f"Column '{rule.pattern}' not present, rule skipped")
                continue
            for i in matches:
                current[i] = rule.replacement
                pinned.add(i)
            continue

        if rule.scope == SCOPE_INDEXED:
            positions = []
            for i in rule.indices:
                if 0 <= i < len(current):
                    positions.append(i)
                else:
                    logger.warning(
                        f"Index {i} out of range for rule '{rule.pattern}' "
                        f"({len(current)} columns)"
                    )
        else:
            positions = range(len(current))

        for i in positions:
            if i not in pinned:
                current[i] = rule.substitute(current[i])

    return current


def apply_column_overrides(
    df: pd.DataFrame,
    overrides: Sequence[Union[ColumnOverride, Dict[str, Any]]],
) -> pd.DataFrame:
    """Name columns by position before any pattern rule runs."""
    names = [str(c) for c in df.columns]

    for override in overrides:
        if isinstance(override, dict):
            override = ColumnOverride.from_dict(override)
        if not 0 <= override.index < len(names):
            logger.warning(
                f"Override index {override.index} out of range ({len(names)} columns)"
            )
            continue
        names[override.index] = override.name

    result = df.copy()
    result.columns = names
    return result


def apply_rename_rules(
    df: pd.DataFrame,
    rules: Sequence[Union[RenameRule, Dict[str, Any]]],
) -> pd.DataFrame:
    """
    Apply ordered rename rules to the DataFrame's columns.

    Args:
        df: Input DataFrame
        rules: Rules applied strictly in sequence

    Returns:
        New DataFrame with renamed columns (data untouched)
    """
    rules = [RenameRule.from_dict(r) if isinstance(r, dict) else r for r in rules]

    result = df.copy()
    result.columns = rename_names(list(df.columns), rules)
    return result


def make_syntactic_name(name: str) -> str:
    """
    Turn a raw export header into a syntactic name.

    Characters other than letters, digits, "." and "_" become ".", and a
    name that does not start with a letter (or with "." not followed by a
    digit) gets an "X" prefix:
    "_validation_status" -> "X_validation_status",
    "Leaf litter species collected/Alnus glutinosa"
    -> "Leaf.litter.species.collected.Alnus.glutinosa".
    """
    cleaned = _INVALID_NAME_CHARS.sub(".", name)
    starts_ok = cleaned[:1].isalpha() or (
        cleaned[:1] == "." and not cleaned[1:2].isdigit()
    )
    if not starts_ok:
        cleaned = SYNTACTIC_PREFIX + cleaned
    return cleaned


def make_syntactic_names(names: Sequence[str]) -> List[str]:
    """
    Apply make_syntactic_name to every header and keep the result unique.

    Later duplicates get ".1", ".2", ... appended, skipping suffixes that
    are already taken.
    """
    cleaned = [make_syntactic_name(str(n)) for n in names]
    taken = set(cleaned)
    seen = set()
    result = []

    for name in cleaned:
        if name in seen:
            suffix = 1
            while f"{name}.{suffix}" in taken:
                suffix += 1
            name = f"{name}.{suffix}"
            taken.add(name)
        seen.add(name)
        result.append(name)

    return result


def strip_name_noise(name: str) -> str:
    """
    Remove tool-injected separator noise from a single column name.

    Repeats until the name no longer changes; a name that would end up
    empty is returned as is.
    """
    previous = None
    cleaned = name

    while cleaned != previous:
        previous = cleaned
        if cleaned.startswith(TOOL_TAG):
            cleaned = cleaned[len(TOOL_TAG):]
        cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned)
        cleaned = _REPEATED_DOTS.sub(".", cleaned)
        cleaned = cleaned.strip(_BOUNDARY_SEPARATORS)

    return cleaned or name


def strip_boundary_noise(df: pd.DataFrame) -> pd.DataFrame:
    """Apply strip_name_noise to every column name."""
    result = df.copy()
    result.columns = [strip_name_noise(str(c)) for c in df.columns]
    return result


def find_collisions(columns: Sequence[str]) -> Dict[str, int]:
    """Return every column name that occurs more than once, with its count."""
    counts = Counter(columns)
    return {name: count for name, count in counts.items() if count > 1}


def ensure_unique_columns(
    df: pd.DataFrame,
    original_columns: Optional[Sequence[str]] = None,
) -> None:
    """
    Raise ColumnCollisionError if two columns share a final name.

    Args:
        df: Renamed DataFrame
        original_columns: Headers before renaming, used to report which
            source columns collided
    """
    duplicates = find_collisions([str(c) for c in df.columns])
    if not duplicates:
        return

    sources: Dict[str, List[str]] = {}
    if original_columns is not None and len(original_columns) == len(df.columns):
        for original, final in zip(original_columns, df.columns):
            if final in duplicates:
                sources.setdefault(final, []).append(str(original))

    logger.error(f"Duplicate column names after renaming: {duplicates} (sources: {sources})")
    raise ColumnCollisionError(duplicates, sources)
