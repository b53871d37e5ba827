"""
Value sanitization for delimited output.

Output is written without quoting, so a cell containing the output
delimiter would split into two fields and a cell containing a line break
would split into two rows. Such characters are replaced before writing
(";" -> "," and line breaks -> " " by default).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

import pandas as pd

from kobo_prep.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class SanitizeResult:
    """Result of sanitizing a DataFrame."""
    df: pd.DataFrame
    columns_modified: List[str] = field(default_factory=list)
    cells_modified: int = 0


class ValueSanitizer:
    """
    Replaces the output delimiter and line breaks inside cell values.

    Only columns with at least one value containing the delimiter or a
    line break are touched; in those the substitution is applied cell by
    cell. A "\\r\\n" pair counts as one line break.

    Usage:
        sanitizer = ValueSanitizer(delimiter=";", substitute=",")
        result = sanitizer.apply(df)
        print(result.columns_modified)
    """

    def __init__(
        self,
        delimiter: str = ";",
        substitute: str = ",",
        line_break_substitute: str = " ",
    ):
        if not delimiter:
            raise ConfigurationError("Delimiter must not be empty", field="delimiter")
        if delimiter in substitute:
            raise ConfigurationError(
                f"Substitute '{substitute}' still contains the delimiter '{delimiter}'",
                field="delimiter_substitute",
            )
        for name, value in (
            ("delimiter_substitute", substitute),
            ("line_break_substitute", line_break_substitute),
        ):
            if _LINE_BREAK.search(value) or delimiter in value:
                raise ConfigurationError(
                    f"{name} {value!r} must not contain a line break or the delimiter",
                    field=name,
                )
        self.delimiter = delimiter
        self.substitute = substitute
        self.line_break_substitute = line_break_substitute

    def _needs_replacing(self, value) -> bool:
        return isinstance(value, str) and (
            self.delimiter in value or _LINE_BREAK.search(value) is not None
        )

    def _replace(self, value):
        if isinstance(value, str):
            value = value.replace(self.delimiter, self.substitute)
            return _LINE_BREAK.sub(self.line_break_substitute, value)
        return value

    def apply(self, df: pd.DataFrame) -> SanitizeResult:
        """Sanitize all qualifying columns of the DataFrame."""
        result_df = df.copy()
        columns_modified = []
        cells_modified = 0

        for col in result_df.columns:
            hits = result_df[col].map(self._needs_replacing)
            count = int(hits.sum())
            if count == 0:
                continue

            result_df[col] = result_df[col].map(self._replace)
            columns_modified.append(col)
            cells_modified += count

            logger.debug(f"Replaced delimiter/line breaks in {count} values of '{col}'")

        if columns_modified:
            logger.info(
                f"Sanitized {cells_modified} values in {len(columns_modified)} columns: "
                f"{columns_modified}"
            )

        return SanitizeResult(
            df=result_df,
            columns_modified=columns_modified,
            cells_modified=cells_modified,
        )


def escape_delimiter_conflicts(
    df: pd.DataFrame,
    delimiter: str = ";",
    substitute: str = ",",
    line_break_substitute: str = " ",
) -> pd.DataFrame:
    """Replace the delimiter and line breaks in every value that contains them."""
    return ValueSanitizer(delimiter, substitute, line_break_substitute).apply(df).df
