"""
Load and persist delimited survey exports.

Thin adapters around pandas' CSV reader/writer:
- every cell is read as a string (no type inference, no NA coercion)
- output is written without quoting, escaping or an index column, and is
  read back with quoting disabled, so persist followed by load_prepared
  reproduces the values exactly
- writes go to a temporary file that replaces the target on success
"""

import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Union

import pandas as pd

from kobo_prep.exceptions import InputNotFoundError, WriteError
from kobo_prep.preprocessing.renamer import make_syntactic_names

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ";"
LINE_BREAKS = ("\r", "\n")

# Unquoted output never needs a quote character, but the csv module wants
# one. The unit separator stands in so '"' is written as plain text.
UNUSED_QUOTECHAR = "\x1f"


def load_table(
    path: Union[str, Path],
    delimiter: str = DEFAULT_DELIMITER,
    encoding: str = "utf-8",
    syntactic_names: bool = False,
    quoted: bool = True,
) -> pd.DataFrame:
    """
    Read a delimited export into a DataFrame of strings.

    Args:
        path: Path to the export file
        delimiter: Field separator
        encoding: File encoding
        syntactic_names: Convert raw headers to syntactic names
            ("_validation_status" -> "X_validation_status")
        quoted: Honour '"' quoting as survey tools write it. Prepared
            output is unquoted and is read with quoted=False.

    Returns:
        DataFrame with the first row as header

    Raises:
        InputNotFoundError: If path is not an existing file
    """
    path = Path(path)

    if not path.is_file():
        raise InputNotFoundError(str(path))

    quoting = {} if quoted else {"quoting": csv.QUOTE_NONE}

    df = pd.read_csv(
        path,
        sep=delimiter,
        header=0,
        dtype=str,
        keep_default_na=False,
        encoding=encoding,
        **quoting,
    )

    if syntactic_names:
        df.columns = make_syntactic_names(list(df.columns))

    logger.info(f"Loaded {path.name}: {len(df)} rows, {len(df.columns)} columns")
    return df


def load_prepared(
    path: Union[str, Path],
    delimiter: str = DEFAULT_DELIMITER,
    encoding: str = "utf-8",
) -> pd.DataFrame:
    """Read a table written by persist_table."""
    return load_table(path, delimiter, encoding, quoted=False)


def unwritable_columns(df: pd.DataFrame, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
    """Columns holding a value with the delimiter or a line break."""
    forbidden = (delimiter,) + LINE_BREAKS
    columns = []

    for col in df.columns:
        values = df[col].dropna().astype(str)
        if values.map(lambda v: any(ch in v for ch in forbidden)).any():
            columns.append(str(col))

    return columns


def persist_table(
    df: pd.DataFrame,
    path: Union[str, Path],
    delimiter: str = DEFAULT_DELIMITER,
    encoding: str = "utf-8",
) -> Path:
    """
    Write a DataFrame as delimited text: header row, no quoting, no index.

    Values are written verbatim. A value containing the delimiter or a
    line break cannot be represented without quoting and is rejected;
    run ValueSanitizer first. The previous file at ``path`` is only
    replaced once the new content has been written completely.

    Raises:
        WriteError: If a value cannot be written unquoted, or the target
            cannot be written
    """
    path = Path(path)

    conflicts = unwritable_columns(df, delimiter)
    if conflicts:
        raise WriteError(
            str(path),
            f"values contain the delimiter '{delimiter}' or a line break "
            f"in columns {conflicts}",
        )

    tmp_name = None

    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            encoding=encoding,
            newline="",
            delete=False,
        ) as handle:
            tmp_name = handle.name
            df.to_csv(
                handle,
                sep=delimiter,
                index=False,
                quoting=csv.QUOTE_NONE,
                quotechar=UNUSED_QUOTECHAR,
                lineterminator="\n",
            )
        os.replace(tmp_name, path)

    except (OSError, csv.Error) as e:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise WriteError(str(path), str(e)) from e

    logger.info(f"Wrote {len(df)} rows, {len(df.columns)} columns to {path}")
    return path
