"""
tabular.py -- Adapter from exported activity sheets to raw row arrays.

Reads either a CSV export (e.g. a Google Sheets "export?format=csv" download)
or a JSON file holding an array of row arrays, and returns the rows exactly
as the parser expects them: header first, cells as strings.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES: set[str] = {".csv", ".json"}


def rows_from_csv_text(text: str) -> list[list[str]]:
    """Parse CSV text into rows. A leading UTF-8 BOM is dropped."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return [row for row in csv.reader(io.StringIO(text))]


def rows_from_json_text(text: str) -> list[list[Any]]:
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of rows, got {type(data).__name__}")
    return data


def read_rows(path: str | Path) -> list[list[Any]]:
    """
    Load rows from a .csv or .json sheet export.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: unsupported extension or malformed JSON content.
    """
    sheet_path = Path(path)
    if not sheet_path.is_file():
        raise FileNotFoundError(f"Sheet file not found: {sheet_path}")

    suffix = sheet_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported sheet format {suffix!r}; expected one of {sorted(SUPPORTED_SUFFIXES)}")

    with open(sheet_path, "r", encoding="utf-8", newline="") as f:
        text = f.read()

    if suffix == ".csv":
        rows: list[list[Any]] = rows_from_csv_text(text)
    else:
        try:
            rows = rows_from_json_text(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed JSON in {sheet_path.name}: {exc}") from exc

    logger.info("Read %d rows from %s", len(rows), sheet_path.name)
    return rows
