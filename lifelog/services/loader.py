"""
Delimited Export Loader

Parses header-first delimited text (pipe-delimited by default) into raw row
dicts for the record normalizer.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from lifelog import config
from lifelog.services.records import clean_string

logger = logging.getLogger(__name__)


def parse_delimited(text: str, delimiter: str | None = None) -> list[dict[str, str]]:
    """
    Parse delimited text with a header row.

    Empty lines are skipped. Keys and values are stripped of NUL characters
    and surrounding whitespace. Short rows keep the columns they have; cells
    beyond the header are discarded.
    """
    if not text:
        return []
    delimiter = delimiter or config.CSV_DELIMITER
    text = text.lstrip("\ufeff").replace("\x00", "")
    lines = [line for line in text.splitlines() if line.strip()]
    reader = csv.DictReader(lines, delimiter=delimiter)

    rows = []
    for row in reader:
        cleaned = {
            clean_string(key): clean_string(value)
            for key, value in row.items()
            if key is not None and value is not None
        }
        if cleaned:
            rows.append(cleaned)
    return rows


def load_file(path: str | Path, delimiter: str | None = None) -> list[dict[str, str]]:
    """Read and parse a local UTF-8 delimited file. OSError propagates."""
    path = Path(path)
    text = path.read_text(encoding="utf-8-sig")
    rows = parse_delimited(text, delimiter)
    logger.info(f"Loaded {len(rows)} row(s) from {path.name}")
    return rows
