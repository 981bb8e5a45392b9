"""
CSV bridge for bulk root import and export.

Import format:
  line 1            header, always ignored (even if malformed)
  following lines   chinese,english[,...]  values optionally double-quoted;
                    a quoted value may span lines

Blank lines are skipped, as are rows with fewer than two columns or with an empty
first/second value. A file with no usable rows at all is a format error.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Dict, Iterable, List, Mapping

from .models import ImportPreviewItem
from .store import EXPORT_HEADER

logger = logging.getLogger(__name__)


class CsvFormatError(ValueError):
    pass


def _clean_field(v: str) -> str:
    v = v.strip()
    if len(v) >= 2 and v[0] == v[-1] == '"':
        v = v[1:-1]
    return v.strip()


def _records(body: str) -> Iterable[List[str]]:
    # one reader over the whole body: quoted values may hold commas and newlines
    return csv.reader(io.StringIO(body, newline=""), skipinitialspace=True)


def parse_import_preview(csv_text: str, existing: Mapping[str, str]) -> List[ImportPreviewItem]:
    text = (csv_text or "").lstrip("\ufeff").strip()
    _header, _, body = text.partition("\n")

    preview: List[ImportPreviewItem] = []
    skipped = 0
    for row in _records(body):
        cols = [_clean_field(c) for c in row]
        if not any(cols):
            continue
        if len(cols) < 2 or not cols[0] or not cols[1]:
            skipped += 1
            continue
        chinese, english = cols[0], cols[1]
        action = "update" if chinese in existing else "add"
        preview.append(ImportPreviewItem(chinese=chinese, english=english, action=action))

    if not preview:
        raise CsvFormatError("no valid rows: expected a header line then 'chinese,english' rows")

    if skipped:
        logger.info("CSV preview: %d rows kept, %d malformed rows skipped", len(preview), skipped)
    return preview


def preview_to_mapping(items: Iterable[ImportPreviewItem]) -> Dict[str, str]:
    """Later rows win when a key repeats."""
    return {it.chinese: it.english for it in items}


def is_empty_export(csv_text: str) -> bool:
    return not csv_text or csv_text.strip() == EXPORT_HEADER
