"""Source readers: spreadsheet, JSON and CSV exports into plain dict records."""

import csv
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from openpyxl import load_workbook

logger = logging.getLogger(__name__)

_HEADER_SEPARATORS = re.compile(r"[\s\-]+")


class SourceFormatError(ValueError):
    """Raised when a source file cannot be read as a list of records."""


def normalize_header(value: Any) -> str:
    return _HEADER_SEPARATORS.sub("_", str(value or "").strip().lower())


def _normalize_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    return {normalize_header(key): value for key, value in record.items() if key is not None}


def read_excel(path: Path, sheet: Optional[str] = None) -> List[Dict[str, Any]]:
    workbook = load_workbook(filename=str(path), read_only=True, data_only=True)
    try:
        if sheet:
            if sheet not in workbook.sheetnames:
                raise SourceFormatError(f"sheet {sheet!r} not found in {path.name}")
            worksheet = workbook[sheet]
        else:
            worksheet = workbook.worksheets[0]

        rows = worksheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return []
        headers = [normalize_header(cell) if cell is not None else None for cell in header_row]

        records: List[Dict[str, Any]] = []
        for values in rows:
            if values is None or all(cell is None or cell == "" for cell in values):
                continue
            record = {
                header: value
                for header, value in zip(headers, values)
                if header
            }
            records.append(record)
        return records
    finally:
        workbook.close()


def read_json(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as fh:
        try:
            payload = json.load(fh)
        except json.JSONDecodeError as exc:
            raise SourceFormatError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise SourceFormatError(f"{path.name} must contain a JSON array of records")
    records = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            logger.warning("Ignoring non-object entry at index %d in %s", index, path.name)
            # keep the slot so offsets stay aligned with the file
            records.append({})
            continue
        records.append(_normalize_keys(item))
    return records


def read_csv(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8-sig", newline="") as fh:
        reader = csv.DictReader(fh)
        return [_normalize_keys(row) for row in reader]


def read_records(path: Union[str, Path], sheet: Optional[str] = None) -> List[Dict[str, Any]]:
    """Load every record from ``path``, choosing the reader by file suffix."""
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"source file not found: {source}")

    suffix = source.suffix.lower()
    if suffix in {".xlsx", ".xlsm"}:
        records = read_excel(source, sheet=sheet)
    elif suffix == ".json":
        records = read_json(source)
    elif suffix == ".csv":
        records = read_csv(source)
    else:
        raise SourceFormatError(f"unsupported source format: {suffix or source.name}")

    logger.info("Loaded %d records from %s", len(records), source)
    return records
