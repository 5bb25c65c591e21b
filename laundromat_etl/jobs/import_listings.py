"""CLI job to bulk-import laundromat listings from a spreadsheet, JSON or CSV export."""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from laundromat_etl.core import db
from laundromat_etl.core.batch import ListSource
from laundromat_etl.core.config import get_settings
from laundromat_etl.core.models import BatchResult, Outcome
from laundromat_etl.etl.readers import read_records
from laundromat_etl.etl.transform import InvalidRecord, premium_tier, slugify, to_listing_row
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli

logger = logging.getLogger(__name__)


def import_record(conn, record: Dict[str, Any]) -> Outcome:
    """Insert one source record and keep the state/city counts in step."""
    try:
        row = to_listing_row(record)
    except InvalidRecord as exc:
        logger.info("Invalid record %r: %s", record.get("name") or record.get("title"), exc)
        return Outcome.INVALID

    db.upsert_state(conn, row.state, row.state_name, slugify(row.state_name))
    db.upsert_city(conn, row.city, row.state, row.city_slug)

    listing_id = db.insert_listing(conn, row)
    if listing_id is None:
        logger.debug("Duplicate slug %s", row.slug)
        return Outcome.DUPLICATE

    db.increment_location_counts(conn, row.state, row.city_slug)
    logger.debug(
        "Imported %s as id=%s (premium score %d, %s tier)",
        row.slug,
        listing_id,
        row.premium_score,
        premium_tier(row.premium_score),
    )
    return Outcome.IMPORTED


def default_job_name(source: str) -> str:
    return f"import:{Path(source).name}"


def run_import(args: argparse.Namespace, records: Optional[List[Dict[str, Any]]] = None) -> BatchResult:
    get_settings().require_database_url()
    if records is None:
        records = read_records(args.source, sheet=args.sheet)
    job_name = args.job_name or default_job_name(args.source)
    logger.info("Importing %d records from %s as job %s", len(records), args.source, job_name)
    return execute(job_name, ListSource(records), import_record, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import laundromat listings in resumable batches")
    parser.add_argument("source", help="Path to an .xlsx, .json or .csv export")
    parser.add_argument("--sheet", dest="sheet", help="Worksheet name for spreadsheet sources")
    add_batch_arguments(parser, get_settings())
    return parser


def main() -> None:
    args = build_parser().parse_args()
    run_cli("Import", lambda: run_import(args))


if __name__ == "__main__":
    main()
