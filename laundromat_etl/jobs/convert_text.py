"""CLI job to freeze stored Places payloads into ``places_text_data``."""

import argparse
import logging
from functools import partial
from typing import Any, Dict

from laundromat_etl.core import db
from laundromat_etl.core.batch import TableSource
from laundromat_etl.core.config import get_settings
from laundromat_etl.core.models import BatchResult, Outcome
from laundromat_etl.etl.text_data import build_text_data, has_source_data
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli

logger = logging.getLogger(__name__)

JOB_NAME = "convert-text"


def convert_listing(conn, listing: Dict[str, Any]) -> Outcome:
    if listing.get("places_text_data"):
        return Outcome.SKIPPED
    if not has_source_data(listing):
        logger.debug("Listing %s has no Places data to convert", listing["id"])
        return Outcome.SKIPPED
    text_data = build_text_data(listing)
    db.update_text_data(conn, listing["id"], text_data)
    return Outcome.UPDATED


def run_convert(args: argparse.Namespace) -> BatchResult:
    get_settings().require_database_url()
    source = TableSource(partial(db.fetch_listings, filter_name="unconverted"))
    return execute(args.job_name, source, convert_listing, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert stored Places payloads into static text data")
    add_batch_arguments(parser, get_settings(), default_job_name=JOB_NAME)
    return parser


def main() -> None:
    args = build_parser().parse_args()
    run_cli("Text conversion", lambda: run_convert(args))


if __name__ == "__main__":
    main()
