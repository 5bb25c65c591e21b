"""CLI job to attach Google Places details and nearby places to listings."""

import argparse
import logging
from functools import partial
from typing import Any, Dict, Optional

from laundromat_etl.core import db
from laundromat_etl.core.batch import Handler, TableSource
from laundromat_etl.core.config import get_settings
from laundromat_etl.core.models import BatchResult, Outcome
from laundromat_etl.core.place_enricher import PlaceEnricher
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli

logger = logging.getLogger(__name__)

JOB_NAME = "enrich"


def make_handler(enricher: PlaceEnricher) -> Handler:
    def enrich_listing(conn, listing: Dict[str, Any]) -> Outcome:
        if listing.get("google_details"):
            return Outcome.SKIPPED
        enrichment = enricher.enrich(listing)
        if enrichment.is_empty():
            logger.info("No Places data for listing %s (%s)", listing["id"], listing.get("name"))
            return Outcome.SKIPPED
        db.update_enrichment(
            conn,
            listing["id"],
            place_id=enrichment.place_id,
            details=enrichment.details,
            periods=enrichment.periods,
            nearby=enrichment.nearby,
        )
        return Outcome.UPDATED

    return enrich_listing


def run_enrich(args: argparse.Namespace, enricher: Optional[PlaceEnricher] = None) -> BatchResult:
    settings = get_settings()
    settings.require_database_url()
    enricher = enricher or PlaceEnricher(settings.require_google_api_key(), settings=settings)
    source = TableSource(partial(db.fetch_listings, filter_name="unenriched"))
    return execute(args.job_name, source, make_handler(enricher), args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enrich listings with Google Places data")
    add_batch_arguments(parser, get_settings(), default_job_name=JOB_NAME)
    return parser


def main() -> None:
    args = build_parser().parse_args()
    run_cli("Enrichment", lambda: run_enrich(args))


if __name__ == "__main__":
    main()
