"""Maintenance commands: schema, location recounts, duplicate cleanup and job status."""

import argparse
import logging
from functools import partial
from typing import Any, Dict, List

from laundromat_etl.core import db
from laundromat_etl.core.batch import TableSource
from laundromat_etl.core.config import get_settings
from laundromat_etl.core.models import BatchResult, Outcome
from laundromat_etl.etl.dedupe import dedupe_nearby_places, find_duplicate_addresses
from laundromat_etl.jobs.common import add_batch_arguments, execute, run_cli

logger = logging.getLogger(__name__)

DEDUPE_JOB_NAME = "dedupe-nearby"


def init_schema(args: argparse.Namespace) -> None:
    db.ensure_schema()


def recount(args: argparse.Namespace) -> None:
    with db.transaction() as conn:
        states, cities = db.recount_location_counts(conn)
    logger.info("Recounted laundry_count for %d states and %d cities", states, cities)


def dedupe_listing_nearby(conn, listing: Dict[str, Any]) -> Outcome:
    deduped, changed = dedupe_nearby_places(listing.get("nearby_places"))
    if not changed:
        return Outcome.SKIPPED
    db.update_nearby_places(conn, listing["id"], deduped)
    return Outcome.UPDATED


def dedupe_nearby(args: argparse.Namespace) -> BatchResult:
    source = TableSource(partial(db.fetch_listings, filter_name="with_nearby"))
    return execute(args.job_name, source, dedupe_listing_nearby, args)


def duplicates(args: argparse.Namespace) -> Dict[int, List[int]]:
    with db.transaction() as conn:
        groups = find_duplicate_addresses(db.fetch_address_index(conn))
        for keep_id, duplicate_ids in groups.items():
            logger.info("Listing %d has duplicates at the same address: %s", keep_id, duplicate_ids)
        if not groups:
            logger.info("No duplicate addresses found")
        elif args.apply:
            doomed = [listing_id for ids in groups.values() for listing_id in ids]
            deleted = db.delete_listings(conn, doomed)
            states, cities = db.recount_location_counts(conn)
            logger.info(
                "Deleted %d duplicate listings; recounted %d states and %d cities", deleted, states, cities
            )
        else:
            logger.info("Dry run; pass --apply to delete the later duplicates")
    return groups


def status(args: argparse.Namespace) -> None:
    with db.transaction() as conn:
        checkpoints = db.list_checkpoints(conn)
        counts = db.table_counts(conn)
    for name, count in counts.items():
        print(f"{name}: {count}")
    if not checkpoints:
        print("No job checkpoints recorded")
    for checkpoint in checkpoints:
        print(
            f"{checkpoint.job_name}: cursor={checkpoint.cursor} processed={checkpoint.total_processed} "
            f"imported={checkpoint.total_imported} skipped={checkpoint.total_skipped} "
            f"errors={checkpoint.total_errors} updated_at={checkpoint.updated_at}"
        )


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Directory maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-schema", help="Create missing tables").set_defaults(func=init_schema)
    subparsers.add_parser("recount", help="Recompute state and city laundry counts").set_defaults(func=recount)

    dedupe_parser = subparsers.add_parser("dedupe-nearby", help="Drop repeated nearby places per category")
    add_batch_arguments(dedupe_parser, settings, default_job_name=DEDUPE_JOB_NAME)
    dedupe_parser.set_defaults(func=dedupe_nearby)

    duplicates_parser = subparsers.add_parser("duplicates", help="Report listings sharing an address")
    duplicates_parser.add_argument("--apply", action="store_true", help="Delete the later duplicates")
    duplicates_parser.set_defaults(func=duplicates)

    subparsers.add_parser("status", help="Show job checkpoints and table counts").set_defaults(func=status)
    return parser


def run_maintenance(args: argparse.Namespace) -> Any:
    get_settings().require_database_url()
    return args.func(args)


def main() -> None:
    args = build_parser().parse_args()
    run_cli(f"Maintenance {args.command}", lambda: run_maintenance(args))


if __name__ == "__main__":
    main()
