"""Argument and entry-point plumbing shared by the batch job CLIs."""

import argparse
import logging
from typing import Callable

from laundromat_etl.core import db
from laundromat_etl.core.batch import Handler, RecordSource, reset_checkpoint, run_batch, run_until_done
from laundromat_etl.core.config import ConfigError, Settings, configure_logging
from laundromat_etl.core.models import BatchResult

logger = logging.getLogger(__name__)


def add_batch_arguments(parser: argparse.ArgumentParser, settings: Settings, default_job_name: str = "") -> None:
    parser.add_argument(
        "--job-name",
        dest="job_name",
        default=default_job_name or None,
        help="Checkpoint name; runs sharing a name share progress",
    )
    parser.add_argument("--batch-size", dest="batch_size", type=int, default=settings.batch_size)
    parser.add_argument(
        "--until-done",
        dest="until_done",
        action="store_true",
        help="Keep running batches until the source is exhausted",
    )
    parser.add_argument("--max-iterations", dest="max_iterations", type=int, default=settings.max_iterations)
    parser.add_argument(
        "--sleep",
        dest="sleep_seconds",
        type=float,
        default=settings.batch_sleep,
        help="Seconds to wait between batches with --until-done",
    )
    parser.add_argument("--reset", action="store_true", help="Start again from the beginning of the source")


def execute(job_name: str, source: RecordSource, handler: Handler, args: argparse.Namespace) -> BatchResult:
    if args.reset:
        reset_checkpoint(job_name)
    if args.until_done:
        return run_until_done(
            job_name,
            source,
            handler,
            args.batch_size,
            max_iterations=args.max_iterations,
            sleep_seconds=args.sleep_seconds,
        )
    return run_batch(job_name, source, handler, args.batch_size)


def run_cli(label: str, entry: Callable[[], object]) -> None:
    """Run ``entry`` with logging configured; ConfigError exits 2, any other failure exits 1."""
    configure_logging()
    try:
        entry()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:
        logger.error("%s failed: %s", label, exc, exc_info=True)
        raise SystemExit(1) from exc
    finally:
        db.close_pool()
