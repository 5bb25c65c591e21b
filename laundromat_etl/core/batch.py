"""Resumable batch runner shared by every listing job.

A run reads the job's checkpoint, handles one batch of records and writes the
advanced checkpoint in the same transaction as the batch's own writes, so a
crash or rollback never moves the cursor past uncommitted work.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from laundromat_etl.core import db
from laundromat_etl.core.models import BatchResult, Checkpoint, Outcome

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any], Outcome]


class BatchAborted(RuntimeError):
    """Raised by a handler to discard the whole batch instead of one record."""


class RecordSource(Protocol):
    def next_batch(self, conn, cursor: int, limit: int) -> Tuple[Sequence[Any], int]:
        ...


class ListSource:
    """In-memory records addressed by offset."""

    def __init__(self, records: Sequence[Any]) -> None:
        self.records = list(records)

    def __len__(self) -> int:
        return len(self.records)

    def next_batch(self, conn, cursor: int, limit: int) -> Tuple[List[Any], int]:
        batch = self.records[cursor : cursor + limit]
        return batch, cursor + len(batch)


class TableSource:
    """Table rows addressed by id; ``fetch(conn, after_id, limit)`` must return rows in id order."""

    def __init__(self, fetch: Callable[[Any, int, int], List[Dict[str, Any]]]) -> None:
        self.fetch = fetch

    def next_batch(self, conn, cursor: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        rows = self.fetch(conn, cursor, limit)
        if not rows:
            return [], cursor
        return rows, int(rows[-1]["id"])


def _apply_totals(checkpoint: Checkpoint, result: BatchResult) -> None:
    checkpoint.cursor = result.end_cursor
    checkpoint.total_processed += result.processed
    checkpoint.total_imported += result.imported + result.updated
    checkpoint.total_skipped += result.duplicates + result.invalid + result.skipped
    checkpoint.total_errors += result.errors


def run_batch(job_name: str, source: RecordSource, handler: Handler, batch_size: int) -> BatchResult:
    """Process the next ``batch_size`` records of ``source`` for ``job_name``."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    with db.transaction() as conn:
        checkpoint = db.load_checkpoint(conn, job_name)
        records, new_cursor = source.next_batch(conn, checkpoint.cursor, batch_size)
        result = BatchResult(job_name=job_name, start_cursor=checkpoint.cursor, end_cursor=new_cursor)

        for index, record in enumerate(records):
            try:
                with db.savepoint(conn):
                    outcome = handler(conn, record)
            except (BatchAborted,) + db.CONNECTION_ERRORS:
                logger.error("%s: aborting batch at cursor %d", job_name, checkpoint.cursor)
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s: record %d failed: %s", job_name, checkpoint.cursor + index, exc)
                result.record_error()
                continue
            result.record(outcome)

        result.done = len(records) < batch_size
        _apply_totals(checkpoint, result)
        db.save_checkpoint(conn, checkpoint)

    logger.info("%s batch complete: %s", job_name, result.summary())
    return result


def run_until_done(
    job_name: str,
    source: RecordSource,
    handler: Handler,
    batch_size: int,
    *,
    max_iterations: int,
    sleep_seconds: float = 0.0,
    sleep: Optional[Callable[[float], None]] = None,
) -> BatchResult:
    """Repeat ``run_batch`` until the source is exhausted or ``max_iterations`` is reached."""
    sleep = sleep or time.sleep
    total: Optional[BatchResult] = None
    for iteration in range(1, max_iterations + 1):
        result = run_batch(job_name, source, handler, batch_size)
        if total is None:
            total = BatchResult(job_name=job_name, start_cursor=result.start_cursor)
        total.merge(result)
        if result.done:
            logger.info("%s finished after %d batch(es): %s", job_name, iteration, total.summary())
            break
        if iteration < max_iterations and sleep_seconds > 0:
            sleep(sleep_seconds)
    else:
        logger.warning("%s stopped after max_iterations=%d; rerun to continue", job_name, max_iterations)

    return total or BatchResult(job_name=job_name)


def reset_checkpoint(job_name: str) -> None:
    with db.transaction() as conn:
        db.delete_checkpoint(conn, job_name)
    logger.info("Checkpoint for %s reset", job_name)
