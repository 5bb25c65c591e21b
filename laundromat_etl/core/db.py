"""Database helpers for the listing jobs."""

import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import extras, pool

from laundromat_etl.core.config import get_settings
from laundromat_etl.core.models import Checkpoint, ListingRow
from laundromat_etl.core.schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

# Errors that mean the connection itself is unusable; these abort a batch.
CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.closeall()
        _connection_pool = None
        logger.info("Database connection pool closed")


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


@contextmanager
def transaction():
    """Yield a pooled connection; commit on success, roll back on any exception."""
    with get_connection() as conn:
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()


@contextmanager
def savepoint(conn, name: str = "batch_record"):
    """Scope a unit of work so a failure undoes only that unit."""
    with conn.cursor() as cur:
        cur.execute(f"SAVEPOINT {name}")
    try:
        yield
    except BaseException:
        with conn.cursor() as cur:
            cur.execute(f"ROLLBACK TO SAVEPOINT {name}")
        raise
    else:
        with conn.cursor() as cur:
            cur.execute(f"RELEASE SAVEPOINT {name}")


def ensure_schema() -> None:
    with transaction() as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
    logger.info("Schema verified")


# ---------- Checkpoints ----------

_SELECT_CHECKPOINT = """
SELECT job_name, position AS cursor, total_processed, total_imported, total_skipped, total_errors,
       started_at, updated_at
FROM sync_state
WHERE job_name = %(job_name)s
FOR UPDATE
"""

_UPSERT_CHECKPOINT = """
INSERT INTO sync_state (
    job_name, position, total_processed, total_imported, total_skipped, total_errors,
    started_at, updated_at
) VALUES (
    %(job_name)s, %(cursor)s, %(total_processed)s, %(total_imported)s, %(total_skipped)s,
    %(total_errors)s, COALESCE(%(started_at)s, NOW()), NOW()
)
ON CONFLICT (job_name) DO UPDATE SET
    position = EXCLUDED.position,
    total_processed = EXCLUDED.total_processed,
    total_imported = EXCLUDED.total_imported,
    total_skipped = EXCLUDED.total_skipped,
    total_errors = EXCLUDED.total_errors,
    updated_at = NOW();
"""


def load_checkpoint(conn, job_name: str) -> Checkpoint:
    """Read and lock the checkpoint row; a missing row means cursor 0."""
    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
        cur.execute(_SELECT_CHECKPOINT, {"job_name": job_name})
        row = cur.fetchone()
    if not row:
        return Checkpoint(job_name=job_name)
    return Checkpoint(**row)


def save_checkpoint(conn, checkpoint: Checkpoint) -> None:
    with conn.cursor() as cur:
        cur.execute(_UPSERT_CHECKPOINT, asdict(checkpoint))


def delete_checkpoint(conn, job_name: str) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM sync_state WHERE job_name = %(job_name)s", {"job_name": job_name})


def list_checkpoints(conn) -> List[Checkpoint]:
    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
        cur.execute(
            "SELECT job_name, position AS cursor, total_processed, total_imported, total_skipped, total_errors, "
            "started_at, updated_at FROM sync_state ORDER BY job_name"
        )
        rows = cur.fetchall()
    return [Checkpoint(**row) for row in rows]


# ---------- Location lookups ----------

_UPSERT_STATE = """
INSERT INTO states (name, abbr, slug, laundry_count)
VALUES (%(name)s, %(abbr)s, %(slug)s, 0)
ON CONFLICT (abbr) DO NOTHING;
"""

_UPSERT_CITY = """
INSERT INTO cities (name, state, slug, laundry_count)
VALUES (%(name)s, %(state)s, %(slug)s, 0)
ON CONFLICT (slug) DO NOTHING;
"""


def upsert_state(conn, abbr: str, name: str, slug: str) -> None:
    with conn.cursor() as cur:
        cur.execute(_UPSERT_STATE, {"abbr": abbr, "name": name, "slug": slug})


def upsert_city(conn, name: str, state: str, slug: str) -> None:
    with conn.cursor() as cur:
        cur.execute(_UPSERT_CITY, {"name": name, "state": state, "slug": slug})


def increment_location_counts(conn, state_abbr: str, city_slug: str) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE states SET laundry_count = laundry_count + 1 WHERE abbr = %(abbr)s",
            {"abbr": state_abbr},
        )
        cur.execute(
            "UPDATE cities SET laundry_count = laundry_count + 1 WHERE slug = %(slug)s",
            {"slug": city_slug},
        )


def recount_location_counts(conn) -> Tuple[int, int]:
    """Recompute the denormalized counts from actual listing rows."""
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE states s SET laundry_count = "
            "(SELECT COUNT(*) FROM laundromats l WHERE l.state = s.abbr)"
        )
        states_updated = cur.rowcount
        cur.execute(
            "UPDATE cities c SET laundry_count = "
            "(SELECT COUNT(*) FROM laundromats l WHERE l.city = c.name AND l.state = c.state)"
        )
        cities_updated = cur.rowcount
    return states_updated, cities_updated


# ---------- Listings ----------


def _prepare_params(row: ListingRow) -> Dict[str, Any]:
    return {
        "name": row.name,
        "slug": row.slug,
        "address": row.address,
        "city": row.city,
        "state": row.state,
        "zip": row.zip,
        "phone": row.phone,
        "website": row.website,
        "latitude": row.latitude,
        "longitude": row.longitude,
        "rating": row.rating,
        "review_count": row.review_count,
        "hours": row.hours,
        "services": extras.Json(row.services or []),
        "amenities": extras.Json(row.amenities or []),
        "machine_count": extras.Json(row.machine_count) if row.machine_count else None,
        "seo_title": row.seo_title,
        "seo_description": row.seo_description,
        "seo_tags": extras.Json(row.seo_tags or []),
        "premium_score": row.premium_score,
        "listing_type": row.listing_type,
        "description": row.description,
        "image_url": row.image_url,
    }


_INSERT_LISTING = """
INSERT INTO laundromats (
    name,
    slug,
    address,
    city,
    state,
    zip,
    phone,
    website,
    latitude,
    longitude,
    rating,
    review_count,
    hours,
    services,
    amenities,
    machine_count,
    seo_title,
    seo_description,
    seo_tags,
    premium_score,
    listing_type,
    description,
    image_url,
    created_at,
    updated_at
) VALUES (
    %(name)s,
    %(slug)s,
    %(address)s,
    %(city)s,
    %(state)s,
    %(zip)s,
    %(phone)s,
    %(website)s,
    %(latitude)s,
    %(longitude)s,
    %(rating)s,
    %(review_count)s,
    %(hours)s,
    %(services)s,
    %(amenities)s,
    %(machine_count)s,
    %(seo_title)s,
    %(seo_description)s,
    %(seo_tags)s,
    %(premium_score)s,
    %(listing_type)s,
    %(description)s,
    %(image_url)s,
    NOW(),
    NOW()
)
ON CONFLICT (slug) DO NOTHING
RETURNING id;
"""


def insert_listing(conn, row: ListingRow) -> Optional[int]:
    """Insert a listing; returns the new id, or None when the slug already exists."""
    params = _prepare_params(row)
    if not params["name"] or not params["slug"]:
        raise ValueError("name and slug are required for insert")

    with conn.cursor() as cur:
        cur.execute(_INSERT_LISTING, params)
        result = cur.fetchone()
    if not result:
        return None
    logger.debug("Inserted listing %s", params["slug"])
    return result[0]


_LISTING_COLUMNS = (
    "id, name, address, city, state, zip, latitude, longitude, google_place_id, "
    "google_details, business_hours, nearby_places, places_text_data"
)

# Row filters for the id-cursor sources; keys are the only accepted values.
LISTING_FILTERS = {
    "all": "TRUE",
    "unenriched": "google_details IS NULL",
    "unconverted": "(places_text_data IS NULL OR places_text_data = '{}'::jsonb)",
    "with_coordinates": "latitude IS NOT NULL AND longitude IS NOT NULL",
    "with_nearby": "nearby_places IS NOT NULL AND nearby_places <> '{}'::jsonb",
    # Doubled percent signs: the query is sent with parameters.
    "missing_address": (
        "latitude IS NOT NULL AND longitude IS NOT NULL AND "
        "(address IS NULL OR address = '' OR address ILIKE '%%placeholder%%' OR address ILIKE '%%123 main%%')"
    ),
}


def fetch_listings(conn, after_id: int, limit: int, filter_name: str = "all") -> List[Dict[str, Any]]:
    """Return up to ``limit`` listings with ``id > after_id`` in id order."""
    condition = LISTING_FILTERS[filter_name]
    query = (
        f"SELECT {_LISTING_COLUMNS} FROM laundromats "
        f"WHERE id > %(after_id)s AND {condition} ORDER BY id LIMIT %(limit)s"
    )
    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
        cur.execute(query, {"after_id": after_id, "limit": limit})
        return [dict(row) for row in cur.fetchall()]


def update_enrichment(
    conn,
    listing_id: int,
    *,
    place_id: Optional[str],
    details: Dict[str, Any],
    periods: Sequence[Dict[str, Any]],
    nearby: Dict[str, Any],
) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE laundromats SET
                google_place_id = COALESCE(%(place_id)s, google_place_id),
                google_details = %(details)s,
                business_hours = %(periods)s,
                nearby_places = %(nearby)s,
                updated_at = NOW()
            WHERE id = %(id)s
            """,
            {
                "id": listing_id,
                "place_id": place_id,
                "details": extras.Json(details),
                "periods": extras.Json(list(periods)),
                "nearby": extras.Json(nearby),
            },
        )


def update_text_data(conn, listing_id: int, text_data: Dict[str, Any]) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE laundromats SET places_text_data = %(data)s, updated_at = NOW() WHERE id = %(id)s",
            {"id": listing_id, "data": extras.Json(text_data)},
        )


def update_address(
    conn,
    listing_id: int,
    *,
    address: str,
    city: str,
    state: str,
    zip_code: str,
    geocoded: Dict[str, Any],
) -> None:
    """Write a geocoded address; blank parts keep the stored value."""
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE laundromats SET
                address = %(address)s,
                city = COALESCE(NULLIF(%(city)s, ''), city),
                state = COALESCE(NULLIF(%(state)s, ''), state),
                zip = COALESCE(NULLIF(%(zip)s, ''), zip),
                geocoded_address = %(geocoded)s,
                geocoded_at = NOW(),
                updated_at = NOW()
            WHERE id = %(id)s
            """,
            {
                "id": listing_id,
                "address": address,
                "city": city,
                "state": state,
                "zip": zip_code,
                "geocoded": extras.Json(geocoded),
            },
        )


def update_nearby_places(conn, listing_id: int, nearby: Dict[str, Any]) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE laundromats SET nearby_places = %(nearby)s, updated_at = NOW() WHERE id = %(id)s",
            {"id": listing_id, "nearby": extras.Json(nearby)},
        )


def fetch_address_index(conn) -> List[Dict[str, Any]]:
    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
        cur.execute("SELECT id, name, address, zip FROM laundromats ORDER BY id")
        return [dict(row) for row in cur.fetchall()]


def delete_listings(conn, listing_ids: Iterable[int]) -> int:
    ids = list(listing_ids)
    if not ids:
        return 0
    with conn.cursor() as cur:
        cur.execute("DELETE FROM laundromats WHERE id = ANY(%(ids)s)", {"ids": ids})
        return cur.rowcount


def table_counts(conn) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    with conn.cursor() as cur:
        for table in ("laundromats", "cities", "states"):
            cur.execute(f"SELECT COUNT(*) FROM {table}")
            counts[table] = cur.fetchone()[0]
    return counts
