"""Canonical table definitions shared by every job."""

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS states (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        abbr TEXT NOT NULL UNIQUE,
        slug TEXT NOT NULL UNIQUE,
        laundry_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cities (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        state TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        laundry_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS laundromats (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        address TEXT NOT NULL,
        city TEXT NOT NULL,
        state TEXT NOT NULL,
        zip TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        website TEXT,
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        rating NUMERIC(2, 1),
        review_count INTEGER NOT NULL DEFAULT 0,
        hours TEXT NOT NULL DEFAULT '',
        services JSONB NOT NULL DEFAULT '[]'::jsonb,
        amenities JSONB NOT NULL DEFAULT '[]'::jsonb,
        machine_count JSONB,
        seo_title TEXT,
        seo_description TEXT,
        seo_tags JSONB NOT NULL DEFAULT '[]'::jsonb,
        premium_score INTEGER NOT NULL DEFAULT 0,
        listing_type TEXT NOT NULL DEFAULT 'basic',
        description TEXT,
        image_url TEXT,
        google_place_id TEXT,
        google_details JSONB,
        business_hours JSONB,
        nearby_places JSONB,
        places_text_data JSONB,
        geocoded_address JSONB,
        geocoded_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS laundromats_city_state_idx ON laundromats (state, city)",
    "ALTER TABLE laundromats ADD COLUMN IF NOT EXISTS geocoded_address JSONB",
    "ALTER TABLE laundromats ADD COLUMN IF NOT EXISTS geocoded_at TIMESTAMPTZ",
    """
    CREATE TABLE IF NOT EXISTS sync_state (
        job_name TEXT PRIMARY KEY,
        position BIGINT NOT NULL DEFAULT 0,
        total_processed INTEGER NOT NULL DEFAULT 0,
        total_imported INTEGER NOT NULL DEFAULT 0,
        total_skipped INTEGER NOT NULL DEFAULT 0,
        total_errors INTEGER NOT NULL DEFAULT 0,
        started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
)
