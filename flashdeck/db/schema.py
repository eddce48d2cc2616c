"""
Defines the database schema for flashdeck using a SQL string constant.
This keeps the schema definition separate from the database connection and
operation logic.
"""

# "interval" is a SQL keyword, hence interval_days. The cards table carries no
# secondary indexes: DuckDB rewrites updates of indexed columns as
# delete+insert, which trips the primary key.
DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS cards (
        uuid UUID PRIMARY KEY,
        deck_name VARCHAR NOT NULL,
        front VARCHAR NOT NULL,
        back VARCHAR NOT NULL,
        ease_factor DOUBLE NOT NULL CHECK (ease_factor >= 1.3),
        interval_days BIGINT NOT NULL CHECK (interval_days >= 0),
        repetitions INTEGER NOT NULL CHECK (repetitions >= 0),
        next_review TIMESTAMP WITH TIME ZONE NOT NULL,
        last_review TIMESTAMP WITH TIME ZONE,
        difficulty VARCHAR NOT NULL,
        added_at TIMESTAMP WITH TIME ZONE NOT NULL,
        modified_at TIMESTAMP WITH TIME ZONE NOT NULL
    );

    CREATE SEQUENCE IF NOT EXISTS study_session_seq;

    CREATE TABLE IF NOT EXISTS study_sessions (
        session_id INTEGER PRIMARY KEY DEFAULT nextval('study_session_seq'),
        session_uuid UUID NOT NULL UNIQUE,
        deck_name VARCHAR NOT NULL,
        start_ts TIMESTAMP WITH TIME ZONE NOT NULL,
        end_ts TIMESTAMP WITH TIME ZONE NOT NULL,
        total_duration_ms BIGINT NOT NULL DEFAULT 0,
        cards_reviewed INTEGER NOT NULL DEFAULT 0,
        correct_answers INTEGER NOT NULL DEFAULT 0
    );

    CREATE INDEX IF NOT EXISTS idx_study_sessions_start_ts ON study_sessions (start_ts);
    CREATE INDEX IF NOT EXISTS idx_study_sessions_deck_name ON study_sessions (deck_name);
"""
