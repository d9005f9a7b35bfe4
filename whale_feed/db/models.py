"""SQLite database schema."""

SCHEMA = """
-- Durable key-value settings (persisted filter predicates live here)
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP NOT NULL
);
"""
