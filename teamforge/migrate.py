# teamforge/migrate.py
# Database migration module for PostgreSQL and SQLite
# Run: python -m teamforge.migrate

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Connection

from teamforge.db import get_db_connection


def run_migrations() -> None:
    """
    Run all database migrations (idempotent).
    Creates tables and indexes if missing.
    Safe to run multiple times.
    """
    print("[MIGRATE] Starting database migrations...")

    with get_db_connection() as conn:
        if conn.dialect.name == "postgresql":
            _run_postgres_migrations(conn)
        else:
            _run_sqlite_migrations(conn)

    print("[MIGRATE] All migrations complete!")


def _run_postgres_migrations(conn: Connection) -> None:
    """PostgreSQL-specific migrations."""
    print("[MIGRATE] Running PostgreSQL migrations...")

    # Display profiles (user ids come from the identity provider)
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS profiles (
            user_id TEXT PRIMARY KEY,
            name TEXT,
            bio TEXT,
            skills_json TEXT DEFAULT '[]',
            updated_at TIMESTAMPTZ
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS projects (
            id TEXT PRIMARY KEY,
            creator_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            domain TEXT,
            required_skills_json TEXT DEFAULT '[]',
            max_team_size INTEGER NOT NULL DEFAULT 5,
            is_public BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_creator ON projects(creator_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects(created_at)"))

    # One row per (project, requester): the join race is settled by this constraint
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS project_members (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id),
            user_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'accepted', 'rejected')),
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            UNIQUE(project_id, user_id)
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_project_members_user ON project_members(user_id)"))

    print("[MIGRATE] PostgreSQL migrations complete")


def _run_sqlite_migrations(conn: Connection) -> None:
    """SQLite-specific migrations."""
    print("[MIGRATE] Running SQLite migrations...")

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS profiles (
            user_id TEXT PRIMARY KEY,
            name TEXT,
            bio TEXT,
            skills_json TEXT DEFAULT '[]',
            updated_at TEXT
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS projects (
            id TEXT PRIMARY KEY,
            creator_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            domain TEXT,
            required_skills_json TEXT DEFAULT '[]',
            max_team_size INTEGER NOT NULL DEFAULT 5,
            is_public INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_creator ON projects(creator_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects(created_at)"))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS project_members (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL REFERENCES projects(id),
            user_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'accepted', 'rejected')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(project_id, user_id)
        )
    """))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_project_members_user ON project_members(user_id)"))

    print("[MIGRATE] SQLite migrations complete")


if __name__ == "__main__":
    run_migrations()
