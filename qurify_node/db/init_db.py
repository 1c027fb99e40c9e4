from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy import text
from sqlmodel import SQLModel

from qurify_node.config.runtime import RuntimeSettings
from qurify_node.db.pg_notify import _checked
from qurify_node.db.session import engine
from qurify_node.db.tables import *  # noqa: F401,F403


def tables_to_reset() -> list[str]:
    return [
        "game_progress",
        "score_records",
        "profiles",
        "alembic_version",
    ]


def insert_trigger_statements(channel: str) -> list[str]:
    """DDL for the AFTER INSERT trigger that announces new score records."""
    channel = _checked(channel)
    return [
        f"""
        CREATE OR REPLACE FUNCTION notify_score_inserted() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify('{channel}', json_build_object(
                'id', NEW.id,
                'subject_id', NEW.subject_id,
                'category_id', NEW.category_id,
                'points', NEW.points,
                'recorded_at', NEW.recorded_at
            )::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """,
        "DROP TRIGGER IF EXISTS score_records_notify_insert ON score_records",
        """
        CREATE TRIGGER score_records_notify_insert
        AFTER INSERT ON score_records
        FOR EACH ROW EXECUTE FUNCTION notify_score_inserted()
        """,
    ]


def install_insert_trigger(channel: str | None = None) -> None:
    channel = channel or RuntimeSettings.from_env().score_inserted_channel
    with engine.begin() as conn:
        for statement in insert_trigger_statements(channel):
            conn.execute(text(statement))


def _find_alembic_dir() -> Path | None:
    """Locate the Alembic migrations directory.

    Checks ``ALEMBIC_DIR`` first, then ``<repo>/alembic/`` next to the package.
    Returns ``None`` when neither exists; callers fall back to
    ``SQLModel.metadata.create_all()``.
    """
    def _is_valid(p: Path) -> bool:
        return p.is_dir() and (p / "env.py").exists() and (p / "versions").is_dir()

    env_dir = os.getenv("ALEMBIC_DIR")
    if env_dir and _is_valid(Path(env_dir)):
        return Path(env_dir)

    repo_dir = Path(__file__).resolve().parent.parent.parent / "alembic"
    if _is_valid(repo_dir):
        return repo_dir

    return None


def _run_alembic_upgrade(alembic_dir: Path) -> None:
    from alembic.config import Config
    from alembic import command

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(alembic_dir))
    alembic_cfg.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False))
    command.upgrade(alembic_cfg, "head")


def migrate() -> None:
    """Create or upgrade the schema and (re)install the insert trigger.
    Safe to run on every boot; never drops data."""
    alembic_dir = _find_alembic_dir()
    if alembic_dir is not None:
        print(f"➡️  Running Alembic migrations from {alembic_dir} ...")
        try:
            _run_alembic_upgrade(alembic_dir)
        except Exception as exc:
            print(f"⚠️  Alembic migration failed ({exc}), falling back to create_all...")
            SQLModel.metadata.create_all(engine)
    else:
        print("➡️  No Alembic migrations directory found, using SQLModel create_all...")
        SQLModel.metadata.create_all(engine)

    print("➡️  Installing score insert trigger...")
    install_insert_trigger()

    print("✅ Database migration complete.")


def reset_db() -> None:
    """Drop all tables and recreate from scratch. Destroys all data."""
    print("⚠️  Dropping all tables...")
    with engine.begin() as conn:
        for table in tables_to_reset():
            conn.execute(text(f"DROP TABLE IF EXISTS {table} CASCADE"))

    migrate()
    print("✅ Database reset complete.")


if __name__ == "__main__":
    import sys

    if "--reset" in sys.argv:
        reset_db()
    else:
        migrate()
    sys.exit(0)
