"""Small idempotent SQLite migrations for databases created by older releases."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

# Additive only: columns are added with defaults, nothing is dropped.


def _table_columns(engine: Engine, table: str) -> list[dict[str, object]]:
    with engine.connect() as conn:
        return conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()


def _column_names(engine: Engine, table: str) -> set[str]:
    return {record["name"] for record in _table_columns(engine, table)}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _merge_duplicate_details(engine: Engine) -> None:
    """Fold repeated (donation, item) detail rows into one so the unique index can be built."""

    with engine.begin() as conn:
        conn.execute(
            text(
                """
                UPDATE donation_details
                SET new_quantity = (
                        SELECT SUM(d.new_quantity) FROM donation_details d
                        WHERE d.donation_id = donation_details.donation_id
                          AND d.item_id = donation_details.item_id
                    ),
                    used_quantity = (
                        SELECT SUM(d.used_quantity) FROM donation_details d
                        WHERE d.donation_id = donation_details.donation_id
                          AND d.item_id = donation_details.item_id
                    )
                WHERE id IN (
                    SELECT MIN(id) FROM donation_details
                    GROUP BY donation_id, item_id HAVING COUNT(*) > 1
                )
                """
            )
        )
        conn.execute(
            text(
                """
                DELETE FROM donation_details
                WHERE id NOT IN (SELECT MIN(id) FROM donation_details GROUP BY donation_id, item_id)
                """
            )
        )


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up to date with the models."""

    if engine.dialect.name != "sqlite":
        return

    item_cols = _column_names(engine, "items")
    if item_cols and "version" not in item_cols:
        _add_column_sqlite(engine, "items", "version INTEGER DEFAULT 1 NOT NULL")

    donation_cols = _column_names(engine, "donations")
    if donation_cols and "direction" not in donation_cols:
        # Pre-direction databases only ever stored outgoing donations with stats rows.
        _add_column_sqlite(engine, "donations", "direction TEXT DEFAULT 'outgoing' NOT NULL")
        with engine.begin() as conn:
            conn.execute(
                text(
                    "UPDATE donations SET direction = 'incoming' "
                    "WHERE id NOT IN (SELECT donation_id FROM outgoing_donation_stats)"
                )
            )

    if _column_names(engine, "donation_details"):
        _merge_duplicate_details(engine)
        _create_index_if_not_exists(
            engine,
            "donation_details",
            "uq_donation_details_donation_item",
            ["donation_id", "item_id"],
            unique=True,
        )
