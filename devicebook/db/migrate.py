"""Small additive migrations for SQLite installations created by older builds."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

LOGGER = logging.getLogger(__name__)

# Columns added after the first release. Existing rows keep their data; new
# columns start out NULL or with the listed default.
DEVICE_COLUMNS: dict[str, str] = {
    "imei": "TEXT",
    "shipping_buy_date": "DATE",
    "shipping_sell_date": "DATE",
    "buyer_name": "TEXT",
    "platform_order_number": "TEXT",
    "sale_invoice_number": "TEXT",
    "seller_name": "TEXT",
    "is_diff_tax": "BOOLEAN DEFAULT 1 NOT NULL",
    "defects": "TEXT",
}

DEVICE_FILE_COLUMNS: dict[str, str] = {
    "file_type": "TEXT",
    "category": "TEXT DEFAULT 'OTHER' NOT NULL",
}

COMPANY_COLUMNS: dict[str, str] = {
    "country": "TEXT DEFAULT 'Deutschland' NOT NULL",
    "vat_id": "TEXT",
    "tax_id": "TEXT",
    "phone": "TEXT",
    "logo_url": "TEXT",
}


def _table_columns(engine: Engine, table: str) -> list[dict[str, object]]:
    with engine.connect() as conn:
        return conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()


def _column_names(engine: Engine, table: str) -> set[str]:
    return {record["name"] for record in _table_columns(engine, table)}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(
    engine: Engine,
    table: str,
    name: str,
    cols: Iterable[str],
    unique: bool = False,
    where: str | None = None,
) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    where_sql = f" WHERE {where}" if where else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql}){where_sql}"))


def _ensure_columns(engine: Engine, table: str, needed: dict[str, str]) -> None:
    existing = _column_names(engine, table)
    if not existing:
        # Table absent -> Base.metadata.create_all builds the fresh schema.
        return
    for name, dtype in needed.items():
        if name not in existing:
            LOGGER.info("Adding column %s.%s", table, name)
            _add_column_sqlite(engine, table, f"{name} {dtype}")


def _collapse_duplicate_eigenbelege(engine: Engine) -> None:
    """Keep only the newest EIGENBELEG record per device before indexing."""

    with engine.begin() as conn:
        conn.execute(
            text(
                """
                DELETE FROM device_files
                WHERE category = 'EIGENBELEG'
                  AND id NOT IN (
                    SELECT MAX(id) FROM device_files
                    WHERE category = 'EIGENBELEG'
                    GROUP BY device_id
                  )
                """
            )
        )


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up to date with the models."""

    if engine.dialect.name != "sqlite":
        return

    _ensure_columns(engine, "devices", DEVICE_COLUMNS)
    _ensure_columns(engine, "company_profiles", COMPANY_COLUMNS)
    _ensure_columns(engine, "device_files", DEVICE_FILE_COLUMNS)

    if _column_names(engine, "device_files"):
        _collapse_duplicate_eigenbelege(engine)
        _create_index_if_not_exists(
            engine,
            "device_files",
            "ux_device_files_eigenbeleg",
            ["device_id"],
            unique=True,
            where="category = 'EIGENBELEG'",
        )
    if _column_names(engine, "devices"):
        _create_index_if_not_exists(engine, "devices", "ix_devices_status", ["status"])
        _create_index_if_not_exists(engine, "devices", "ix_devices_purchase_date", ["purchase_date"])
