import logging
import sqlite3
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from inventory_ledger.config import Settings, get_settings


app_settings: Settings = get_settings()
logger = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT_SECONDS = 30
_SQLITE_BUSY_TIMEOUT_MS = _SQLITE_BUSY_TIMEOUT_SECONDS * 1000

_db_url = make_url(app_settings.DATABASE_URL)
is_sqlite = _db_url.get_backend_name() == "sqlite"
is_sqlite_memory = False
if is_sqlite:
    sqlite_db = _db_url.database
    is_sqlite_memory = sqlite_db in (None, "", ":memory:")
    if not is_sqlite_memory and _db_url.query.get("mode") == "memory":
        is_sqlite_memory = True

connect_args = {}
engine_kwargs: dict[str, object] = dict(pool_pre_ping=True)
if is_sqlite:
    connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS}
    if is_sqlite_memory:
        engine_kwargs.update(poolclass=StaticPool)

engine = create_engine(
    app_settings.DATABASE_URL,
    connect_args=connect_args,
    **engine_kwargs,
)


def configure_sqlite_engine(target: Engine, *, memory: bool = False) -> Engine:
    """Pragmas plus the pysqlite SAVEPOINT fix.

    pysqlite opens transactions lazily and never for SAVEPOINT, so
    ``Session.begin_nested()`` only behaves once the driver's own
    transaction handling is switched off and BEGIN is emitted explicitly.
    """

    @event.listens_for(target, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={_SQLITE_BUSY_TIMEOUT_MS}")
            if not memory:
                try:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=NORMAL")
                except sqlite3.DatabaseError:
                    pass
        finally:
            cursor.close()

    @event.listens_for(target, "begin")
    def _begin_sqlite_transaction(conn):
        conn.exec_driver_sql("BEGIN")

    return target


if is_sqlite:
    configure_sqlite_engine(engine, memory=is_sqlite_memory)


# Columns missing from databases created before cost tracking was added.
_SQLITE_COLUMN_DEFAULTS = {
    "stock_movements": {
        "unit_cost": "REAL",
        "avg_cost_after": "REAL",
    },
    "daily_stock": {
        "avg_cost": "REAL NOT NULL DEFAULT 0",
    },
}

_SNAPSHOT_UNIQUE_INDEX = "uq_daily_stock_product_date"


def _escape_sqlite_identifier(value: str) -> str:
    return value.replace('"', '""')


def _get_sqlite_columns(conn, table_name: str):
    escaped_table = _escape_sqlite_identifier(table_name)
    # noinspection SqlNoDataSourceInspection
    result = conn.exec_driver_sql(
        f'PRAGMA table_info("{escaped_table}")'
    ).mappings()
    return {row["name"] for row in result}


def _get_sqlite_index_columns(conn, index_name: str):
    escaped_index = _escape_sqlite_identifier(index_name)
    # noinspection SqlNoDataSourceInspection
    result = conn.exec_driver_sql(
        f'PRAGMA index_info("{escaped_index}")'
    ).mappings()
    return [row["name"] for row in result]


def _has_product_date_unique(conn) -> bool:
    # noinspection SqlNoDataSourceInspection
    indexes = conn.exec_driver_sql(
        "PRAGMA index_list(daily_stock)"
    ).mappings().all()
    for index in indexes:
        if not index.get("unique"):
            continue
        index_name = index.get("name")
        if not index_name:
            continue
        if set(_get_sqlite_index_columns(conn, index_name)) == {"product_id", "date"}:
            return True
    return False


def ensure_sqlite_schema(bind: Optional[Engine] = None):
    bind = bind if bind is not None else engine
    if bind.dialect.name != "sqlite":
        return
    with bind.connect() as conn:
        snapshots_exist = False
        with conn.begin():
            for table_name, columns in _SQLITE_COLUMN_DEFAULTS.items():
                existing = _get_sqlite_columns(conn, table_name)
                if not existing:
                    continue
                if table_name == "daily_stock":
                    snapshots_exist = True
                for column_name, ddl in columns.items():
                    if column_name in existing:
                        continue
                    escaped_table = _escape_sqlite_identifier(table_name)
                    escaped_column = _escape_sqlite_identifier(column_name)
                    # noinspection SqlNoDataSourceInspection
                    conn.exec_driver_sql(
                        f'ALTER TABLE "{escaped_table}" ADD COLUMN "{escaped_column}" {ddl}'
                    )
                    logger.info("Added column %s.%s", table_name, column_name)

        if not snapshots_exist:
            return

        with conn.begin():
            if _has_product_date_unique(conn):
                return
            # noinspection SqlNoDataSourceInspection
            duplicate = conn.exec_driver_sql(
                "SELECT product_id, date FROM daily_stock "
                "GROUP BY product_id, date HAVING COUNT(*) > 1 LIMIT 1"
            ).fetchone()
            if duplicate:
                logger.warning(
                    "Skipping unique index on daily_stock(product_id, date) due to duplicates "
                    "(first: product %s on %s).",
                    duplicate[0],
                    duplicate[1],
                )
                return
            # noinspection SqlNoDataSourceInspection
            conn.exec_driver_sql(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {_SNAPSHOT_UNIQUE_INDEX} "
                "ON daily_stock(product_id, date)"
            )
