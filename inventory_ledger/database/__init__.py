from inventory_ledger.database.base import Base
from inventory_ledger.database.engine import configure_sqlite_engine, engine, ensure_sqlite_schema
from inventory_ledger.database.session import SessionLocal

__all__ = ["Base", "configure_sqlite_engine", "engine", "ensure_sqlite_schema", "SessionLocal"]
