"""
Database Configuration
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator

from ledgerbook.core.config import settings

# Get the properly formatted database URL
db_url = settings.database_url


def configure_sqlite_savepoints(target: Engine) -> None:
    """
    Let pysqlite honour SAVEPOINT.

    The driver opens transactions lazily on its own, which breaks
    Session.begin_nested(); hand transaction control back to SQLAlchemy.
    """
    @event.listens_for(target, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


# Create engine
engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if "sqlite" in db_url else {},
    echo=settings.DEBUG
)
if engine.dialect.name == "sqlite":
    configure_sqlite_savepoints(engine)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base model
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Ensures the session is closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Initialize database tables"""
    # Import all models to register them with Base
    from ledgerbook.models import (
        Account, AccountTransaction, StockItem, StockMovement,
        Customer, SalesInvoice, SalesInvoiceItem
    )
    Base.metadata.create_all(bind=bind or engine)
