"""
Shared fixtures: an in-memory SQLite database per test and a TestClient
wired to it.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerbook.core.database import Base, configure_sqlite_savepoints, get_db
from ledgerbook.main import app
from ledgerbook.schemas import AccountCreate, StockItemCreate, CustomerCreate
from ledgerbook.services.account_service import AccountService
from ledgerbook.services.stock_service import StockService
from ledgerbook.services.sales_service import CustomerService

import ledgerbook.models  # noqa: F401  registers tables on Base


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager so the lifespan hook never touches the real database
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==================== FACTORIES ====================

@pytest.fixture
def accounts(db):
    return AccountService(db)


@pytest.fixture
def stock(db):
    return StockService(db)


@pytest.fixture
def make_account(accounts):
    def _make(name="Cash in hand", opening_balance="0", kind="cash", **extra):
        return accounts.create(AccountCreate(
            name=name, kind=kind, opening_balance=Decimal(opening_balance), **extra
        ))
    return _make


@pytest.fixture
def make_item(stock):
    def _make(name="Widget", opening_stock="0", reorder_level="0", tax_rate="18", **extra):
        return stock.create(StockItemCreate(
            name=name,
            opening_stock=Decimal(opening_stock),
            reorder_level=Decimal(reorder_level),
            tax_rate=Decimal(tax_rate),
            **extra
        ))
    return _make


@pytest.fixture
def make_customer(db):
    def _make(name="Acme Traders", gstin=None, state_code=None):
        return CustomerService(db).create(CustomerCreate(name=name, gstin=gstin, state_code=state_code))
    return _make
