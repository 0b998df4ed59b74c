"""
Test configuration and fixtures.

Tests run against an in-memory SQLite database shared through a StaticPool.
Foreign keys are enforced and SAVEPOINTs work, so the per-row isolation of
the syncs behaves as it does on PostgreSQL.
"""
import os
import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test configuration before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "ledger-test-signing-key-0123456789abcdef"

from src.main import app
from src.db.base import Base
from src.db.session import get_db
from src.core.security import create_access_token, create_service_token
from src.models.account import ChartOfAccount
from src.models.restaurant import Restaurant, UserRestaurant
from src.models.unified_sale import UnifiedSale
from src.models.user import User
from src.services.access import Caller


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def _user(db: Session, email: str) -> User:
    user = User(email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db: Session) -> User:
    return _user(db, "owner@example.com")


@pytest.fixture
def manager(db: Session) -> User:
    return _user(db, "manager@example.com")


@pytest.fixture
def staff(db: Session) -> User:
    return _user(db, "staff@example.com")


@pytest.fixture
def outsider(db: Session) -> User:
    """A user who belongs to another restaurant only."""
    return _user(db, "outsider@example.com")


@pytest.fixture
def restaurant(db: Session, owner: User, manager: User, staff: User) -> Restaurant:
    """A Chicago restaurant with an owner, a manager and a staff member."""
    restaurant = Restaurant(name="Test Bistro", timezone="America/Chicago")
    db.add(restaurant)
    db.flush()
    db.add_all([
        UserRestaurant(user_id=owner.id, restaurant_id=restaurant.id, role="owner"),
        UserRestaurant(user_id=manager.id, restaurant_id=restaurant.id, role="manager"),
        UserRestaurant(user_id=staff.id, restaurant_id=restaurant.id, role="staff"),
    ])
    db.commit()
    db.refresh(restaurant)
    return restaurant


@pytest.fixture
def other_restaurant(db: Session, outsider: User) -> Restaurant:
    restaurant = Restaurant(name="Other Diner", timezone="America/New_York")
    db.add(restaurant)
    db.flush()
    db.add(UserRestaurant(user_id=outsider.id, restaurant_id=restaurant.id, role="owner"))
    db.commit()
    db.refresh(restaurant)
    return restaurant


def _account(db: Session, restaurant: Restaurant, code: str, name: str, account_type: str, subtype=None):
    account = ChartOfAccount(
        restaurant_id=restaurant.id,
        account_code=code,
        account_name=name,
        account_type=account_type,
        account_subtype=subtype,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def food_account(db: Session, restaurant: Restaurant) -> ChartOfAccount:
    return _account(db, restaurant, "4000", "Food Sales", "revenue", "food_sales")


@pytest.fixture
def beverage_account(db: Session, restaurant: Restaurant) -> ChartOfAccount:
    return _account(db, restaurant, "4100", "Beverage Sales", "revenue", "beverage_sales")


@pytest.fixture
def tips_account(db: Session, restaurant: Restaurant) -> ChartOfAccount:
    return _account(db, restaurant, "2300", "Tips Payable", "liability", "tips")


@pytest.fixture
def foreign_account(db: Session, other_restaurant: Restaurant) -> ChartOfAccount:
    """A category belonging to a different tenant."""
    return _account(db, other_restaurant, "4000", "Food Sales", "revenue", "food_sales")


@pytest.fixture
def owner_caller(owner: User) -> Caller:
    return Caller.user(owner.id)


@pytest.fixture
def manager_caller(manager: User) -> Caller:
    return Caller.user(manager.id)


@pytest.fixture
def staff_caller(staff: User) -> Caller:
    return Caller.user(staff.id)


@pytest.fixture
def outsider_caller(outsider: User) -> Caller:
    return Caller.user(outsider.id)


@pytest.fixture
def service_caller() -> Caller:
    return Caller.service("scheduler")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def owner_headers(owner: User) -> dict:
    return auth_headers(owner)


@pytest.fixture
def staff_headers(staff: User) -> dict:
    return auth_headers(staff)


@pytest.fixture
def service_headers() -> dict:
    return {"Authorization": f"Bearer {create_service_token('scheduler')}"}


@pytest.fixture
def make_sale(db: Session, restaurant: Restaurant):
    """Factory inserting a ledger row directly, bypassing the syncs."""
    counter = {"n": 0}

    def _make_sale(total, item_type="sale", adjustment_type=None, **overrides) -> UnifiedSale:
        counter["n"] += 1
        values = dict(
            restaurant_id=restaurant.id,
            pos_system="square",
            external_order_id=f"order-{counter['n']}",
            external_item_id=f"item-{counter['n']}",
            item_name=f"Item {counter['n']}",
            quantity=Decimal("1"),
            unit_price=Decimal(str(total)),
            total_price=Decimal(str(total)),
            sale_date=date(2024, 3, 1),
            item_type=item_type,
            adjustment_type=adjustment_type,
        )
        values.update(overrides)
        if values.get("category_id") is not None:
            values.setdefault("is_categorized", True)
        sale = UnifiedSale(**values)
        db.add(sale)
        db.commit()
        db.refresh(sale)
        return sale

    return _make_sale
