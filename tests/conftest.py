from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from data_access import DataAccess
from database import Database
from main import create_app


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="mongodb://localhost:27017", database_name="test_analytics")


@pytest.fixture
def database(settings: Settings) -> Database:
    """Database context backed by an in-memory mongomock client."""
    return Database(settings, client=mongomock.MongoClient())


@pytest.fixture
def dal(database: Database) -> DataAccess:
    return DataAccess(database)


@pytest.fixture
def client(settings: Settings, database: Database):
    app = create_app(settings=settings, database=database)
    with TestClient(app) as c:
        yield c


def make_item(code: str, amount: int, total: str, date: datetime) -> dict:
    return {
        "date": date,
        "amount": amount,
        "transaction_code": code,
        "symbol": "amzn",
        "price": 10.5,
        "total": total,
    }


def make_bucket(account_id: int, count: int, items=None) -> dict:
    return {
        "account_id": account_id,
        "bucket_start_date": datetime(2020, 1, 1),
        "bucket_end_date": datetime(2020, 12, 31),
        "transaction_count": count,
        "transactions": items or [],
    }
