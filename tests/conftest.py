import mongomock
import pytest
from fastapi.testclient import TestClient

from smartcharge.core.config import Settings
from smartcharge.main import create_app

API_KEY = "test-device-key"


@pytest.fixture
def settings():
    return Settings(
        app_env="production",
        iot_api_key=API_KEY,
        auth_required=False,
        jwt_secret="test-secret",
        reservation_lock_timeout=0.3,
    )


@pytest.fixture
def db():
    database = mongomock.MongoClient()["smartcharge_test"]
    database.stations.insert_many([
        {
            "_id": 1,
            "name": "Station Bastille A1",
            "status": "AVAILABLE",
            "max_power": 22.0,
            "power_type": "AC_FAST",
            "device_id": "ESP32-BASTILLE-001",
            "last_ping": None,
        },
        {
            "_id": 2,
            "name": "Station République B2",
            "status": "AVAILABLE",
            "max_power": 50.0,
            "power_type": "DC_FAST",
            "device_id": None,
            "last_ping": None,
        },
        {
            "_id": 3,
            "name": "Station Montparnasse C3",
            "status": "MAINTENANCE",
            "max_power": 7.4,
            "power_type": "AC_SLOW",
            "device_id": "ESP32-MONTPARNASSE-003",
            "last_ping": None,
        },
    ])
    database.users.insert_one({"_id": "user-1", "name": "Ren", "email": "ren@example.com"})
    return database


@pytest.fixture
def app(settings, db):
    return create_app(settings, db=db)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def device_headers():
    return {"x-api-key": API_KEY}
