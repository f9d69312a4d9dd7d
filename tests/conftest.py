from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from chargehub.config.charging_config import charging_settings
from chargehub.config.database_config import database_settings
from chargehub.db.database import execute_insert, execute_query_one, init_db
from chargehub.utils import timeutils

T0 = datetime(2025, 1, 3, 10, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Stands in for timeutils.utcnow; moves only when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Seeder:
    """Inserts the stations, points and vehicles a test needs."""

    def station(self, price_per_kwh=0.35, name="Central Station"):
        return execute_insert(
            "INSERT INTO stations (name, address, price_per_kwh, created_at) VALUES (?, ?, ?, ?)",
            (name, "1 Main Street", price_per_kwh, timeutils.to_iso(T0))
        )

    def point(self, station_id=None, power_kw=7.0, status="Available", name="P1"):
        if station_id is None:
            station_id = self.station()
        return execute_insert(
            """
            INSERT INTO charging_points (station_id, point_name, connector_type, power_kw, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (station_id, name, "CCS2", power_kw, status, timeutils.to_iso(T0))
        )

    def vehicle(self, user_id=1, battery_capacity_kwh=60.0):
        return execute_insert(
            "INSERT INTO vehicles (user_id, plate_number, model, battery_capacity_kwh, created_at) VALUES (?, ?, ?, ?, ?)",
            (user_id, "51A-12345", "VF8", battery_capacity_kwh, timeutils.to_iso(T0))
        )


def point_status_of(point_id):
    return execute_query_one("SELECT status FROM charging_points WHERE point_id = ?", (point_id,))["status"]


def reservation_status_of(reservation_id):
    return execute_query_one(
        "SELECT status FROM reservations WHERE reservation_id = ?", (reservation_id,)
    )["status"]


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Fresh SQLite file per test."""
    path = tmp_path / "chargehub-test.db"
    monkeypatch.setattr(database_settings, "database_path", str(path))
    assert init_db()
    return path


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    frozen = FrozenClock(T0)
    monkeypatch.setattr(timeutils, "utcnow", frozen)
    return frozen


@pytest.fixture
def seed():
    return Seeder()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(charging_settings, "scheduler_enabled", False)

    from chargehub.main import app

    with TestClient(app) as test_client:
        yield test_client
