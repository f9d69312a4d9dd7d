import asyncio
from types import SimpleNamespace

from chargehub.config.charging_config import ChargingSettings
from chargehub.models.reservation import ExpiryResult
from chargehub.models.session import AlmostDoneResult
from chargehub.services.charging_scheduler import ChargingScheduler
from chargehub.services.reservation_service import ReservationService

from conftest import reservation_status_of

FAST = SimpleNamespace(reservation_expiry_interval_seconds=0.01, almost_done_interval_seconds=0.01)


class FakeReservations:
    def __init__(self, failures=0):
        self.calls = 0
        self.failures = failures

    async def expire_old_reservations(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("store unavailable")
        return ExpiryResult(success=True, expired=1)


class FakeSessions:
    def __init__(self, result=None):
        self.calls = 0
        self.result = result or AlmostDoneResult(success=True, updated=0)

    async def detect_almost_done_sessions(self):
        self.calls += 1
        return self.result


async def test_start_runs_jobs_immediately_and_periodically():
    reservations, sessions = FakeReservations(), FakeSessions()
    scheduler = ChargingScheduler(reservations, sessions, settings=FAST)

    await scheduler.start()
    assert scheduler.is_running
    assert reservations.calls >= 1
    assert sessions.calls >= 1

    await asyncio.sleep(0.1)
    assert reservations.calls >= 3
    assert sessions.calls >= 3

    await scheduler.stop()


async def test_stop_cancels_jobs():
    reservations, sessions = FakeReservations(), FakeSessions()
    scheduler = ChargingScheduler(reservations, sessions, settings=FAST)
    await scheduler.start()
    tasks = list(scheduler.tasks.values())

    await scheduler.stop()
    assert not scheduler.is_running
    assert all(task.cancelled() for task in tasks)
    assert scheduler.tasks == {"reservation_expiry": None, "almost_done_detection": None}

    calls = reservations.calls
    await asyncio.sleep(0.05)
    assert reservations.calls == calls


async def test_failing_tick_does_not_stop_the_job():
    reservations, sessions = FakeReservations(failures=2), FakeSessions()
    scheduler = ChargingScheduler(reservations, sessions, settings=FAST)

    await scheduler.start()
    await asyncio.sleep(0.1)

    assert reservations.calls > 2
    assert not scheduler.tasks["reservation_expiry"].done()
    assert sessions.calls >= 3
    await scheduler.stop()


async def test_failed_result_is_reported_as_zero():
    sessions = FakeSessions(AlmostDoneResult(success=False, error="boom"))
    scheduler = ChargingScheduler(FakeReservations(), sessions, settings=FAST)

    assert await scheduler.detect_almost_done() == 0


async def test_start_and_stop_are_idempotent():
    scheduler = ChargingScheduler(FakeReservations(), FakeSessions(), settings=FAST)
    await scheduler.stop()
    assert not scheduler.is_running

    await scheduler.start()
    first_tasks = dict(scheduler.tasks)
    await scheduler.start()
    assert scheduler.tasks == first_tasks

    await scheduler.stop()


async def test_status_labels():
    scheduler = ChargingScheduler(FakeReservations(), FakeSessions(), settings=ChargingSettings())
    assert scheduler.get_status() == {
        "is_running": False,
        "intervals": {
            "reservation_expiry": "Inactive",
            "almost_done_detection": "Inactive",
        },
    }

    await scheduler.start()
    assert scheduler.get_status() == {
        "is_running": True,
        "intervals": {
            "reservation_expiry": "Active (30s)",
            "almost_done_detection": "Active (1min)",
        },
    }
    await scheduler.stop()


async def test_expires_lapsed_reservations_on_start(seed, clock):
    created = await ReservationService.create_reservation(1, seed.point(), 15)
    reservation_id = created.data["reservation_id"]
    clock.advance(minutes=16)

    scheduler = ChargingScheduler(settings=ChargingSettings())
    await scheduler.start()
    await scheduler.stop()

    assert reservation_status_of(reservation_id) == "Expired"
