import pytest

from chargehub.db.database import DataStoreIntegrityError, execute_insert, execute_update
from chargehub.models.charging_point import PointStatus
from chargehub.services import point_status
from chargehub.services.errors import ConflictError, InvalidStateError, NotFoundError
from chargehub.utils import timeutils

from conftest import point_status_of


class TestTransitionTable:
    def test_session_driven_transitions(self):
        assert point_status.can_transition("Available", "InUse")
        assert point_status.can_transition("Reserved", "InUse")
        assert point_status.can_transition("InUse", "AlmostDone")
        assert point_status.can_transition("AlmostDone", "Available")

    def test_cannot_start_on_busy_point(self):
        assert not point_status.can_transition("InUse", "InUse")
        assert not point_status.can_transition("AlmostDone", "InUse")
        assert not point_status.can_transition("Maintenance", "InUse")

    def test_allowed_sources_for_in_use(self):
        assert point_status.allowed_sources(PointStatus.IN_USE) == [PointStatus.AVAILABLE, PointStatus.RESERVED]

    def test_almost_done_is_not_its_own_source(self):
        assert PointStatus.ALMOST_DONE not in point_status.allowed_sources(PointStatus.ALMOST_DONE)


class TestConditionalWrites:
    def test_transition_applies_once(self, seed):
        point_id = seed.point()
        assert point_status.transition_point(point_id, PointStatus.IN_USE)
        assert not point_status.transition_point(point_id, PointStatus.IN_USE)
        assert point_status_of(point_id) == "InUse"

    def test_transition_unknown_point(self):
        assert not point_status.transition_point(999, PointStatus.IN_USE)

    def test_mark_almost_done_is_idempotent(self, seed):
        first = seed.point(status="InUse")
        second = seed.point(status="InUse", name="P2")
        assert point_status.mark_points_almost_done([first, second, first]) == 2
        assert point_status.mark_points_almost_done([first, second]) == 0
        assert point_status_of(first) == "AlmostDone"


class TestOperatorOverride:
    def test_set_maintenance(self, seed):
        point_id = seed.point()
        point = point_status.set_point_status(point_id, "Maintenance")
        assert point["status"] == "Maintenance"

    def test_session_statuses_rejected(self, seed):
        point_id = seed.point()
        with pytest.raises(InvalidStateError):
            point_status.set_point_status(point_id, PointStatus.IN_USE)

    def test_unknown_point(self):
        with pytest.raises(NotFoundError):
            point_status.set_point_status(999, PointStatus.OFFLINE)

    def test_release_blocked_by_active_session(self, seed):
        point_id = seed.point(status="InUse")
        now = timeutils.to_iso(timeutils.utcnow())
        execute_insert(
            "INSERT INTO charging_sessions (user_id, point_id, start_time, status, created_at) VALUES (?, ?, ?, ?, ?)",
            (1, point_id, now, "Active", now)
        )
        with pytest.raises(ConflictError):
            point_status.set_point_status(point_id, PointStatus.AVAILABLE)
        assert point_status_of(point_id) == "InUse"

    @pytest.mark.parametrize("target", [PointStatus.MAINTENANCE, PointStatus.OFFLINE])
    def test_takedown_blocked_by_active_session(self, seed, target):
        point_id = seed.point(status="InUse")
        now = timeutils.to_iso(timeutils.utcnow())
        execute_insert(
            "INSERT INTO charging_sessions (user_id, point_id, start_time, status, created_at) VALUES (?, ?, ?, ?, ?)",
            (1, point_id, now, "Active", now)
        )
        with pytest.raises(ConflictError, match="occupied"):
            point_status.set_point_status(point_id, target)
        assert point_status_of(point_id) == "InUse"

    def test_takedown_without_session(self, seed):
        point_id = seed.point(status="AlmostDone")
        point = point_status.set_point_status(point_id, PointStatus.OFFLINE)
        assert point["status"] == "Offline"


def test_store_rejects_second_active_session_on_point(seed):
    point_id = seed.point(status="InUse")
    now = timeutils.to_iso(timeutils.utcnow())
    insert = "INSERT INTO charging_sessions (user_id, point_id, start_time, status, created_at) VALUES (?, ?, ?, ?, ?)"
    execute_insert(insert, (1, point_id, now, "Active", now))
    with pytest.raises(DataStoreIntegrityError):
        execute_insert(insert, (2, point_id, now, "Active", now))


def test_store_rejects_unknown_status(seed):
    point_id = seed.point()
    with pytest.raises(DataStoreIntegrityError):
        execute_update(
            "UPDATE charging_points SET status = 'Broken' WHERE point_id = ?",
            (point_id,)
        )
