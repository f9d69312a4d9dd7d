"""
Charging point status state machine.

A point's status is a projection of the sessions and reservations running on
it. This module holds the transition table and is the only code that writes
``charging_points.status``; every write is conditional on the current status
being a legal source for the target, so a lost race shows up as a zero row
count instead of a silent overwrite.
"""
import logging

from chargehub.db.database import execute_query_one, execute_update, transaction
from chargehub.models.charging_point import PointStatus
from chargehub.services.errors import ConflictError, InvalidStateError, NotFoundError
from chargehub.utils import timeutils

logger = logging.getLogger("chargehub.points")

POINT_TRANSITIONS = {
    PointStatus.AVAILABLE: {
        PointStatus.RESERVED, PointStatus.IN_USE, PointStatus.ALMOST_DONE,
        PointStatus.MAINTENANCE, PointStatus.OFFLINE,
    },
    PointStatus.RESERVED: {
        PointStatus.AVAILABLE, PointStatus.IN_USE, PointStatus.ALMOST_DONE,
        PointStatus.MAINTENANCE, PointStatus.OFFLINE,
    },
    PointStatus.IN_USE: {
        PointStatus.AVAILABLE, PointStatus.ALMOST_DONE, PointStatus.MAINTENANCE, PointStatus.OFFLINE,
    },
    PointStatus.ALMOST_DONE: {
        PointStatus.AVAILABLE, PointStatus.MAINTENANCE, PointStatus.OFFLINE,
    },
    PointStatus.MAINTENANCE: {
        PointStatus.AVAILABLE, PointStatus.ALMOST_DONE, PointStatus.OFFLINE,
    },
    PointStatus.OFFLINE: {
        PointStatus.AVAILABLE, PointStatus.ALMOST_DONE, PointStatus.MAINTENANCE,
    },
}

# Targets an operator may set by hand; the rest follow sessions
OPERATOR_TARGETS = (PointStatus.AVAILABLE, PointStatus.MAINTENANCE, PointStatus.OFFLINE)


def can_transition(current, target):
    return PointStatus(target) in POINT_TRANSITIONS[PointStatus(current)]


def allowed_sources(target):
    """Statuses a point may leave to enter ``target``, in declaration order."""
    target = PointStatus(target)
    return [source for source in PointStatus if target in POINT_TRANSITIONS[source]]


def _conditional_update_sql(point_count, source_count):
    return (
        "UPDATE charging_points SET status = ?, updated_at = ?, last_seen_at = ? "
        f"WHERE point_id IN ({', '.join('?' * point_count)}) "
        f"AND status IN ({', '.join('?' * source_count)})"
    )


def _params(target, point_ids, sources):
    now = timeutils.to_iso(timeutils.utcnow())
    return (PointStatus(target).value, now, now, *point_ids, *[s.value for s in sources])


def transition_point(point_id, target, cursor=None):
    """
    Move a point to ``target`` if its current status allows it.

    Args:
        point_id (int): Charging point ID
        target (PointStatus): Status to move to
        cursor (sqlite3.Cursor): Open transaction cursor; a standalone
            update is issued when omitted

    Returns:
        bool: True if the point changed status
    """
    sources = allowed_sources(target)
    query = _conditional_update_sql(1, len(sources))
    params = _params(target, [point_id], sources)

    if cursor is not None:
        cursor.execute(query, params)
        changed = cursor.rowcount
    else:
        changed = execute_update(query, params)

    if changed == 1:
        logger.info(f"✅ Charging point {point_id} status updated to {PointStatus(target).value}")
    else:
        logger.warning(f"⚠️ Charging point {point_id} not moved to {PointStatus(target).value}")
    return changed == 1


def mark_points_almost_done(point_ids):
    """
    Flag points whose session is about to finish.

    Points already flagged are left untouched, so repeated calls report 0.

    Returns:
        int: Number of points that changed status
    """
    point_ids = list(dict.fromkeys(point_ids))
    if not point_ids:
        return 0
    sources = allowed_sources(PointStatus.ALMOST_DONE)
    query = _conditional_update_sql(len(point_ids), len(sources))
    return execute_update(query, _params(PointStatus.ALMOST_DONE, point_ids, sources))


def set_point_status(point_id, target):
    """
    Operator override of a point's status.

    Raises:
        NotFoundError: If the point does not exist
        InvalidStateError: If the target is session-driven or not reachable
        ConflictError: If the point still hosts an active session
    """
    target = PointStatus(target)
    if target not in OPERATOR_TARGETS:
        raise InvalidStateError(
            f"Status {target.value} is set by charging sessions. "
            f"Allowed: {', '.join(t.value for t in OPERATOR_TARGETS)}"
        )

    point = execute_query_one("SELECT * FROM charging_points WHERE point_id = ?", (point_id,))
    if not point:
        raise NotFoundError("Charging point not found")

    if point["status"] == target.value:
        return point

    if not can_transition(point["status"], target):
        raise InvalidStateError(f"Cannot change point from {point['status']} to {target.value}")

    # Sessions own the point until they stop
    with transaction() as cursor:
        cursor.execute(
            "SELECT session_id FROM charging_sessions WHERE point_id = ? AND status = 'Active'",
            (point_id,)
        )
        if cursor.fetchone():
            raise ConflictError("Point is currently occupied by another session")

        if not transition_point(point_id, target, cursor=cursor):
            raise ConflictError(f"Charging point {point_id} changed status concurrently, retry")

    return execute_query_one("SELECT * FROM charging_points WHERE point_id = ?", (point_id,))
