# chargehub/services/session_management_service.py
import logging
from datetime import timedelta

from chargehub.config.charging_config import charging_settings
from chargehub.db.database import DataStoreIntegrityError, execute_query, execute_query_one, transaction
from chargehub.models.charging_point import PointStatus
from chargehub.models.common import CostSummary, ServiceResult
from chargehub.models.reservation import ReservationStatus
from chargehub.models.session import AlmostDoneResult, SessionStatus
from chargehub.services import point_status
from chargehub.services.cost_service import CostService
from chargehub.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RequestValidationError,
    failure_result,
)
from chargehub.services.reservation_service import ReservationService
from chargehub.utils import timeutils

logger = logging.getLogger("chargehub.sessions")

POINT_OCCUPIED = "Point is currently occupied by another session"
USER_CHARGING = "You already have an active charging session"

SESSION_WITH_CONTEXT = """
    SELECT cs.*,
           p.point_name, p.connector_type, p.power_kw, p.station_id, p.status AS point_status,
           s.name AS station_name, s.price_per_kwh,
           v.battery_capacity_kwh
    FROM charging_sessions cs
    JOIN charging_points p ON p.point_id = cs.point_id
    LEFT JOIN stations s ON s.station_id = p.station_id
    LEFT JOIN vehicles v ON v.vehicle_id = cs.vehicle_id
"""


def _load_session(session_id):
    return execute_query_one(SESSION_WITH_CONTEXT + " WHERE cs.session_id = ?", (session_id,))


class SessionManagementService:
    """Charging session lifecycle: start, almost-done detection, stop."""

    @staticmethod
    async def start_session(
        user_id,
        point_id,
        meter_start=0,
        reservation_id=None,
        vehicle_id=None,
        initial_battery_percent=None,
        target_battery_percent=None,
    ):
        """
        Start charging on a point, either walk-up or from a reservation.

        The checks run in order and stop at the first failure. The point
        status change, the session insert and the reservation hand-over are
        committed together; the point moves to InUse only if it is still
        Available or Reserved at commit time.

        Args:
            user_id (int): Driver starting the session
            point_id (int): Charging point
            meter_start (float): Meter reading at plug-in, kWh
            reservation_id (int): Reservation the session is started from
            vehicle_id (int): Vehicle being charged
            initial_battery_percent (float): State of charge at plug-in
            target_battery_percent (float): Requested state of charge, default 100

        Returns:
            ServiceResult: The new session with point and station context
        """
        try:
            if reservation_id is not None:
                validation = await ReservationService.validate_reservation(reservation_id, user_id)
                if not validation.valid:
                    raise InvalidStateError(validation.reason)
                if validation.reservation["point_id"] != point_id:
                    raise ConflictError(
                        f"Reservation {reservation_id} is for charging point {validation.reservation['point_id']}"
                    )

            point = execute_query_one(
                """
                SELECT p.point_id, p.status, p.power_kw, p.station_id, s.price_per_kwh
                FROM charging_points p
                LEFT JOIN stations s ON s.station_id = p.station_id
                WHERE p.point_id = ?
                """,
                (point_id,)
            )
            if not point:
                raise NotFoundError("Charging point not found")

            point_session = execute_query_one(
                "SELECT session_id FROM charging_sessions WHERE point_id = ? AND status = ?",
                (point_id, SessionStatus.ACTIVE.value)
            )
            if point_session:
                raise ConflictError(POINT_OCCUPIED)

            if point["status"] not in (PointStatus.AVAILABLE.value, PointStatus.RESERVED.value):
                raise ConflictError(f"Cannot start: Point is {point['status']}")

            user_session = execute_query_one(
                "SELECT session_id FROM charging_sessions WHERE user_id = ? AND status = ?",
                (user_id, SessionStatus.ACTIVE.value)
            )
            if user_session:
                raise ConflictError(USER_CHARGING)

            target_battery_percent = target_battery_percent or 100
            now = timeutils.utcnow()

            vehicle = None
            if vehicle_id is not None:
                vehicle = execute_query_one(
                    "SELECT battery_capacity_kwh FROM vehicles WHERE vehicle_id = ?",
                    (vehicle_id,)
                )
                if not vehicle:
                    raise NotFoundError(f"Vehicle {vehicle_id} not found")

            estimated_completion = None
            if vehicle and vehicle["battery_capacity_kwh"] and initial_battery_percent is not None:
                estimated_completion = CostService.estimate_completion_time(
                    now,
                    point["power_kw"],
                    vehicle["battery_capacity_kwh"],
                    initial_battery_percent,
                    target_battery_percent,
                )

            now_iso = timeutils.to_iso(now)
            estimated_iso = timeutils.to_iso(estimated_completion) if estimated_completion else None

            try:
                with transaction() as cursor:
                    if not point_status.transition_point(point_id, PointStatus.IN_USE, cursor=cursor):
                        raise ConflictError(POINT_OCCUPIED)

                    cursor.execute(
                        """
                        INSERT INTO charging_sessions (
                            user_id, vehicle_id, point_id, reservation_id, start_time,
                            meter_start, initial_battery_percent, target_battery_percent,
                            estimated_completion_time, status, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            user_id, vehicle_id, point_id, reservation_id, now_iso,
                            meter_start, initial_battery_percent, target_battery_percent,
                            estimated_iso, SessionStatus.ACTIVE.value, now_iso,
                        )
                    )
                    session_id = cursor.lastrowid

                    if reservation_id is not None:
                        cursor.execute(
                            """
                            UPDATE reservations SET status = ?, updated_at = ?
                            WHERE reservation_id = ? AND status = ?
                            """,
                            (
                                ReservationStatus.ACTIVE.value, now_iso,
                                reservation_id, ReservationStatus.CONFIRMED.value,
                            )
                        )
                        if cursor.rowcount != 1:
                            raise InvalidStateError("Reservation not found or expired")
            except DataStoreIntegrityError as e:
                if "UNIQUE" not in str(e):
                    raise
                if "user_id" in str(e):
                    raise ConflictError(USER_CHARGING) from None
                raise ConflictError(POINT_OCCUPIED) from None

            session = _load_session(session_id)
            logger.info(f"✅ Session started: {session_id} for user {user_id} on point {point_id}")
            return ServiceResult.ok(data=session, message="Charging session started")

        except Exception as e:
            return failure_result(e, "starting session", logger)

    @staticmethod
    async def stop_session(session_id, user_id, meter_end=None, idle_minutes=0):
        """
        Stop an active session and freeze its energy and cost.

        Energy is the metered delta when ``meter_end`` is given, otherwise the
        point's power over the elapsed time. Either way it is capped by the
        vehicle's remaining headroom and the per-session ceiling, and the
        stored meter_end is meter_start plus the capped energy.

        Args:
            session_id (int): Session to stop
            user_id (int): Owner of the session
            meter_end (float): Meter reading at unplug, kWh
            idle_minutes (int): Minutes the vehicle blocked the point after charging

        Returns:
            ServiceResult: Completed session plus a cost summary
        """
        try:
            session = execute_query_one(
                SESSION_WITH_CONTEXT + " WHERE cs.session_id = ? AND cs.user_id = ?",
                (session_id, user_id)
            )
            if not session:
                raise NotFoundError("Session not found")

            if session["status"] != SessionStatus.ACTIVE.value:
                raise InvalidStateError(f"Cannot stop: Session is {session['status']}")

            now = timeutils.utcnow()
            meter_start = session["meter_start"] or 0
            idle_minutes = int(idle_minutes or 0)

            if meter_end is not None:
                if meter_end < meter_start:
                    raise RequestValidationError(
                        f"meterEnd ({meter_end}) must not be lower than meterStart ({meter_start})"
                    )
                raw_energy = meter_end - meter_start
            else:
                raw_energy = CostService.elapsed_energy(
                    session["power_kw"],
                    timeutils.parse_timestamp(session["start_time"]),
                    now,
                )

            max_chargeable = CostService.max_chargeable_energy(
                session["battery_capacity_kwh"],
                session["initial_battery_percent"],
                session["target_battery_percent"],
            )
            energy_kwh = round(CostService.cap_energy(raw_energy, max_chargeable), 2)
            final_meter_end = round(meter_start + energy_kwh, 2)

            total_cost, breakdown = CostService.calculate_session_cost(
                energy_kwh, session["price_per_kwh"], idle_minutes
            )
            now_iso = timeutils.to_iso(now)

            with transaction() as cursor:
                cursor.execute(
                    """
                    UPDATE charging_sessions
                    SET end_time = ?, meter_end = ?, energy_consumed_kwh = ?,
                        idle_minutes = ?, idle_fee = ?, cost = ?, status = ?
                    WHERE session_id = ? AND status = ?
                    """,
                    (
                        now_iso, final_meter_end, energy_kwh,
                        idle_minutes, breakdown["idle_fee"], total_cost, SessionStatus.COMPLETED.value,
                        session_id, SessionStatus.ACTIVE.value,
                    )
                )
                if cursor.rowcount != 1:
                    raise InvalidStateError(f"Cannot stop: Session is {SessionStatus.COMPLETED.value}")

                point_status.transition_point(session["point_id"], PointStatus.AVAILABLE, cursor=cursor)

                if session["reservation_id"] is not None:
                    cursor.execute(
                        """
                        UPDATE reservations SET status = ?, updated_at = ?
                        WHERE reservation_id = ? AND status = ?
                        """,
                        (
                            ReservationStatus.COMPLETED.value, now_iso,
                            session["reservation_id"], ReservationStatus.ACTIVE.value,
                        )
                    )

            logger.info(f"✅ Session stopped: {session_id} ({energy_kwh} kWh, {total_cost} VND)")
            return ServiceResult.ok(
                data=_load_session(session_id),
                message="Charging session completed",
                summary=CostSummary(**breakdown),
            )

        except Exception as e:
            return failure_result(e, "stopping session", logger)

    @staticmethod
    async def detect_almost_done_sessions():
        """
        Flag points whose session should finish within the almost-done window.
        Called by the charging scheduler.

        Returns:
            AlmostDoneResult: Number of points moved to AlmostDone
        """
        try:
            now = timeutils.utcnow()
            window_end = now + timedelta(minutes=charging_settings.almost_done_window_minutes)

            sessions = execute_query(
                """
                SELECT session_id, point_id, estimated_completion_time
                FROM charging_sessions
                WHERE status = ? AND estimated_completion_time IS NOT NULL
                """,
                (SessionStatus.ACTIVE.value,)
            )

            point_ids = [
                s["point_id"] for s in sessions
                if now <= timeutils.parse_timestamp(s["estimated_completion_time"]) <= window_end
            ]
            if not point_ids:
                return AlmostDoneResult(success=True, updated=0)

            updated = point_status.mark_points_almost_done(point_ids)
            if updated > 0:
                logger.info(f"🟡 Detected {updated} sessions almost done")
            return AlmostDoneResult(success=True, updated=updated)

        except Exception as e:
            logger.error(f"❌ Error detecting almost done sessions: {str(e)}", exc_info=True)
            return AlmostDoneResult(success=False, error=str(e))

    @staticmethod
    async def get_active_session(user_id):
        """
        Get the user's active session with point, station and vehicle context.

        Returns:
            ServiceResult: data is None when the user is not charging
        """
        try:
            session = execute_query_one(
                SESSION_WITH_CONTEXT + " WHERE cs.user_id = ? AND cs.status = ? ORDER BY cs.start_time DESC LIMIT 1",
                (user_id, SessionStatus.ACTIVE.value)
            )
            return ServiceResult.ok(data=session)

        except Exception as e:
            return failure_result(e, "fetching active session", logger)

    @staticmethod
    async def get_session(session_id):
        try:
            session = _load_session(session_id)
            if not session:
                raise NotFoundError(f"Session with ID {session_id} not found")
            return ServiceResult.ok(data=session)

        except Exception as e:
            return failure_result(e, "fetching session", logger)

    @staticmethod
    async def list_sessions(user_id=None, station_id=None, status=None, start_date=None, end_date=None,
                            limit=50, offset=0):
        """
        Session history, newest first.

        Args:
            user_id (int): Only this driver's sessions
            station_id (int): Only sessions on this station's points
            status (SessionStatus): Only sessions in this status
            start_date (datetime): Sessions started at or after this instant
            end_date (datetime): Sessions started at or before this instant
            limit (int): Page size
            offset (int): Rows to skip

        Returns:
            ServiceResult: data is the page of sessions, total the number matching
        """
        try:
            sessions = _filter_by_start_time(
                _query_sessions(user_id, station_id, status), start_date, end_date
            )
            return ServiceResult.ok(data=sessions[offset:offset + limit], total=len(sessions))

        except Exception as e:
            return failure_result(e, "listing sessions", logger)

    @staticmethod
    async def get_session_stats(user_id=None, station_id=None, start_date=None, end_date=None):
        """
        Totals over the matching sessions: counts per status, energy, revenue
        and the average duration of finished sessions in whole minutes.
        """
        try:
            sessions = _filter_by_start_time(
                _query_sessions(user_id, station_id), start_date, end_date
            )

            durations = [
                (timeutils.parse_timestamp(s["end_time"]) - timeutils.parse_timestamp(s["start_time"])).total_seconds() / 60
                for s in sessions if s["start_time"] and s["end_time"]
            ]
            stats = {
                "total_sessions": len(sessions),
                "active_sessions": sum(1 for s in sessions if s["status"] == SessionStatus.ACTIVE.value),
                "completed_sessions": sum(1 for s in sessions if s["status"] == SessionStatus.COMPLETED.value),
                "total_energy_consumed_kwh": round(sum(s["energy_consumed_kwh"] or 0 for s in sessions), 2),
                "total_revenue": sum(s["cost"] or 0 for s in sessions),
                "average_session_duration_minutes": round(sum(durations) / len(durations)) if durations else 0,
            }
            return ServiceResult.ok(data=stats)

        except Exception as e:
            return failure_result(e, "computing session statistics", logger)


def _query_sessions(user_id=None, station_id=None, status=None):
    clauses, params = [], []
    if user_id is not None:
        clauses.append("cs.user_id = ?")
        params.append(user_id)
    if station_id is not None:
        clauses.append("p.station_id = ?")
        params.append(station_id)
    if status is not None:
        clauses.append("cs.status = ?")
        params.append(SessionStatus(status).value)

    query = SESSION_WITH_CONTEXT
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY cs.start_time DESC, cs.session_id DESC"
    return execute_query(query, tuple(params))


def _filter_by_start_time(sessions, start_date=None, end_date=None):
    start_date = timeutils.parse_timestamp(start_date)
    end_date = timeutils.parse_timestamp(end_date)
    return [
        s for s in sessions
        if (start_date is None or timeutils.parse_timestamp(s["start_time"]) >= start_date)
        and (end_date is None or timeutils.parse_timestamp(s["start_time"]) <= end_date)
    ]
