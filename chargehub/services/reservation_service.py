# chargehub/services/reservation_service.py
import logging
from datetime import timedelta

from chargehub.config.charging_config import charging_settings
from chargehub.db.database import (
    DataStoreIntegrityError,
    execute_query,
    execute_query_one,
    execute_insert,
    execute_update,
)
from chargehub.models.charging_point import PointStatus
from chargehub.models.reservation import ExpiryResult, ReservationStatus, ReservationValidation
from chargehub.models.common import ServiceResult
from chargehub.services.errors import ConflictError, InvalidStateError, NotFoundError, failure_result
from chargehub.utils import timeutils

logger = logging.getLogger("chargehub.reservations")

RESERVATION_WITH_CONTEXT = """
    SELECT r.*,
           p.point_name, p.connector_type, p.power_kw,
           s.name AS station_name, s.address AS station_address, s.price_per_kwh
    FROM reservations r
    JOIN charging_points p ON p.point_id = r.point_id
    LEFT JOIN stations s ON s.station_id = p.station_id
"""


class ReservationService:
    """
    Time-boxed holds on charging points.

    Status flow:
        Confirmed -> Active     session started from the reservation
        Confirmed -> Expired    hold ran out (scheduler or validation)
        Confirmed -> Cancelled  owner cancelled
        Active    -> Completed  the session it started has stopped

    A reservation does not change the point's status; the point stays
    Available until a session actually starts on it.
    """

    @staticmethod
    async def create_reservation(user_id, point_id, duration_minutes=None):
        """
        Hold a charging point for a user.

        Args:
            user_id (int): User placing the hold
            point_id (int): Charging point to hold
            duration_minutes (int): Hold length, defaults to the configured 15 minutes

        Returns:
            ServiceResult: The new reservation row on success
        """
        try:
            duration_minutes = duration_minutes or charging_settings.reservation_hold_minutes

            point = execute_query_one(
                "SELECT point_id, status, station_id FROM charging_points WHERE point_id = ?",
                (point_id,)
            )
            if not point:
                raise NotFoundError(f"Charging point {point_id} not found. Please check the charging point ID.")

            if point["status"] != PointStatus.AVAILABLE.value:
                raise ConflictError(f"Cannot reserve: Point is {point['status']}")

            existing_reservation = execute_query_one(
                """
                SELECT reservation_id FROM reservations
                WHERE user_id = ? AND status IN (?, ?)
                """,
                (user_id, ReservationStatus.CONFIRMED.value, ReservationStatus.ACTIVE.value)
            )
            if existing_reservation:
                raise ConflictError("You already have an active reservation")

            existing_session = execute_query_one(
                "SELECT session_id FROM charging_sessions WHERE user_id = ? AND status = 'Active'",
                (user_id,)
            )
            if existing_session:
                raise ConflictError("You already have an active charging session")

            point_reservation = execute_query_one(
                """
                SELECT reservation_id FROM reservations
                WHERE point_id = ? AND status IN (?, ?)
                """,
                (point_id, ReservationStatus.CONFIRMED.value, ReservationStatus.ACTIVE.value)
            )
            if point_reservation:
                raise ConflictError("Point is already reserved by another user")

            now = timeutils.utcnow()
            now_iso = timeutils.to_iso(now)
            expire_iso = timeutils.to_iso(now + timedelta(minutes=duration_minutes))

            try:
                reservation_id = execute_insert(
                    """
                    INSERT INTO reservations (
                        user_id, point_id, station_id, start_time, expire_time,
                        status, confirmed_at, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id, point_id, point["station_id"], now_iso, expire_iso,
                        ReservationStatus.CONFIRMED.value, now_iso, now_iso, now_iso,
                    )
                )
            except DataStoreIntegrityError:
                raise ConflictError("Point or user already holds an active reservation") from None

            reservation = execute_query_one(
                "SELECT * FROM reservations WHERE reservation_id = ?",
                (reservation_id,)
            )

            logger.info(f"✅ Reservation created: {reservation_id} for user {user_id} on point {point_id} until {expire_iso}")
            return ServiceResult.ok(
                data=reservation,
                message=f"Point reserved for {duration_minutes} minutes"
            )

        except Exception as e:
            return failure_result(e, "creating reservation", logger)

    @staticmethod
    async def cancel_reservation(reservation_id, user_id):
        """
        Cancel a confirmed reservation owned by the user.

        Returns:
            ServiceResult: The cancelled reservation row on success
        """
        try:
            reservation = execute_query_one(
                "SELECT * FROM reservations WHERE reservation_id = ? AND user_id = ?",
                (reservation_id, user_id)
            )
            if not reservation:
                raise NotFoundError("Reservation not found")

            if reservation["status"] != ReservationStatus.CONFIRMED.value:
                raise InvalidStateError(f"Cannot cancel: Reservation is {reservation['status']}")

            now_iso = timeutils.to_iso(timeutils.utcnow())
            updated = execute_update(
                """
                UPDATE reservations
                SET status = ?, cancelled_at = ?, updated_at = ?
                WHERE reservation_id = ? AND status = ?
                """,
                (
                    ReservationStatus.CANCELLED.value, now_iso, now_iso,
                    reservation_id, ReservationStatus.CONFIRMED.value,
                )
            )
            if updated != 1:
                current = execute_query_one(
                    "SELECT status FROM reservations WHERE reservation_id = ?",
                    (reservation_id,)
                )
                raise InvalidStateError(f"Cannot cancel: Reservation is {current['status']}")

            cancelled = execute_query_one(
                "SELECT * FROM reservations WHERE reservation_id = ?",
                (reservation_id,)
            )

            logger.info(f"✅ Reservation cancelled: {reservation_id}")
            return ServiceResult.ok(data=cancelled, message="Reservation cancelled")

        except Exception as e:
            return failure_result(e, "cancelling reservation", logger)

    @staticmethod
    async def get_active_reservation(user_id):
        """
        Get the user's most recent open reservation with point and station context.

        Returns:
            ServiceResult: data is None when the user holds no reservation
        """
        try:
            reservation = execute_query_one(
                """
                SELECT r.*,
                       p.point_name, p.connector_type, p.power_kw, p.status AS point_status,
                       s.name AS station_name, s.address AS station_address, s.price_per_kwh
                FROM reservations r
                JOIN charging_points p ON p.point_id = r.point_id
                LEFT JOIN stations s ON s.station_id = p.station_id
                WHERE r.user_id = ? AND r.status IN (?, ?)
                ORDER BY r.start_time DESC
                LIMIT 1
                """,
                (user_id, ReservationStatus.CONFIRMED.value, ReservationStatus.ACTIVE.value)
            )

            if reservation:
                expire_time = timeutils.parse_timestamp(reservation["expire_time"])
                remaining = (expire_time - timeutils.utcnow()).total_seconds()
                reservation["remaining_seconds"] = max(0, int(remaining))

            return ServiceResult.ok(data=reservation)

        except Exception as e:
            return failure_result(e, "fetching active reservation", logger)

    @staticmethod
    async def expire_old_reservations():
        """
        Expire every confirmed reservation whose hold has run out.
        Called by the charging scheduler.

        Returns:
            ExpiryResult: Number of reservations moved to Expired
        """
        try:
            now = timeutils.utcnow()
            candidates = execute_query(
                "SELECT reservation_id, point_id, expire_time FROM reservations WHERE status = ?",
                (ReservationStatus.CONFIRMED.value,)
            )

            expired_ids = [
                row["reservation_id"] for row in candidates
                if timeutils.parse_timestamp(row["expire_time"]) < now
            ]
            if not expired_ids:
                return ExpiryResult(success=True, expired=0)

            now_iso = timeutils.to_iso(now)
            id_marks = ", ".join("?" * len(expired_ids))
            expired = execute_update(
                f"""
                UPDATE reservations SET status = ?, updated_at = ?
                WHERE status = ? AND reservation_id IN ({id_marks})
                """,
                (ReservationStatus.EXPIRED.value, now_iso, ReservationStatus.CONFIRMED.value, *expired_ids)
            )

            if expired > 0:
                logger.info(f"⏰ Auto-expired {expired} reservations")
            return ExpiryResult(success=True, expired=expired)

        except Exception as e:
            logger.error(f"❌ Error expiring reservations: {str(e)}", exc_info=True)
            return ExpiryResult(success=False, error=str(e))

    @staticmethod
    async def validate_reservation(reservation_id, user_id):
        """
        Check that a reservation can still be turned into a session.

        A reservation past its expiry is flipped to Expired on the spot.

        Returns:
            ReservationValidation: valid with the reservation row, or invalid with a reason

        Raises:
            DataStoreError: If the store fails; callers report it as a server error
        """
        reservation = execute_query_one(
            """
            SELECT * FROM reservations
            WHERE reservation_id = ? AND user_id = ? AND status = ?
            """,
            (reservation_id, user_id, ReservationStatus.CONFIRMED.value)
        )
        if not reservation:
            return ReservationValidation(valid=False, reason="Reservation not found or expired")

        now = timeutils.utcnow()
        if now > timeutils.parse_timestamp(reservation["expire_time"]):
            execute_update(
                """
                UPDATE reservations SET status = ?, updated_at = ?
                WHERE reservation_id = ? AND status = ?
                """,
                (
                    ReservationStatus.EXPIRED.value, timeutils.to_iso(now),
                    reservation_id, ReservationStatus.CONFIRMED.value,
                )
            )
            logger.info(f"⏰ Reservation {reservation_id} expired during validation")
            return ReservationValidation(valid=False, reason="Reservation expired")

        return ReservationValidation(valid=True, reservation=reservation)

    @staticmethod
    async def get_available_points(station_id=None):
        """List Available points, optionally for one station."""
        try:
            query = """
                SELECT p.*, s.name AS station_name, s.address AS station_address, s.price_per_kwh
                FROM charging_points p
                LEFT JOIN stations s ON s.station_id = p.station_id
                WHERE p.status = ?
            """
            params = [PointStatus.AVAILABLE.value]
            if station_id is not None:
                query += " AND p.station_id = ?"
                params.append(station_id)
            query += " ORDER BY p.point_name"

            return ServiceResult.ok(data=execute_query(query, tuple(params)))

        except Exception as e:
            return failure_result(e, "fetching available points", logger)

    @staticmethod
    async def get_point_status(point_id):
        """Real-time status of a point together with its open reservation, if any."""
        try:
            point = execute_query_one(
                """
                SELECT p.point_id, p.point_name, p.status, p.connector_type, p.power_kw,
                       p.station_id, s.name AS station_name, s.price_per_kwh
                FROM charging_points p
                LEFT JOIN stations s ON s.station_id = p.station_id
                WHERE p.point_id = ?
                """,
                (point_id,)
            )
            if not point:
                raise NotFoundError("Charging point not found")

            point["active_reservation"] = execute_query_one(
                """
                SELECT reservation_id, user_id, expire_time, status FROM reservations
                WHERE point_id = ? AND status IN (?, ?)
                """,
                (point_id, ReservationStatus.CONFIRMED.value, ReservationStatus.ACTIVE.value)
            )
            return ServiceResult.ok(data=point)

        except Exception as e:
            return failure_result(e, "fetching point status", logger)

    @staticmethod
    async def get_user_reservations(user_id, status=None, limit=50, offset=0):
        """
        A user's reservation history, newest first.

        Args:
            user_id (int): Owner of the reservations
            status (ReservationStatus): Only reservations in this status
            limit (int): Page size
            offset (int): Rows to skip

        Returns:
            ServiceResult: data is the page, total the number of rows returned
        """
        try:
            query = RESERVATION_WITH_CONTEXT + " WHERE r.user_id = ?"
            params = [user_id]
            if status is not None:
                query += " AND r.status = ?"
                params.append(ReservationStatus(status).value)
            query += " ORDER BY r.created_at DESC, r.reservation_id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])

            reservations = execute_query(query, tuple(params))
            return ServiceResult.ok(data=reservations, total=len(reservations))

        except Exception as e:
            return failure_result(e, "fetching user reservations", logger)

    @staticmethod
    async def get_reservation(reservation_id):
        try:
            reservation = execute_query_one(
                RESERVATION_WITH_CONTEXT + " WHERE r.reservation_id = ?",
                (reservation_id,)
            )
            if not reservation:
                raise NotFoundError("Reservation not found")
            return ServiceResult.ok(data=reservation)

        except Exception as e:
            return failure_result(e, "fetching reservation", logger)

    @staticmethod
    async def get_station_reservations(station_id, status=None):
        """Reservations on any point of a station, newest first."""
        try:
            query = RESERVATION_WITH_CONTEXT + " WHERE p.station_id = ?"
            params = [station_id]
            if status is not None:
                query += " AND r.status = ?"
                params.append(ReservationStatus(status).value)
            query += " ORDER BY r.created_at DESC, r.reservation_id DESC"

            reservations = execute_query(query, tuple(params))
            return ServiceResult.ok(data=reservations, total=len(reservations))

        except Exception as e:
            return failure_result(e, "fetching station reservations", logger)
