# chargehub/api/reservation_routes.py
from fastapi import APIRouter, Query, status
from typing import Optional
import logging

from chargehub.api.responses import INTERNAL_ERROR, error_response, result_response
from chargehub.models.common import ServiceResult
from chargehub.models.reservation import ReservationCreate, ReservationStatus, ReservationValidateRequest
from chargehub.services.reservation_service import ReservationService

router = APIRouter(prefix="/api/v1/reservations", tags=["RESERVATIONS"])

logger = logging.getLogger("chargehub.api.reservations")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_reservation(payload: ReservationCreate):
    """Hold a charging point for the user (15 minutes unless durationMinutes is given)."""
    try:
        result = await ReservationService.create_reservation(
            user_id=payload.user_id,
            point_id=payload.point_id,
            duration_minutes=payload.duration_minutes,
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Error creating reservation: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/active")
async def get_active_reservation(user_id: int = Query(..., alias="userId", description="User ID")):
    """Get the user's open reservation, with seconds remaining on the hold."""
    try:
        result = await ReservationService.get_active_reservation(user_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching active reservation for user {user_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/available-points")
async def get_available_points(station_id: Optional[int] = Query(None, alias="stationId", description="Filter by station ID")):
    """List charging points that can be reserved right now."""
    try:
        result = await ReservationService.get_available_points(station_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching available points: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/point/{point_id}/status")
async def get_point_status(point_id: int):
    """Real-time status of a charging point and its open reservation."""
    try:
        result = await ReservationService.get_point_status(point_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching status of point {point_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/user/{user_id}")
async def get_user_reservations(
    user_id: int,
    status_filter: Optional[ReservationStatus] = Query(None, alias="status", description="Filter by reservation status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0)
):
    """Reservation history of a user, newest first."""
    try:
        result = await ReservationService.get_user_reservations(user_id, status_filter, limit, offset)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching reservations of user {user_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/station/{station_id}")
async def get_station_reservations(
    station_id: int,
    status_filter: Optional[ReservationStatus] = Query(None, alias="status", description="Filter by reservation status")
):
    """Reservations on the points of a station."""
    try:
        result = await ReservationService.get_station_reservations(station_id, status_filter)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching reservations of station {station_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/{reservation_id}")
async def get_reservation(reservation_id: int):
    """Get a reservation by ID."""
    try:
        result = await ReservationService.get_reservation(reservation_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error fetching reservation {reservation_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.delete("/{reservation_id}")
async def cancel_reservation(reservation_id: int, user_id: int = Query(..., alias="userId", description="User ID")):
    """Cancel a confirmed reservation."""
    try:
        result = await ReservationService.cancel_reservation(reservation_id, user_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error cancelling reservation {reservation_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.post("/{reservation_id}/validate")
async def validate_reservation(reservation_id: int, payload: ReservationValidateRequest):
    """Check whether a reservation can still be used to start charging."""
    try:
        validation = await ReservationService.validate_reservation(reservation_id, payload.user_id)
        return result_response(ServiceResult.ok(data=validation.model_dump(exclude_none=True)))
    except Exception as e:
        logger.error(f"Error validating reservation {reservation_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)
