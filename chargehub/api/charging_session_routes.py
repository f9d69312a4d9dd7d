# chargehub/api/charging_session_routes.py
from fastapi import APIRouter, Query, status
from datetime import datetime
from typing import Optional
import logging

from chargehub.api.responses import INTERNAL_ERROR, error_response, result_response
from chargehub.models.session import DirectSessionStart, ReservationSessionStart, SessionStatus, SessionStop
from chargehub.services.session_management_service import SessionManagementService

router = APIRouter(prefix="/api/v1/charging-sessions", tags=["CHARGING SESSIONS"])

logger = logging.getLogger("chargehub.api.sessions")


@router.post("/from-reservation", status_code=status.HTTP_201_CREATED)
async def start_session_from_reservation(payload: ReservationSessionStart):
    """
    Start charging on a point the user has reserved.

    The reservation must be Confirmed, owned by the user, unexpired and for
    the same point. It becomes Active once the session starts.
    """
    try:
        result = await SessionManagementService.start_session(
            user_id=payload.user_id,
            point_id=payload.point_id,
            reservation_id=payload.reservation_id,
            vehicle_id=payload.vehicle_id,
            meter_start=payload.meter_start,
            initial_battery_percent=payload.initial_battery_percent,
            target_battery_percent=payload.target_battery_percent,
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Error starting session from reservation {payload.reservation_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.post("/direct", status_code=status.HTTP_201_CREATED)
async def start_direct_session(payload: DirectSessionStart):
    """Start charging on a walk-up point without a reservation."""
    try:
        result = await SessionManagementService.start_session(
            user_id=payload.user_id,
            point_id=payload.point_id,
            vehicle_id=payload.vehicle_id,
            meter_start=payload.meter_start,
            initial_battery_percent=payload.initial_battery_percent,
            target_battery_percent=payload.target_battery_percent,
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Error starting direct session on point {payload.point_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.post("/{session_id}/stop")
async def stop_session(session_id: int, payload: SessionStop):
    """
    Stop an active session.

    Returns the completed session and a cost summary (energy, energy cost,
    idle minutes, idle fee, total).
    """
    try:
        result = await SessionManagementService.stop_session(
            session_id=session_id,
            user_id=payload.user_id,
            meter_end=payload.meter_end,
            idle_minutes=payload.idle_minutes,
        )
        return result_response(result)
    except Exception as e:
        logger.error(f"Error stopping session {session_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/active/user/{user_id}")
async def get_active_session(user_id: int):
    """Get the user's active charging session."""
    try:
        result = await SessionManagementService.get_active_session(user_id)
        if result.success and result.data is None:
            return error_response(status.HTTP_404_NOT_FOUND, "No active session found")
        return result_response(result)
    except Exception as e:
        logger.error(f"Error getting active session for user {user_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/")
async def list_sessions(
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by user ID"),
    station_id: Optional[int] = Query(None, alias="stationId", description="Filter by station ID"),
    status_filter: Optional[SessionStatus] = Query(None, alias="status", description="Filter by session status"),
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Started at or after"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Started at or before"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0)
):
    """Session history, newest first."""
    try:
        result = await SessionManagementService.list_sessions(
            user_id=user_id,
            station_id=station_id,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
        return result_response(result)
    except Exception as e:
        logger.error(f"Error listing sessions: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/stats/summary")
async def get_session_stats(
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by user ID"),
    station_id: Optional[int] = Query(None, alias="stationId", description="Filter by station ID"),
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Started at or after"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Started at or before")
):
    """Session counts, energy, revenue and average duration."""
    try:
        result = await SessionManagementService.get_session_stats(
            user_id=user_id,
            station_id=station_id,
            start_date=start_date,
            end_date=end_date,
        )
        return result_response(result)
    except Exception as e:
        logger.error(f"Error computing session statistics: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/{session_id}")
async def get_session(session_id: int):
    """Get a charging session by ID."""
    try:
        result = await SessionManagementService.get_session(session_id)
        return result_response(result)
    except Exception as e:
        logger.error(f"Error getting session {session_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)
