# chargehub/api/charging_point_routes.py
from fastapi import APIRouter, Query, status
from typing import Optional
import logging

from chargehub.api.responses import INTERNAL_ERROR, error_response, result_response
from chargehub.db.database import execute_query, execute_query_one
from chargehub.models.charging_point import ChargingPoint, PointStatus, PointStatusUpdate
from chargehub.models.common import ServiceResult
from chargehub.services import point_status
from chargehub.services.errors import failure_result

router = APIRouter(prefix="/api/v1/charging-points", tags=["CHARGING POINTS"])

logger = logging.getLogger("chargehub.api.points")


@router.get("/")
async def list_charging_points(
    station_id: Optional[int] = Query(None, alias="stationId", description="Filter by station ID"),
    status_filter: Optional[PointStatus] = Query(None, alias="status", description="Filter by point status")
):
    """List charging points with their station, ordered by ID."""
    try:
        query = """
            SELECT p.*, s.name AS station_name, s.address AS station_address, s.price_per_kwh
            FROM charging_points p
            LEFT JOIN stations s ON s.station_id = p.station_id
            WHERE 1=1
        """
        params = []
        if station_id is not None:
            query += " AND p.station_id = ?"
            params.append(station_id)
        if status_filter is not None:
            query += " AND p.status = ?"
            params.append(status_filter.value)
        query += " ORDER BY p.point_id"

        points = execute_query(query, tuple(params))
        return {"success": True, "data": points, "total": len(points)}
    except Exception as e:
        logger.error(f"Error listing charging points: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.get("/{point_id}")
async def get_charging_point(point_id: int):
    """Get a charging point by ID."""
    try:
        point = execute_query_one("SELECT * FROM charging_points WHERE point_id = ?", (point_id,))
        if not point:
            return error_response(status.HTTP_404_NOT_FOUND, f"Charging point with ID {point_id} not found")
        return {"success": True, "data": ChargingPoint.model_validate(point).model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error getting charging point {point_id}: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


@router.put("/{point_id}/status")
async def update_charging_point_status(point_id: int, payload: PointStatusUpdate):
    """
    Operator override of a point's status.

    Only Available, Maintenance and Offline can be set by hand; Reserved,
    InUse and AlmostDone follow charging sessions.
    """
    try:
        point = point_status.set_point_status(point_id, payload.status)
    except Exception as e:
        return result_response(failure_result(e, f"updating status of point {point_id}", logger))

    return result_response(ServiceResult.ok(
        data=point,
        message=f"Charging point status updated to {payload.status.value}"
    ))
