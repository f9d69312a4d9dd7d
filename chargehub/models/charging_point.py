from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class PointStatus(str, Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    IN_USE = "InUse"
    ALMOST_DONE = "AlmostDone"
    MAINTENANCE = "Maintenance"
    OFFLINE = "Offline"


class ChargingPoint(BaseModel):
    """Charging point model representing a connector slot in the database."""
    point_id: int
    station_id: int
    point_name: Optional[str] = None
    connector_type: Optional[str] = None
    power_kw: Optional[float] = None
    status: PointStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PointStatusUpdate(BaseModel):
    """Schema for an operator changing a point's status."""
    status: PointStatus
