from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class ReservationStatus(str, Enum):
    CONFIRMED = "Confirmed"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class ReservationCreate(BaseModel):
    """Schema for holding a charging point."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    point_id: int = Field(alias="pointId")
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes", gt=0, le=24 * 60)


class ReservationValidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")


class ReservationValidation(BaseModel):
    """Outcome of checking a reservation before a session starts from it."""
    valid: bool
    reason: Optional[str] = None
    reservation: Optional[Dict[str, Any]] = None


class ExpiryResult(BaseModel):
    success: bool
    expired: int = 0
    error: Optional[str] = None
