# chargehub/models/session.py
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class SessionStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"


class SessionStartBase(BaseModel):
    """Fields shared by every way of starting a charging session."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    point_id: int = Field(alias="pointId")
    vehicle_id: Optional[int] = Field(default=None, alias="vehicleId")
    meter_start: float = Field(alias="meterStart", ge=0)
    initial_battery_percent: Optional[float] = Field(default=None, alias="initialBatteryPercent", ge=0, le=100)
    target_battery_percent: Optional[float] = Field(default=None, alias="targetBatteryPercent", gt=0, le=100)

    @model_validator(mode="after")
    def check_battery_window(self):
        if (
            self.initial_battery_percent is not None
            and self.target_battery_percent is not None
            and self.target_battery_percent < self.initial_battery_percent
        ):
            raise ValueError("targetBatteryPercent must not be lower than initialBatteryPercent")
        return self


class DirectSessionStart(SessionStartBase):
    """Schema for starting a session on a walk-up point."""


class ReservationSessionStart(SessionStartBase):
    """Schema for starting a session from a held reservation."""
    reservation_id: int = Field(alias="reservationId")


class SessionStop(BaseModel):
    """Schema for stopping an active session."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    meter_end: Optional[float] = Field(default=None, alias="meterEnd", ge=0)
    idle_minutes: int = Field(default=0, alias="idleMinutes", ge=0)


class AlmostDoneResult(BaseModel):
    success: bool
    updated: int = 0
    error: Optional[str] = None
