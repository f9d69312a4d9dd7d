# chargehub/models/common.py
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    VALIDATION = "validation"
    STORE = "store"


class CostSummary(BaseModel):
    """Cost breakdown returned when a session stops."""
    energy_consumed_kwh: float
    price_per_kwh: float
    energy_cost: float
    idle_minutes: int
    idle_fee: float
    total_cost: int


class ServiceResult(BaseModel):
    """Uniform result returned by the reservation and session managers."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    summary: Optional[CostSummary] = None
    total: Optional[int] = None

    # Internal routing hint for the API layer, never serialized
    error_kind: Optional[ErrorKind] = Field(default=None, exclude=True)

    @classmethod
    def ok(cls, data=None, message=None, summary=None, total=None):
        return cls(success=True, data=data, message=message, summary=summary, total=total)

    @classmethod
    def fail(cls, error, error_kind):
        return cls(success=False, error=error, error_kind=error_kind)
