# chargehub/config/charging_config.py
from pydantic_settings import BaseSettings
from typing import List


class ChargingSettings(BaseSettings):
    """Charging session, reservation and scheduler configuration."""

    # Reservations
    reservation_hold_minutes: int = 15

    # Scheduler
    scheduler_enabled: bool = True
    reservation_expiry_interval_seconds: int = 30
    almost_done_interval_seconds: int = 60
    almost_done_window_minutes: int = 5

    # Energy defaults used when the point or vehicle row carries no value
    default_power_kw: float = 7.0
    default_battery_capacity_kwh: float = 100.0
    max_session_energy_kwh: float = 200.0

    # Pricing (VND)
    default_price_per_kwh: float = 5000.0
    idle_fee_per_minute: float = 1000.0
    usd_price_threshold: float = 10.0
    usd_to_vnd_rate: float = 24000.0

    # HTTP
    cors_allow_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_prefix = "CHARGING_"
        extra = "ignore"


# Global charging settings instance
charging_settings = ChargingSettings()
