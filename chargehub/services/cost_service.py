# chargehub/services/cost_service.py
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from chargehub.config.charging_config import charging_settings

logger = logging.getLogger("chargehub.cost")


class CostService:
    """Energy and cost arithmetic for charging sessions."""

    @staticmethod
    def normalize_price_per_kwh(price_per_kwh):
        """
        Return the station price in VND per kWh.

        Stations priced before the move to VND still store USD values. Any
        price below the USD threshold is treated as USD and converted.

        Args:
            price_per_kwh (float | None): Price as stored on the station

        Returns:
            float: Price in VND per kWh
        """
        price = price_per_kwh or charging_settings.default_price_per_kwh
        if price < charging_settings.usd_price_threshold:
            price = price * charging_settings.usd_to_vnd_rate
        return float(price)

    @staticmethod
    def max_chargeable_energy(battery_capacity_kwh=None, initial_battery_percent=None, target_battery_percent=None):
        """
        Energy the vehicle can still take between its initial and target charge.

        Missing values fall back to a 100 kWh battery charged from 0 % to 100 %.
        """
        capacity = battery_capacity_kwh or charging_settings.default_battery_capacity_kwh
        initial = initial_battery_percent or 0
        target = target_battery_percent or 100
        return max(0.0, ((target - initial) / 100) * capacity)

    @staticmethod
    def cap_energy(raw_energy_kwh, max_chargeable_kwh):
        """Clamp energy between zero, the vehicle's headroom and the safety ceiling."""
        capped = min(raw_energy_kwh, max_chargeable_kwh, charging_settings.max_session_energy_kwh)
        if capped < raw_energy_kwh:
            logger.info(f"🔋 Energy capped from {raw_energy_kwh:.2f} kWh to {capped:.2f} kWh")
        return max(0.0, capped)

    @staticmethod
    def elapsed_energy(power_kw, start_time, end_time):
        """Energy delivered at constant power between two aware datetimes."""
        power = power_kw or charging_settings.default_power_kw
        elapsed_hours = (end_time - start_time).total_seconds() / 3600
        return power * max(0.0, elapsed_hours)

    @staticmethod
    def estimate_completion_time(start_time, power_kw, battery_capacity_kwh, initial_battery_percent, target_battery_percent):
        """
        Estimate when a session reaches its target charge.

        Returns:
            datetime | None: None when there is nothing to charge or no usable power
        """
        power = power_kw or charging_settings.default_power_kw
        if not battery_capacity_kwh or power <= 0:
            return None
        energy_needed = ((target_battery_percent - initial_battery_percent) / 100) * battery_capacity_kwh
        hours_needed = energy_needed / power
        return start_time + timedelta(hours=hours_needed)

    @staticmethod
    def calculate_session_cost(energy_kwh, price_per_kwh, idle_minutes=0):
        """
        Calculate the bill for a completed session.

        Args:
            energy_kwh (float): Capped energy delivered
            price_per_kwh (float | None): Station price as stored
            idle_minutes (int): Minutes the vehicle blocked the point after charging

        Returns:
            tuple: (total_cost, breakdown_dict)
        """
        price = CostService.normalize_price_per_kwh(price_per_kwh)
        energy_cost = energy_kwh * price
        idle_fee = idle_minutes * charging_settings.idle_fee_per_minute
        total_cost = int(Decimal(str(energy_cost + idle_fee)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        breakdown = {
            "energy_consumed_kwh": round(energy_kwh, 2),
            "price_per_kwh": price,
            "energy_cost": energy_cost,
            "idle_minutes": idle_minutes,
            "idle_fee": idle_fee,
            "total_cost": total_cost,
        }
        logger.info(f"💰 Cost calculated: {total_cost} VND for {energy_kwh:.2f} kWh and {idle_minutes} idle min")
        return total_cost, breakdown
