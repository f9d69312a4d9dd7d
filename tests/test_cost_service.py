from datetime import timedelta

import pytest

from chargehub.services.cost_service import CostService

from conftest import T0


class TestPriceNormalization:
    def test_usd_price_is_converted(self):
        assert CostService.normalize_price_per_kwh(0.35) == pytest.approx(8400)

    def test_vnd_price_is_kept(self):
        assert CostService.normalize_price_per_kwh(5000) == 5000

    def test_missing_price_uses_default(self):
        assert CostService.normalize_price_per_kwh(None) == 5000
        assert CostService.normalize_price_per_kwh(0) == 5000

    def test_threshold_itself_is_vnd(self):
        assert CostService.normalize_price_per_kwh(10) == 10


class TestEnergy:
    def test_max_chargeable_from_battery_window(self):
        assert CostService.max_chargeable_energy(60, 20, 80) == pytest.approx(36)

    def test_max_chargeable_defaults(self):
        assert CostService.max_chargeable_energy() == pytest.approx(100)

    def test_max_chargeable_never_negative(self):
        assert CostService.max_chargeable_energy(60, 90, 80) == 0

    def test_cap_by_vehicle_headroom(self):
        assert CostService.cap_energy(40, 36) == 36

    def test_cap_by_session_ceiling(self):
        assert CostService.cap_energy(250, 300) == 200

    def test_cap_never_negative(self):
        assert CostService.cap_energy(-1, 10) == 0

    def test_elapsed_energy_uses_point_power(self):
        assert CostService.elapsed_energy(11, T0, T0 + timedelta(minutes=30)) == pytest.approx(5.5)

    def test_elapsed_energy_default_power(self):
        assert CostService.elapsed_energy(None, T0, T0 + timedelta(hours=2)) == pytest.approx(14)

    def test_elapsed_energy_clock_skew(self):
        assert CostService.elapsed_energy(7, T0, T0 - timedelta(minutes=5)) == 0

    def test_estimate_completion_time(self):
        estimated = CostService.estimate_completion_time(T0, 7, 60, 20, 80)
        assert (estimated - T0).total_seconds() == pytest.approx(36 / 7 * 3600)

    def test_estimate_without_battery(self):
        assert CostService.estimate_completion_time(T0, 7, None, 20, 80) is None


class TestSessionCost:
    def test_usd_station_cost(self):
        total, breakdown = CostService.calculate_session_cost(15, 0.35, 0)
        assert total == 126000
        assert breakdown["energy_consumed_kwh"] == 15
        assert breakdown["idle_fee"] == 0

    def test_idle_fee_added(self):
        total, breakdown = CostService.calculate_session_cost(10, 5000, 3)
        assert breakdown["energy_cost"] == pytest.approx(50000)
        assert breakdown["idle_fee"] == 3000
        assert total == 53000

    def test_total_rounds_half_up(self):
        total, _ = CostService.calculate_session_cost(1.5, 11, 0)
        assert total == 17

    def test_breakdown_keys(self):
        _, breakdown = CostService.calculate_session_cost(1, 5000, 0)
        assert set(breakdown) == {
            "energy_consumed_kwh", "price_per_kwh", "energy_cost",
            "idle_minutes", "idle_fee", "total_cost",
        }
