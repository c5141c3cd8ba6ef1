"""Tests for energy accounting."""

import pytest

from chargeamps_sync.consumption import (
    ConsumptionAccountant,
    estimate_power,
    format_kwh,
)

SESSIONS = [{"totalConsumptionKwh": 3.456}, {"totalConsumptionKwh": 12.3}]


class TestFormatKwh:
    def test_two_decimals(self) -> None:
        assert format_kwh(1.005) in ("1.00", "1.01")
        assert format_kwh(7) == "7.00"

    def test_unusable_values(self) -> None:
        assert format_kwh(None) == "0"
        assert format_kwh("n/a") == "0"


class TestEstimatePower:
    def test_sums_three_phases(self) -> None:
        phases = [{"current": 10, "voltage": 230}] * 3
        assert estimate_power(phases, 0.0) == pytest.approx(6.9)

    def test_only_first_three_measurements_count(self) -> None:
        phases = [{"current": 10, "voltage": 200}] * 5
        assert estimate_power(phases, 0.0) == pytest.approx(6.0)

    def test_keeps_previous_without_measurements(self) -> None:
        assert estimate_power([], 4.2) == 4.2
        assert estimate_power(None, 1.5) == 1.5

    def test_missing_values_count_as_zero(self) -> None:
        phases = [{"current": 16, "voltage": 230}, {"current": None}]
        assert estimate_power(phases, 0.0) == pytest.approx(3.68)


class TestConsumptionAccountant:
    def test_idle_port_reports_last_session(self) -> None:
        accountant = ConsumptionAccountant([1])
        reading = accountant.update(1, 0, SESSIONS, power_kw=5.0)
        assert reading.last_charged == "3.46"
        assert reading.now_charged == "0.00"
        assert reading.measure_kw == 0.0
        assert reading.meter_kwh == 0.0

    def test_idle_port_without_sessions(self) -> None:
        reading = ConsumptionAccountant([1]).update(1, 0, [])
        assert reading.last_charged == "0"

    def test_meter_accumulates_deltas(self) -> None:
        accountant = ConsumptionAccountant([1])
        accountant.update(1, 1.0, SESSIONS, power_kw=7.0)
        reading = accountant.update(1, 2.5, SESSIONS, power_kw=7.2)

        assert reading.meter_kwh == pytest.approx(2.5)
        assert reading.delta_kwh == pytest.approx(1.5)
        assert reading.measure_kw == 7.2
        assert reading.now_charged == "2.50"
        # Row 0 is the running session
        assert reading.last_charged == "12.30"

    def test_meter_survives_session_reset(self) -> None:
        accountant = ConsumptionAccountant([1])
        accountant.update(1, 4.0, SESSIONS)
        accountant.update(1, 0, SESSIONS)
        reading = accountant.update(1, 1.0, SESSIONS)

        assert reading.meter_kwh == pytest.approx(5.0)
        assert accountant.ledger(1).previous_consumption_kwh == 1.0

    def test_negative_delta_is_applied(self) -> None:
        accountant = ConsumptionAccountant([1])
        accountant.update(1, 5.0, SESSIONS)
        reading = accountant.update(1, 4.0, SESSIONS)

        assert reading.delta_kwh == pytest.approx(-1.0)
        assert reading.meter_kwh == pytest.approx(4.0)

    def test_idle_reading_keeps_meter(self) -> None:
        accountant = ConsumptionAccountant([1])
        accountant.update(1, 2.0, SESSIONS, power_kw=3.0)
        reading = accountant.idle_reading(1, 2.0)

        assert reading.meter_kwh == pytest.approx(2.0)
        assert reading.measure_kw == 0.0
        assert reading.last_charged is None
        assert reading.now_charged == "2.00"

    def test_aggregate_across_ports(self) -> None:
        accountant = ConsumptionAccountant([1, 2])
        accountant.update(1, 2.0, SESSIONS, power_kw=3.0)
        accountant.update(2, 1.0, SESSIONS, power_kw=4.0)

        totals = accountant.aggregate()
        assert totals["measure"] == pytest.approx(7.0)
        assert totals["meter"] == pytest.approx(3.0)
