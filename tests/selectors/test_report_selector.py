"""
Tests for ReportSelector.

Covers:
- Window validation (missing dates, reversed window, future start)
- January 2024 service report
- Canned windows: today, last week, last month
- Net movement reconciliation against stock
"""

from datetime import date, datetime, timezone

import pytest

from clinic_stock.exceptions import ValidationError


def _at(month: int, day: int, hour: int = 10) -> datetime:
    return datetime(2024, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def january_history(stock_service, admin, clock):
    """Egresses spread across late December, January and early February 2024."""
    plan = [
        (datetime(2023, 12, 31, 22, tzinfo=timezone.utc), 2),
        (_at(1, 1, 0), 2),
        (_at(1, 10), 1),
        (_at(1, 20), 2),
        (_at(1, 31, 23), 2),
        (_at(2, 1, 0), 2),
    ]
    movements = []
    for when, service_id in plan:
        clock.set_time(when)
        movements.append(
            stock_service.register_egress("GUA-01", 1, service_id=service_id, actor=admin)
        )
    clock.set_time(_at(2, 15))
    return movements


class TestWindowValidation:
    def test_dates_required(self, report_selector):
        with pytest.raises(ValidationError) as exc_info:
            report_selector.movements_in_period(None, date(2024, 1, 31))
        assert exc_info.value.field == "from_date"
        with pytest.raises(ValidationError):
            report_selector.movements_in_period(date(2024, 1, 1), None)

    def test_reversed_window_rejected(self, report_selector):
        with pytest.raises(ValidationError) as exc_info:
            report_selector.movements_in_period(date(2024, 1, 2), date(2024, 1, 1))
        assert exc_info.value.field == "to_date"

    def test_future_start_rejected(self, report_selector, clock):
        tomorrow = date(2024, 1, 2)
        assert clock.today() == date(2024, 1, 1)
        with pytest.raises(ValidationError) as exc_info:
            report_selector.movements_in_period(tomorrow, tomorrow)
        assert exc_info.value.field == "from_date"

    def test_invalid_service_id_rejected(self, report_selector):
        with pytest.raises(ValidationError):
            report_selector.movements_in_period(date(2024, 1, 1), date(2024, 1, 1), 0)


class TestReports:
    def test_january_2024_for_service_2(self, report_selector, january_history):
        found = report_selector.movements_in_period(date(2024, 1, 1), date(2024, 1, 31), 2)
        expected = [january_history[i].id for i in (4, 3, 1)]
        assert [m.id for m in found] == expected

    def test_january_2024_all_services(self, report_selector, january_history):
        found = report_selector.movements_in_period(date(2024, 1, 1), date(2024, 1, 31))
        assert len(found) == 4
        assert [m.occurred_at for m in found] == sorted(
            (m.occurred_at for m in found), reverse=True
        )

    def test_movements_today(self, report_selector, stock_service, admin, clock):
        clock.set_time(_at(3, 1, 8))
        stock_service.register_ingress("GAS-01", 1, admin)
        clock.set_time(_at(3, 2, 8))
        today = stock_service.register_ingress("GAS-01", 2, admin)
        assert [m.id for m in report_selector.movements_today()] == [today.id]

    def test_movements_last_week(self, report_selector, stock_service, admin, clock):
        clock.set_time(_at(3, 1))
        old = stock_service.register_ingress("GAS-01", 1, admin)
        clock.set_time(_at(3, 8))
        edge = stock_service.register_ingress("GAS-01", 1, admin)
        clock.set_time(_at(3, 15))
        recent = stock_service.register_ingress("GAS-01", 1, admin)

        ids = [m.id for m in report_selector.movements_last_week()]
        assert ids == [recent.id, edge.id]
        assert old.id not in ids

    def test_movements_last_month_for_service(self, report_selector, january_history, clock):
        clock.set_time(_at(2, 29))
        ids = [m.id for m in report_selector.movements_last_month(2)]
        # 2024-01-29 .. 2024-02-29 for service 2
        assert ids == [january_history[5].id, january_history[4].id]

    def test_movements_last_month_month_end_clamp(self, report_selector, clock):
        clock.set_time(_at(3, 31))
        assert report_selector.movements_last_month(1) == []

    def test_movements_last_month_invalid_service(self, report_selector):
        with pytest.raises(ValidationError):
            report_selector.movements_last_month(0)


class TestNetMovement:
    def test_stock_reconciles_with_ledger(self, report_selector, stock_service, admin):
        stock_service.register_ingress("GAS-01", 12, admin)
        stock_service.register_egress("GAS-01", 30, service_id=1, actor=admin)
        stock_service.register_egress("GAS-01", 7, service_id=4, actor=admin)

        assert report_selector.net_movement("gas-01") == -25
        assert stock_service.find_supply("GAS-01").stock == 50 + report_selector.net_movement(
            "GAS-01"
        )

    def test_net_movement_of_untouched_supply(self, report_selector):
        assert report_selector.net_movement("BAR-01") == 0
