"""
ReportSelector -- movement listings for the reporting menus.

Responsibility:
    Validates report windows and delegates to the Movement Ledger's
    period/service filter.  Provides the canned windows (today, last
    week, last month for one service) and the per-supply net movement
    used to reconcile stock with the ledger.

Invariants enforced:
    - Both dates are required, ``to_date >= from_date`` and ``from_date``
      is not in the future (UTC, from the injected clock).
    - Results are ordered newest first, ties by id descending.

Failure modes:
    - ValidationError on any invalid window or service id.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from clinic_stock.domain.movement import Movement
from clinic_stock.domain.validation import normalize_code, require_positive_int
from clinic_stock.exceptions import ValidationError
from clinic_stock.logging_config import get_logger
from clinic_stock.selectors.base import BaseSelector

logger = get_logger("selectors.report")


def _one_month_before(day: date) -> date:
    """Same day one calendar month earlier, clamped to the month's length."""
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _as_date(value, field: str) -> date:
    if value is None:
        raise ValidationError(field, f"{field} is required")
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise ValidationError(field, f"{field} must be a date")
    return value


class ReportSelector(BaseSelector):
    """Read-only movement reports."""

    def movements_in_period(
        self,
        from_date: date,
        to_date: date,
        service_id: int | None = None,
    ) -> list[Movement]:
        """
        Movements dated within ``[from_date, to_date]`` (inclusive, UTC).

        Args:
            from_date: First day of the window.
            to_date: Last day of the window.
            service_id: Restrict to one clinical service; None for all.

        Raises:
            ValidationError: Missing dates, reversed window, future start,
                or non-positive service id.
        """
        from_date = _as_date(from_date, "from_date")
        to_date = _as_date(to_date, "to_date")
        if to_date < from_date:
            raise ValidationError("to_date", "to_date must not be before from_date")
        if from_date > self._clock.today():
            raise ValidationError("from_date", "from_date cannot be in the future")
        if service_id is not None:
            require_positive_int(service_id, "service_id")

        with self._uow_factory() as uow:
            movements = uow.movements.find_in_period_and_service(
                from_date, to_date, service_id
            )
        logger.debug(
            "movement_report",
            extra={
                "from_date": from_date,
                "to_date": to_date,
                "service_id": service_id,
                "count": len(movements),
            },
        )
        return movements

    def movements_today(self) -> list[Movement]:
        today = self._clock.today()
        return self.movements_in_period(today, today)

    def movements_last_week(self) -> list[Movement]:
        today = self._clock.today()
        return self.movements_in_period(today - timedelta(weeks=1), today)

    def movements_last_month(self, service_id: int) -> list[Movement]:
        require_positive_int(service_id, "service_id")
        today = self._clock.today()
        return self.movements_in_period(_one_month_before(today), today, service_id)

    def net_movement(self, code: str) -> int:
        """Sum of ingress minus sum of egress recorded for ``code``."""
        code = normalize_code(code)
        with self._uow_factory() as uow:
            return uow.movements.net_quantity(code)
