"""
StockAlertSink protocol and the stock alert sinks that ship with the kernel.

Contract:
    ``StockAlertSink.critical_stock(supply, movement)`` is called by
    StockService after an egress has committed and left the supply at or
    below its minimum.  The alert is advisory: the movement is already
    durable when the sink runs.

Architecture:
    Services.  Imports domain values and logging only.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from clinic_stock.domain.movement import Movement
from clinic_stock.domain.supply import Supply
from clinic_stock.logging_config import get_logger

logger = get_logger("services.alerts")


@runtime_checkable
class StockAlertSink(Protocol):
    """Receiver of critical-stock notifications.

    Non-goals:
        - Does NOT affect the outcome of the movement.  StockService logs
          and discards any exception a sink raises.
    """

    def critical_stock(self, supply: Supply, movement: Movement) -> None: ...


class LoggingAlertSink:
    """Default sink: one structured WARNING record per alert."""

    def critical_stock(self, supply: Supply, movement: Movement) -> None:
        logger.warning(
            "critical_stock_alert",
            extra={
                "supply_code": supply.code,
                "stock": supply.stock,
                "minimum": supply.minimum,
                "movement_id": movement.id,
                "service_id": movement.service_id,
            },
        )


@dataclass(frozen=True)
class StockAlert:
    supply_code: str
    stock: int
    minimum: int
    movement_id: int


class RecordingAlertSink:
    """Keeps alerts in memory; used by tests and by callers that poll."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._alerts: list[StockAlert] = []

    def critical_stock(self, supply: Supply, movement: Movement) -> None:
        with self._lock:
            self._alerts.append(
                StockAlert(
                    supply_code=supply.code,
                    stock=supply.stock,
                    minimum=supply.minimum,
                    movement_id=movement.id,
                )
            )

    @property
    def alerts(self) -> tuple[StockAlert, ...]:
        with self._lock:
            return tuple(self._alerts)

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
