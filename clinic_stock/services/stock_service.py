"""
StockService -- orchestration core for supply ingress and egress.

Responsibility:
    Validates a stock request, resolves the supply (and for egress the
    clinical service), applies the quantity change and appends the
    matching movement to the ledger.  Also answers the stock queries the
    menus need (critical supplies, expiring supplies, availability).

Architecture position:
    Services.  Depends on the repository contracts, domain values and the
    StockAlertSink protocol.  Never imports a concrete backend.

Invariants enforced:
    - stock >= 0 after every operation.  The availability check and the
      decrement run under the same per-code lock and the same unit of
      work, with the supply row read ``for_update``.
    - Atomicity: the supply update and the movement append commit
      together or not at all.
    - Validation (code, quantity, service id, actor) happens before any
      lookup.
    - Critical-stock alerts run only after commit and never change the
      outcome of the movement.

Failure modes:
    - ValidationError: empty code, non-positive or non-integer quantity,
      missing actor, bad service id, negative ``days_ahead``.
    - SupplyInactiveError: movement against an inactive supply.
    - SupplyNotFoundError / ServiceNotFoundError: unknown reference.
    - InsufficientStockError: egress larger than stock; nothing written.
    - PersistenceError: wrapped backend failure; nothing written.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock
from clinic_stock.domain.movement import Movement, MovementDraft, MovementKind
from clinic_stock.domain.supply import Supply
from clinic_stock.domain.user import User
from clinic_stock.domain.validation import (
    normalize_code,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from clinic_stock.exceptions import (
    InsufficientStockError,
    ServiceNotFoundError,
    SupplyInactiveError,
    SupplyNotFoundError,
    ValidationError,
)
from clinic_stock.logging_config import LogContext, get_logger
from clinic_stock.services.alerts import LoggingAlertSink, StockAlertSink
from clinic_stock.services.base import BaseService, UnitOfWorkFactory

logger = get_logger("services.stock")

DEFAULT_EXPIRATION_DAYS_AHEAD = 30


class _KeyedLocks:
    """One lock per supply code, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


def _require_actor(actor: User | None) -> User:
    if actor is None:
        raise ValidationError("actor", "Movement requires an acting user")
    require_positive_int(actor.legajo, "actor_legajo")
    return actor


class StockService(BaseService):
    """
    Stock ingress/egress and stock queries.

    Contract:
        ``register_ingress`` / ``register_egress`` return the committed
        Movement.  Any raised exception means no supply or ledger state
        changed.

    Usage:
        stock = StockService(uow_factory, clock=clock)
        movement = stock.register_egress("GAS-01", 45, service_id=1, actor=user)
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        alert_sink: StockAlertSink | None = None,
        expiration_days_ahead: int = DEFAULT_EXPIRATION_DAYS_AHEAD,
    ):
        super().__init__(uow_factory, clock)
        self._alert_sink = alert_sink if alert_sink is not None else LoggingAlertSink()
        self._expiration_days_ahead = require_non_negative_int(
            expiration_days_ahead, "expiration_days_ahead"
        )
        self._supply_locks = _KeyedLocks()

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def register_ingress(self, code: str, quantity: int, actor: User) -> Movement:
        """
        Add ``quantity`` units to a supply and record an INGRESS movement.

        Raises:
            ValidationError, SupplyInactiveError, SupplyNotFoundError.
        """
        code = normalize_code(code)
        require_positive_int(quantity, "quantity")
        actor = _require_actor(actor)

        with LogContext.bind(actor_id=actor.legajo, supply_code=code):
            with self._supply_locks.hold(code):
                with self._uow_factory() as uow:
                    supply = self._resolve_supply(uow, code)
                    supply.increase(quantity)
                    uow.supplies.update(supply)
                    movement = uow.movements.append(
                        MovementDraft(
                            kind=MovementKind.INGRESS,
                            quantity=quantity,
                            supply_code=code,
                            actor_legajo=actor.legajo,
                        )
                    )
                    uow.commit()

            with LogContext.bind(movement_id=movement.id):
                logger.info(
                    "ingress_registered",
                    extra={"quantity": quantity, "stock_after": supply.stock},
                )
        return movement

    def register_egress(
        self,
        code: str,
        quantity: int,
        service_id: int,
        actor: User,
    ) -> Movement:
        """
        Remove ``quantity`` units from a supply towards a clinical service.

        The stock check and the decrement happen in one unit of work; on
        InsufficientStockError nothing is written.

        Raises:
            ValidationError, SupplyInactiveError, ServiceNotFoundError,
            SupplyNotFoundError, InsufficientStockError.
        """
        code = normalize_code(code)
        require_positive_int(quantity, "quantity")
        require_positive_int(service_id, "service_id")
        actor = _require_actor(actor)

        with LogContext.bind(actor_id=actor.legajo, supply_code=code):
            with self._supply_locks.hold(code):
                with self._uow_factory() as uow:
                    if uow.services.find_by_id(service_id) is None:
                        raise ServiceNotFoundError(service_id)
                    supply = self._resolve_supply(uow, code)
                    if supply.stock < quantity:
                        logger.info(
                            "egress_rejected_insufficient_stock",
                            extra={"requested": quantity, "available": supply.stock},
                        )
                        raise InsufficientStockError(code, quantity, supply.stock)
                    supply.decrease(quantity)
                    uow.supplies.update(supply)
                    movement = uow.movements.append(
                        MovementDraft(
                            kind=MovementKind.EGRESS,
                            quantity=quantity,
                            supply_code=code,
                            actor_legajo=actor.legajo,
                            service_id=service_id,
                        )
                    )
                    uow.commit()

            with LogContext.bind(movement_id=movement.id):
                logger.info(
                    "egress_registered",
                    extra={
                        "quantity": quantity,
                        "service_id": service_id,
                        "stock_after": supply.stock,
                    },
                )
                if supply.critical:
                    self._notify_critical(supply, movement)
        return movement

    def _resolve_supply(self, uow, code: str) -> Supply:
        supply = uow.supplies.find_by_code(code, for_update=True)
        if supply is None:
            raise SupplyNotFoundError(code)
        if not supply.is_active:
            raise SupplyInactiveError(code)
        return supply

    def _notify_critical(self, supply: Supply, movement: Movement) -> None:
        try:
            self._alert_sink.critical_stock(supply, movement)
        except Exception:
            # Movement already committed
            logger.exception("critical_stock_alert_failed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def critical_supplies(self) -> list[Supply]:
        """Supplies with stock <= minimum, most deficient first."""
        with self._uow_factory() as uow:
            return uow.supplies.find_critical()

    def expiring_supplies(self, days_ahead: int | None = None) -> list[Supply]:
        """
        Supplies expiring between today and ``today + days_ahead`` inclusive.

        Already expired supplies and supplies without an expiration date
        are excluded.  Ordered by expiration date, then code.
        """
        if days_ahead is None:
            days_ahead = self._expiration_days_ahead
        require_non_negative_int(days_ahead, "days_ahead")

        today = self._clock.today()
        limit = today + timedelta(days=days_ahead)
        with self._uow_factory() as uow:
            supplies = uow.supplies.find_all()
        expiring = [
            s
            for s in supplies
            if s.expiration_date is not None and today <= s.expiration_date <= limit
        ]
        expiring.sort(key=lambda s: (s.expiration_date, s.code))
        return expiring

    def has_sufficient_stock(self, code: str, quantity: int) -> bool:
        """True when the supply exists and holds at least ``quantity`` units."""
        code = normalize_code(code)
        require_positive_int(quantity, "quantity")
        with self._uow_factory() as uow:
            supply = uow.supplies.find_by_code(code)
        return supply is not None and supply.stock >= quantity

    def find_supply(self, code: str) -> Supply:
        code = normalize_code(code)
        with self._uow_factory() as uow:
            supply = uow.supplies.find_by_code(code)
        if supply is None:
            raise SupplyNotFoundError(code)
        return supply

    def search_supplies(self, fragment: str) -> list[Supply]:
        fragment = require_text(fragment, "name")
        with self._uow_factory() as uow:
            return uow.supplies.search_by_name(fragment)

    def all_supplies(self) -> list[Supply]:
        with self._uow_factory() as uow:
            return uow.supplies.find_all()

    def all_services(self) -> list[ClinicalService]:
        with self._uow_factory() as uow:
            return uow.services.find_all()

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def register_supply(self, supply: Supply) -> Supply:
        """
        Add a new supply to the catalogue.

        Raises:
            DuplicateSupplyError: If the code is already registered.
        """
        with self._uow_factory() as uow:
            uow.supplies.save(supply)
            uow.commit()
        logger.info(
            "supply_registered",
            extra={"supply_code": supply.code, "stock": supply.stock, "minimum": supply.minimum},
        )
        return supply.copy()

    def register_service(self, service: ClinicalService) -> ClinicalService:
        """
        Add a clinical service.

        Raises:
            DuplicateServiceError: If the id is already registered.
        """
        with self._uow_factory() as uow:
            uow.services.save(service)
            uow.commit()
        logger.info(
            "service_registered",
            extra={"service_id": service.id, "service_name": service.name},
        )
        return service
