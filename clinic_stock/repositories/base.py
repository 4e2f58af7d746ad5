"""
Module: clinic_stock.repositories.base
Responsibility: Abstract persistence contracts shared by every backend.
    Supply Store, Movement Ledger, Service Directory and User repository
    are defined here together with the UnitOfWork that binds them to a
    single transaction.
Architecture position: Repositories.  May import from domain/ and
    exceptions only.  Services depend on these ABCs, never on a concrete
    backend.

Invariants enforced:
    - Repositories store what they are given.  Stock arithmetic lives in
      the domain and in StockService, never here.
    - The Movement Ledger is append-only: there is no update or delete
      in the contract.
    - Every repository instance belongs to exactly one UnitOfWork; writes
      become visible to other units of work only after ``commit()``.

Failure modes:
    - DuplicateSupplyError / DuplicateServiceError / DuplicateUserError
      on ``save`` of an existing key.
    - SupplyNotFoundError / UserNotFoundError on ``update`` of a missing key.
    - ValidationError from ``MovementLedger.append`` for malformed drafts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from types import TracebackType

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock
from clinic_stock.domain.movement import Movement, MovementDraft, MovementKind
from clinic_stock.domain.supply import Supply
from clinic_stock.domain.user import User


class SupplyStore(ABC):
    """Owns supply records."""

    @abstractmethod
    def find_by_code(self, code: str, *, for_update: bool = False) -> Supply | None:
        """
        Look up a supply by normalized code.

        ``for_update=True`` asks the backend to hold a row lock until the
        unit of work ends (SELECT ... FOR UPDATE on SQL backends).
        """

    @abstractmethod
    def find_all(self) -> list[Supply]:
        """All supplies ordered by code."""

    @abstractmethod
    def search_by_name(self, fragment: str) -> list[Supply]:
        """Case-insensitive substring match on name, ordered by name."""

    @abstractmethod
    def save(self, supply: Supply) -> None:
        """Insert a new supply; DuplicateSupplyError if the code exists."""

    @abstractmethod
    def update(self, supply: Supply) -> None:
        """Replace the stored record for ``supply.code``."""

    def find_critical(self) -> list[Supply]:
        """Critical supplies, most deficient (lowest margin) first."""
        critical = [s for s in self.find_all() if s.critical]
        critical.sort(key=lambda s: (s.margin, s.code))
        return critical


class MovementLedger(ABC):
    """Append-only log of ingress/egress movements."""

    @abstractmethod
    def append(self, draft: MovementDraft) -> Movement:
        """
        Validate ``draft``, assign the next id and (if absent) a timestamp,
        store it, and return the committed Movement.
        """

    @abstractmethod
    def find_all(self) -> list[Movement]:
        """All movements, newest first (ties: higher id first)."""

    @abstractmethod
    def find_in_period_and_service(
        self,
        start: date,
        end: date,
        service_id: int | None = None,
    ) -> list[Movement]:
        """Movements dated within ``[start, end]`` (UTC dates), optionally for one service."""

    def net_quantity(self, supply_code: str) -> int:
        """Sum of ingress minus sum of egress for one supply."""
        total = 0
        for movement in self.find_all():
            if movement.supply_code == supply_code:
                total += movement.signed_quantity
        return total

    def count(self, kind: MovementKind | None = None) -> int:
        return sum(1 for m in self.find_all() if kind is None or m.kind == kind)


class ServiceDirectory(ABC):
    """Read-mostly lookup of clinical services (egress destinations)."""

    @abstractmethod
    def find_by_id(self, service_id: int) -> ClinicalService | None: ...

    @abstractmethod
    def find_by_name(self, name: str) -> ClinicalService | None:
        """Case-insensitive exact match."""

    @abstractmethod
    def find_all(self) -> list[ClinicalService]:
        """All services ordered by id."""

    @abstractmethod
    def save(self, service: ClinicalService) -> None:
        """DuplicateServiceError if the id exists."""


class UserRepository(ABC):
    """Staff accounts keyed by legajo."""

    @abstractmethod
    def find_by_legajo(self, legajo: int) -> User | None:
        """Active or inactive user."""

    @abstractmethod
    def find_by_credentials(self, legajo: int, password: str) -> User | None:
        """Active user whose password matches; None otherwise."""

    @abstractmethod
    def find_all_active(self) -> list[User]:
        """Active users ordered by legajo."""

    @abstractmethod
    def save(self, user: User) -> None:
        """DuplicateUserError if the legajo exists."""

    @abstractmethod
    def update(self, user: User) -> None:
        """UserNotFoundError if the legajo does not exist."""

    @abstractmethod
    def soft_delete(self, legajo: int) -> None:
        """Mark inactive; UserNotFoundError if the legajo does not exist."""


class UnitOfWork(ABC):
    """
    Explicit transaction boundary shared by all repositories.

    Contract:
        Used as a context manager.  Changes are kept only if ``commit()``
        is called before the block exits; leaving the block without a
        commit, or with an exception, rolls everything back.

    Usage:
        with uow_factory() as uow:
            supply = uow.supplies.find_by_code("GAS-01", for_update=True)
            supply.decrease(5)
            uow.supplies.update(supply)
            uow.movements.append(draft)
            uow.commit()
    """

    supplies: SupplyStore
    movements: MovementLedger
    services: ServiceDirectory
    users: UserRepository

    def __init__(self, clock: Clock):
        self.clock = clock
        self._committed = False

    def __enter__(self) -> "UnitOfWork":
        self._begin()
        self._committed = False
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None or not self._committed:
                self.rollback()
        finally:
            self._close()

    def commit(self) -> None:
        self._commit()
        self._committed = True

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def _begin(self) -> None: ...

    @abstractmethod
    def _commit(self) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...
