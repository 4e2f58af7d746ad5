"""
Module: clinic_stock.repositories.memory
Responsibility: In-memory backend.  Same contracts as the SQL backend,
    used for local runs, demos and fast tests.
Architecture position: Repositories.  Imports domain/, exceptions and
    repositories/base.py only.

Invariants enforced:
    - Transactions are serialized: an InMemoryUnitOfWork holds the
      store-wide re-entrant lock from ``__enter__`` to ``__exit__``, so a
      check-then-decrement can never interleave with another one.
    - Atomicity: every write pushes an undo action; rollback replays
      them in reverse, restoring supplies, users and the movement
      sequence exactly.
    - Stored supplies are private copies; callers get copies back.
    - Movement ids start at 1 and increase by one per committed append.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock, SystemClock, utc_day_bounds
from clinic_stock.domain.movement import Movement, MovementDraft
from clinic_stock.domain.supply import Supply
from clinic_stock.domain.user import User
from clinic_stock.domain.validation import normalize_code
from clinic_stock.exceptions import (
    DuplicateServiceError,
    DuplicateSupplyError,
    DuplicateUserError,
    SupplyNotFoundError,
    UserNotFoundError,
)
from clinic_stock.logging_config import get_logger
from clinic_stock.repositories.base import (
    MovementLedger,
    ServiceDirectory,
    SupplyStore,
    UnitOfWork,
    UserRepository,
)

logger = get_logger("repositories.memory")

UndoLog = list[Callable[[], None]]


class InMemoryDatabase:
    """Committed state shared by every in-memory unit of work."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.supplies: dict[str, Supply] = {}
        self.services: dict[int, ClinicalService] = {}
        self.users: dict[int, User] = {}
        self.movements: list[Movement] = []
        self.last_movement_id = 0


class InMemorySupplyStore(SupplyStore):
    def __init__(self, db: InMemoryDatabase, undo: UndoLog):
        self._db = db
        self._undo = undo

    def find_by_code(self, code: str, *, for_update: bool = False) -> Supply | None:
        # for_update is implied: the unit of work already holds the store lock
        stored = self._db.supplies.get(normalize_code(code))
        return stored.copy() if stored else None

    def find_all(self) -> list[Supply]:
        return [self._db.supplies[c].copy() for c in sorted(self._db.supplies)]

    def search_by_name(self, fragment: str) -> list[Supply]:
        needle = fragment.strip().lower()
        found = [s.copy() for s in self._db.supplies.values() if needle in s.name.lower()]
        found.sort(key=lambda s: (s.name.lower(), s.code))
        return found

    def save(self, supply: Supply) -> None:
        if supply.code in self._db.supplies:
            raise DuplicateSupplyError(supply.code)
        self._db.supplies[supply.code] = supply.copy()
        self._undo.append(lambda: self._db.supplies.pop(supply.code, None))

    def update(self, supply: Supply) -> None:
        previous = self._db.supplies.get(supply.code)
        if previous is None:
            raise SupplyNotFoundError(supply.code)
        self._db.supplies[supply.code] = supply.copy()
        self._undo.append(lambda: self._db.supplies.__setitem__(supply.code, previous))


class InMemoryMovementLedger(MovementLedger):
    def __init__(self, db: InMemoryDatabase, undo: UndoLog, clock: Clock):
        self._db = db
        self._undo = undo
        self._clock = clock

    def append(self, draft: MovementDraft) -> Movement:
        draft.validate()
        previous_id = self._db.last_movement_id
        movement = draft.commit(previous_id + 1, self._clock.now())
        self._db.movements.append(movement)
        self._db.last_movement_id = movement.id

        def _undo() -> None:
            self._db.movements.remove(movement)
            self._db.last_movement_id = previous_id

        self._undo.append(_undo)
        return movement

    def find_all(self) -> list[Movement]:
        return sorted(self._db.movements, key=Movement.sort_key, reverse=True)

    def find_in_period_and_service(
        self,
        start: date,
        end: date,
        service_id: int | None = None,
    ) -> list[Movement]:
        lower, upper = utc_day_bounds(start, end)
        return [
            m
            for m in self.find_all()
            if lower <= m.occurred_at < upper
            and (service_id is None or m.service_id == service_id)
        ]


class InMemoryServiceDirectory(ServiceDirectory):
    def __init__(self, db: InMemoryDatabase, undo: UndoLog):
        self._db = db
        self._undo = undo

    def find_by_id(self, service_id: int) -> ClinicalService | None:
        return self._db.services.get(service_id)

    def find_by_name(self, name: str) -> ClinicalService | None:
        for service in self.find_all():
            if service.matches_name(name):
                return service
        return None

    def find_all(self) -> list[ClinicalService]:
        return [self._db.services[i] for i in sorted(self._db.services)]

    def save(self, service: ClinicalService) -> None:
        if service.id in self._db.services:
            raise DuplicateServiceError(service.id)
        self._db.services[service.id] = service
        self._undo.append(lambda: self._db.services.pop(service.id, None))


class InMemoryUserRepository(UserRepository):
    def __init__(self, db: InMemoryDatabase, undo: UndoLog):
        self._db = db
        self._undo = undo

    def find_by_legajo(self, legajo: int) -> User | None:
        return self._db.users.get(legajo)

    def find_by_credentials(self, legajo: int, password: str) -> User | None:
        user = self._db.users.get(legajo)
        if user is not None and user.active and user.password == password:
            return user
        return None

    def find_all_active(self) -> list[User]:
        return [self._db.users[k] for k in sorted(self._db.users) if self._db.users[k].active]

    def save(self, user: User) -> None:
        if user.legajo in self._db.users:
            raise DuplicateUserError(user.legajo)
        self._db.users[user.legajo] = user
        self._undo.append(lambda: self._db.users.pop(user.legajo, None))

    def update(self, user: User) -> None:
        previous = self._db.users.get(user.legajo)
        if previous is None:
            raise UserNotFoundError(user.legajo)
        self._db.users[user.legajo] = user
        self._undo.append(lambda: self._db.users.__setitem__(user.legajo, previous))

    def soft_delete(self, legajo: int) -> None:
        user = self._db.users.get(legajo)
        if user is None:
            raise UserNotFoundError(legajo)
        self.update(user.deactivated())


class InMemoryUnitOfWork(UnitOfWork):
    """Serialized transaction over an InMemoryDatabase with undo-log rollback."""

    def __init__(self, db: InMemoryDatabase, clock: Clock | None = None):
        super().__init__(clock or SystemClock())
        self._db = db
        self._undo: UndoLog = []
        self.supplies = InMemorySupplyStore(db, self._undo)
        self.movements = InMemoryMovementLedger(db, self._undo, self.clock)
        self.services = InMemoryServiceDirectory(db, self._undo)
        self.users = InMemoryUserRepository(db, self._undo)

    def _begin(self) -> None:
        self._db.lock.acquire()
        self._undo.clear()

    def _commit(self) -> None:
        self._undo.clear()

    def rollback(self) -> None:
        if self._undo:
            logger.debug("memory_rollback", extra={"undo_actions": len(self._undo)})
        while self._undo:
            self._undo.pop()()

    def _close(self) -> None:
        self._db.lock.release()


def in_memory_uow_factory(
    db: InMemoryDatabase, clock: Clock | None = None
) -> Callable[[], InMemoryUnitOfWork]:
    """Factory handed to services; each call opens a new unit of work."""

    def factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(db, clock)

    return factory
