"""
BaseService -- abstract base for the write-side services.

Responsibility:
    Provides the common constructor for every service: a unit-of-work
    factory and a clock.  Each public operation opens its own unit of
    work and decides whether to commit it.

Architecture position:
    Services.  Depends on the repository contracts in
    ``clinic_stock/repositories/base.py``, never on a concrete backend.

Invariants enforced:
    - Transaction boundaries: a service operation is exactly one unit of
      work.  Repositories flush; only the service calls ``uow.commit()``.
    - Time comes from the injected Clock, never from ``datetime.now()``.

Failure modes:
    - Any exception raised inside an operation leaves the unit of work
      uncommitted, so every write it made is rolled back.
"""

from abc import ABC
from collections.abc import Callable

from clinic_stock.domain.clock import Clock, SystemClock
from clinic_stock.repositories.base import UnitOfWork

UnitOfWorkFactory = Callable[[], UnitOfWork]


class BaseService(ABC):
    """
    Abstract base class for services.

    Contract:
        Accepts a factory that returns a fresh UnitOfWork on every call.

    Non-goals:
        - Does NOT hold a session or unit of work between calls.
        - Read-only reporting queries belong in ``clinic_stock/selectors/``.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock | None = None):
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
