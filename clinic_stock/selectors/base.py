"""
Module: clinic_stock.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the query side of the kernel: structured read access to the ledger and
    stock without mutation capability.
Architecture position: Selectors.  May import from domain/ and the repository
    contracts.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: a selector opens units of work but never commits them,
      so anything a repository call might write is rolled back on exit.
    - Selectors return domain values (frozen Movements, Supply copies), never
      ORM instances.
"""

from abc import ABC
from collections.abc import Callable

from clinic_stock.domain.clock import Clock, SystemClock
from clinic_stock.repositories.base import UnitOfWork


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a unit-of-work factory, perform read-only queries,
        and return domain values.  They MUST NOT mutate any data.

    Non-goals:
        - BaseSelector does NOT define any query methods.
    """

    def __init__(self, uow_factory: Callable[[], UnitOfWork], clock: Clock | None = None):
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
