"""
AccountService -- login with consecutive-failure lockout.

Responsibility:
    Authenticates a legajo/password pair against the active users and
    tracks consecutive failures per legajo.  After ``max_failures``
    consecutive failures the account is locked until ``unlock``.

Architecture position:
    Services.  The failure counters live in a LoginAttemptTracker that the
    bootstrap creates once per process and injects; they are never
    persisted and reset on restart.

Invariants enforced:
    - Lock state takes precedence: a locked legajo gets AccountLockedError
      even when the password matches.
    - A successful login resets the counter to zero.
    - The failure that reaches the limit reports InvalidCredentialsError
      with ``attempts_remaining == 0`` and locks the account.
    - legajo and password are validated before any lookup.

Failure modes:
    - ValidationError: non-positive legajo, empty password.
    - InvalidCredentialsError: no active user matches.
    - AccountLockedError: too many consecutive failures.
"""

from __future__ import annotations

import threading

from clinic_stock.domain.clock import Clock
from clinic_stock.domain.user import User
from clinic_stock.domain.validation import require_positive_int
from clinic_stock.exceptions import (
    AccountLockedError,
    InvalidCredentialsError,
    ValidationError,
)
from clinic_stock.logging_config import LogContext, get_logger
from clinic_stock.services.base import BaseService, UnitOfWorkFactory

logger = get_logger("services.account")

DEFAULT_MAX_FAILED_LOGINS = 3


class LoginAttemptTracker:
    """
    Process-wide consecutive-failure counters keyed by legajo.

    Guarantees:
        - Counter updates are atomic across threads.
        - ``is_locked(legajo)`` is True once the counter reaches
          ``max_failures`` and stays True until ``reset(legajo)``.
    """

    def __init__(self, max_failures: int = DEFAULT_MAX_FAILED_LOGINS):
        self.max_failures = require_positive_int(max_failures, "max_failures")
        self._lock = threading.Lock()
        self._failures: dict[int, int] = {}

    def failures(self, legajo: int) -> int:
        with self._lock:
            return self._failures.get(legajo, 0)

    def is_locked(self, legajo: int) -> bool:
        return self.failures(legajo) >= self.max_failures

    def record_failure(self, legajo: int) -> int:
        """Increment and return the new consecutive-failure count."""
        with self._lock:
            count = self._failures.get(legajo, 0) + 1
            self._failures[legajo] = count
            return count

    def reset(self, legajo: int) -> None:
        with self._lock:
            self._failures.pop(legajo, None)

    def clear(self) -> None:
        """Forget every counter (process restart semantics)."""
        with self._lock:
            self._failures.clear()


class AccountService(BaseService):
    """
    Authentication and lockout.

    Usage:
        accounts = AccountService(uow_factory, LoginAttemptTracker(3))
        user = accounts.login(1000, "secret1")
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        tracker: LoginAttemptTracker,
        clock: Clock | None = None,
    ):
        super().__init__(uow_factory, clock)
        self._tracker = tracker

    @property
    def max_failures(self) -> int:
        return self._tracker.max_failures

    def login(self, legajo: int, password: str) -> User:
        """
        Authenticate an active user.

        Returns:
            The authenticated User.

        Raises:
            ValidationError: Before any lookup, for malformed input.
            AccountLockedError: Legajo is locked.
            InvalidCredentialsError: No active user matches the pair.
        """
        require_positive_int(legajo, "legajo")
        if not isinstance(password, str) or password == "":
            raise ValidationError("password", "password must not be empty")

        with LogContext.bind(actor_id=legajo):
            if self._tracker.is_locked(legajo):
                logger.warning("login_rejected_locked")
                raise AccountLockedError(legajo)

            with self._uow_factory() as uow:
                user = uow.users.find_by_credentials(legajo, password)

            if user is None:
                count = self._tracker.record_failure(legajo)
                remaining = max(self.max_failures - count, 0)
                logger.warning(
                    "login_failed",
                    extra={"failed_attempts": count, "attempts_remaining": remaining},
                )
                if remaining == 0:
                    logger.warning("account_locked", extra={"failed_attempts": count})
                raise InvalidCredentialsError(legajo, remaining)

            self._tracker.reset(legajo)
            logger.info("login_succeeded", extra={"role": user.role})
        return user

    def unlock(self, legajo: int) -> None:
        """Reset the failure counter unconditionally."""
        require_positive_int(legajo, "legajo")
        was_locked = self._tracker.is_locked(legajo)
        self._tracker.reset(legajo)
        logger.info("account_unlocked", extra={"legajo": legajo, "was_locked": was_locked})

    def is_locked(self, legajo: int) -> bool:
        require_positive_int(legajo, "legajo")
        return self._tracker.is_locked(legajo)

    def failed_attempts(self, legajo: int) -> int:
        require_positive_int(legajo, "legajo")
        return self._tracker.failures(legajo)
