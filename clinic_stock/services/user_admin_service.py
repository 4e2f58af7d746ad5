"""
UserAdminService -- staff account administration.

Responsibility:
    Create, edit, soft-delete and list user accounts.

Invariants enforced:
    - legajo is unique; ``create`` never overwrites an existing record.
    - ``edit`` keeps the stored ``created_at``.
    - Users are never removed; soft delete clears ``active``.
    - A user cannot deactivate their own account.

Failure modes:
    - ValidationError: missing names, short password, missing role,
      non-positive legajo.
    - DuplicateUserError / UserNotFoundError.
    - SelfDeactivationError.
"""

from __future__ import annotations

from clinic_stock.domain.clock import Clock
from clinic_stock.domain.user import User
from clinic_stock.domain.validation import require_positive_int, require_text
from clinic_stock.exceptions import (
    SelfDeactivationError,
    UserNotFoundError,
    ValidationError,
)
from clinic_stock.logging_config import LogContext, get_logger
from clinic_stock.services.base import BaseService, UnitOfWorkFactory

logger = get_logger("services.user_admin")

DEFAULT_MIN_PASSWORD_LENGTH = 6


class UserAdminService(BaseService):
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
    ):
        super().__init__(uow_factory, clock)
        self._min_password_length = require_positive_int(
            min_password_length, "min_password_length"
        )

    def _validate(self, user: User) -> None:
        if user is None:
            raise ValidationError("user", "user is required")
        require_positive_int(user.legajo, "legajo")
        require_text(user.first_name, "first_name")
        require_text(user.last_name, "last_name")
        if not isinstance(user.password, str) or len(user.password) < self._min_password_length:
            raise ValidationError(
                "password",
                f"password must have at least {self._min_password_length} characters",
            )
        if user.role is None:
            raise ValidationError("role", "role is required")

    def create(self, user: User) -> User:
        """
        Register a new account.

        Raises:
            ValidationError: On any invalid field.
            DuplicateUserError: If the legajo already exists.
        """
        self._validate(user)
        with self._uow_factory() as uow:
            uow.users.save(user)
            uow.commit()
        logger.info(
            "user_created",
            extra={"legajo": user.legajo, "role": user.role},
        )
        return user

    def edit(self, user: User) -> User:
        """
        Replace names, password, role and active flag of an existing account.

        The stored ``created_at`` wins over whatever ``user`` carries.

        Raises:
            ValidationError: On any invalid field.
            UserNotFoundError: If the legajo does not exist.
        """
        self._validate(user)
        with self._uow_factory() as uow:
            stored = uow.users.find_by_legajo(user.legajo)
            if stored is None:
                raise UserNotFoundError(user.legajo)
            updated = user.with_created_at(stored.created_at)
            uow.users.update(updated)
            uow.commit()
        logger.info("user_edited", extra={"legajo": user.legajo})
        return updated

    def soft_delete(self, legajo: int, actor: User | None = None) -> None:
        """
        Mark an account inactive.

        Deactivating an already inactive account changes nothing.

        Raises:
            ValidationError: Non-positive legajo.
            UserNotFoundError: If the legajo does not exist.
            SelfDeactivationError: If ``actor`` is the same account.
        """
        require_positive_int(legajo, "legajo")
        with LogContext.bind(actor_id=actor.legajo if actor else None):
            if actor is not None and actor.legajo == legajo:
                raise SelfDeactivationError(legajo)
            with self._uow_factory() as uow:
                stored = uow.users.find_by_legajo(legajo)
                if stored is None:
                    raise UserNotFoundError(legajo)
                if not stored.active:
                    logger.info("user_already_inactive", extra={"legajo": legajo})
                    return
                uow.users.soft_delete(legajo)
                uow.commit()
            logger.info("user_deactivated", extra={"legajo": legajo})

    def list_active(self) -> list[User]:
        """Active accounts ordered by legajo."""
        with self._uow_factory() as uow:
            return uow.users.find_all_active()

    def get_by_legajo(self, legajo: int) -> User:
        """Active or inactive account; UserNotFoundError when absent."""
        require_positive_int(legajo, "legajo")
        with self._uow_factory() as uow:
            user = uow.users.find_by_legajo(legajo)
        if user is None:
            raise UserNotFoundError(legajo)
        return user
