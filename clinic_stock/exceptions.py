"""
Typed Exception Hierarchy for the Clinic Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (menu handlers, login screens, report jobs) must react differently to
"you typed a bad quantity", "that supply does not exist" and "there is not
enough stock". Every business failure therefore has its own class, a
machine-readable ``code`` class attribute, and structured attributes instead
of a message that has to be parsed.

    try:
        stock.register_egress("GAS-01", 10, service_id=1, actor=user)
    except InsufficientStockError as e:
        show(f"Only {e.available} left")   # structured data
    except NotFoundError as e:
        show(f"Unknown: {e.identifier}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ClinicStockError (base)
    |
    +-- ValidationError
    |   +-- SupplyInactiveError
    |   +-- SelfDeactivationError
    |
    +-- NotFoundError
    |   +-- SupplyNotFoundError
    |   +-- ServiceNotFoundError
    |   +-- UserNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- AuthenticationError
    |   +-- InvalidCredentialsError
    |   +-- AccountLockedError
    |
    +-- DuplicateKeyError
    |   +-- DuplicateSupplyError
    |   +-- DuplicateServiceError
    |   +-- DuplicateUserError
    |
    +-- ImmutabilityViolationError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                    | When Raised
----------------|-------------------------|--------------------------------------
Validation      | VALIDATION_ERROR        | Malformed input, checked before lookups
                | SUPPLY_INACTIVE         | Movement against an inactive supply
                | SELF_DEACTIVATION       | Admin tries to soft-delete themself
----------------|-------------------------|--------------------------------------
Not found       | SUPPLY_NOT_FOUND        | No supply with that code
                | SERVICE_NOT_FOUND       | No clinical service with that id
                | USER_NOT_FOUND          | No user with that legajo
----------------|-------------------------|--------------------------------------
Stock           | INSUFFICIENT_STOCK      | Egress larger than stock on hand
----------------|-------------------------|--------------------------------------
Authentication  | INVALID_CREDENTIALS     | Wrong legajo/password pair
                | ACCOUNT_LOCKED          | Too many consecutive failures
----------------|-------------------------|--------------------------------------
Duplicate key   | DUPLICATE_SUPPLY        | Supply code already registered
                | DUPLICATE_SERVICE       | Service id already registered
                | DUPLICATE_USER          | Legajo already registered
----------------|-------------------------|--------------------------------------
Immutability    | IMMUTABILITY_VIOLATION  | UPDATE/DELETE of a movement row
----------------|-------------------------|--------------------------------------
Persistence     | PERSISTENCE_ERROR       | Wrapped lower-level database failure

===============================================================================
"""


class ClinicStockError(Exception):
    """
    Base exception for all clinic stock errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CLINIC_STOCK_ERROR"


# Validation exceptions


class ValidationError(ClinicStockError):
    """Malformed input. Raised before any lookup or mutation happens."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class SupplyInactiveError(ValidationError):
    """Movements cannot be registered against an inactive supply."""

    code: str = "SUPPLY_INACTIVE"

    def __init__(self, supply_code: str):
        self.supply_code = supply_code
        super().__init__("code", f"Supply is inactive: {supply_code}")


class SelfDeactivationError(ValidationError):
    """A user cannot deactivate their own account."""

    code: str = "SELF_DEACTIVATION"

    def __init__(self, legajo: int):
        self.legajo = legajo
        super().__init__(
            "legajo",
            f"User {legajo} cannot deactivate their own account; "
            "another administrator must do it",
        )


# Lookup exceptions


class NotFoundError(ClinicStockError):
    """Base exception for references to entities that do not exist."""

    code: str = "NOT_FOUND"
    entity: str = "Entity"

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"{self.entity} not found: {identifier}")


class SupplyNotFoundError(NotFoundError):
    """No supply exists with the given code."""

    code: str = "SUPPLY_NOT_FOUND"
    entity: str = "Supply"


class ServiceNotFoundError(NotFoundError):
    """No clinical service exists with the given id."""

    code: str = "SERVICE_NOT_FOUND"
    entity: str = "Service"


class UserNotFoundError(NotFoundError):
    """No user exists with the given legajo."""

    code: str = "USER_NOT_FOUND"
    entity: str = "User"


# Stock exceptions


class InsufficientStockError(ClinicStockError):
    """
    Egress requested exceeds the stock on hand.

    Guarantees no mutation occurred: the check runs before any write.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, supply_code: str, requested: int, available: int):
        self.supply_code = supply_code
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {supply_code}: "
            f"requested {requested}, available {available}"
        )


# Authentication exceptions


class AuthenticationError(ClinicStockError):
    """Base exception for login failures."""

    code: str = "AUTHENTICATION_ERROR"


class InvalidCredentialsError(AuthenticationError):
    """Legajo/password pair did not match an active user."""

    code: str = "INVALID_CREDENTIALS"

    def __init__(self, legajo: int, attempts_remaining: int):
        self.legajo = legajo
        self.attempts_remaining = attempts_remaining
        super().__init__("Invalid credentials")


class AccountLockedError(AuthenticationError):
    """
    Account is locked after too many consecutive failed logins.

    Takes precedence over credential checking: raised even when the
    password would have matched.
    """

    code: str = "ACCOUNT_LOCKED"

    def __init__(self, legajo: int):
        self.legajo = legajo
        super().__init__(f"Account locked: {legajo}")


# Duplicate key exceptions


class DuplicateKeyError(ClinicStockError):
    """Base exception for creating an entity whose key already exists."""

    code: str = "DUPLICATE_KEY"
    entity: str = "Entity"

    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"{self.entity} already exists: {identifier}")


class DuplicateSupplyError(DuplicateKeyError):
    code: str = "DUPLICATE_SUPPLY"
    entity: str = "Supply"


class DuplicateServiceError(DuplicateKeyError):
    code: str = "DUPLICATE_SERVICE"
    entity: str = "Service"


class DuplicateUserError(DuplicateKeyError):
    code: str = "DUPLICATE_USER"
    entity: str = "User"


# Storage exceptions


class ImmutabilityViolationError(ClinicStockError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class PersistenceError(ClinicStockError):
    """
    Unexpected failure in the persistence backend.

    Wraps the underlying driver/ORM exception (available as __cause__).
    Never retried automatically.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")
