"""
Configuration Loader (``clinic_stock.config``).

Responsibility
--------------
Loads the YAML configuration file and parses it into frozen dataclasses.
The bundled ``default_config.yaml`` is used when no path is given.  The
``CLINIC_STOCK_DATABASE_URL`` environment variable overrides
``database.url``.

Architecture position
---------------------
**Config layer**.  Consumed by ``clinic_stock.bootstrap``; services never
read configuration themselves, they receive plain values.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* Unknown ``backend`` values and non-positive security limits are
  rejected at load time, not at first use.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in a seed entry  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any

import yaml

DATABASE_URL_ENV = "CLINIC_STOCK_DATABASE_URL"
DEFAULT_CONFIG_PATH = Path(__file__).with_name("default_config.yaml")

BACKENDS = ("memory", "sql")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False


@dataclass(frozen=True)
class SecurityConfig:
    max_failed_logins: int = 3
    min_password_length: int = 6


@dataclass(frozen=True)
class AlertConfig:
    expiration_days_ahead: int = 30


@dataclass(frozen=True)
class ServiceSeed:
    id: int
    name: str


@dataclass(frozen=True)
class SupplySeed:
    code: str
    name: str
    unit: str
    stock: int
    minimum: int
    state: str = "active"
    expiration_date: date | None = None


@dataclass(frozen=True)
class UserSeed:
    legajo: int
    password: str
    first_name: str
    last_name: str
    role: str
    active: bool = True


@dataclass(frozen=True)
class SeedData:
    services: tuple[ServiceSeed, ...] = ()
    supplies: tuple[SupplySeed, ...] = ()
    users: tuple[UserSeed, ...] = ()


@dataclass(frozen=True)
class ClinicConfig:
    backend: str = "memory"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    seed: SeedData = field(default_factory=SeedData)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date | None:
    """Parse an optional date from YAML (string or date object)."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _positive(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def _non_negative(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
    )


def parse_security(data: dict[str, Any]) -> SecurityConfig:
    defaults = SecurityConfig()
    return SecurityConfig(
        max_failed_logins=_positive(
            data.get("max_failed_logins", defaults.max_failed_logins),
            "security.max_failed_logins",
        ),
        min_password_length=_positive(
            data.get("min_password_length", defaults.min_password_length),
            "security.min_password_length",
        ),
    )


def parse_alerts(data: dict[str, Any]) -> AlertConfig:
    defaults = AlertConfig()
    return AlertConfig(
        expiration_days_ahead=_non_negative(
            data.get("expiration_days_ahead", defaults.expiration_days_ahead),
            "alerts.expiration_days_ahead",
        ),
    )


def parse_seed(data: dict[str, Any]) -> SeedData:
    """Parse the seed lists.  Required keys per entry raise KeyError when absent."""
    return SeedData(
        services=tuple(
            ServiceSeed(id=s["id"], name=s["name"]) for s in data.get("services") or ()
        ),
        supplies=tuple(
            SupplySeed(
                code=s["code"],
                name=s["name"],
                unit=s["unit"],
                stock=s["stock"],
                minimum=s["minimum"],
                state=s.get("state", "active"),
                expiration_date=parse_date(s.get("expiration_date")),
            )
            for s in data.get("supplies") or ()
        ),
        users=tuple(
            UserSeed(
                legajo=u["legajo"],
                password=str(u["password"]),
                first_name=u["first_name"],
                last_name=u["last_name"],
                role=u["role"],
                active=bool(u.get("active", True)),
            )
            for u in data.get("users") or ()
        ),
    )


def parse_config(data: dict[str, Any]) -> ClinicConfig:
    """Build a ClinicConfig from an already-loaded mapping."""
    backend = data.get("backend", "memory")
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of {BACKENDS}, got {backend!r}")
    return ClinicConfig(
        backend=backend,
        database=parse_database(data.get("database") or {}),
        security=parse_security(data.get("security") or {}),
        alerts=parse_alerts(data.get("alerts") or {}),
        seed=parse_seed(data.get("seed") or {}),
    )


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> ClinicConfig:
    """
    Load configuration from ``path`` (bundled defaults when None).

    Args:
        path: YAML file to read.
        environ: Environment mapping; ``os.environ`` when None.

    Returns:
        Frozen ClinicConfig.
    """
    environ = os.environ if environ is None else environ
    config = parse_config(load_yaml_file(Path(path) if path else DEFAULT_CONFIG_PATH))

    override = environ.get(DATABASE_URL_ENV)
    if override:
        config = replace(config, database=replace(config.database, url=override))
    return config
