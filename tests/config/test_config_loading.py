"""
Tests for configuration loading and application wiring.

Covers:
- Bundled defaults and seed data
- YAML overrides and validation
- CLINIC_STOCK_DATABASE_URL override
- build_application on both backends, idempotent seeding
"""

from datetime import date
from textwrap import dedent

import pytest
import yaml

from clinic_stock.bootstrap import build_application, seed_reference_data
from clinic_stock.config import (
    DATABASE_URL_ENV,
    ClinicConfig,
    DatabaseConfig,
    load_config,
    parse_config,
)
from clinic_stock.domain.user import Role
from clinic_stock.exceptions import AccountLockedError, InvalidCredentialsError
from clinic_stock.services.alerts import RecordingAlertSink


def _write(tmp_path, text: str):
    path = tmp_path / "clinic.yaml"
    path.write_text(dedent(text), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_bundled_defaults(self):
        config = load_config(environ={})
        assert config.backend == "memory"
        assert config.security.max_failed_logins == 3
        assert config.security.min_password_length == 6
        assert config.alerts.expiration_days_ahead == 30
        assert [s.id for s in config.seed.services] == [1, 2, 3, 4]
        assert {s.code for s in config.seed.supplies} == {"GAS-01", "GUA-01", "BAR-01"}
        assert [u.legajo for u in config.seed.users] == [1000, 2000]

    def test_yaml_overrides(self, tmp_path):
        path = _write(
            tmp_path,
            """
            backend: sql
            database:
              url: "sqlite+pysqlite:///clinic.db"
            security:
              max_failed_logins: 5
            seed:
              supplies:
                - code: VAC-01
                  name: Vacuna antigripal
                  unit: dosis
                  stock: 10
                  minimum: 2
                  expiration_date: 2024-06-30
            """,
        )
        config = load_config(path, environ={})
        assert config.backend == "sql"
        assert config.database.url == "sqlite+pysqlite:///clinic.db"
        assert config.security.max_failed_logins == 5
        assert config.security.min_password_length == 6
        (supply,) = config.seed.supplies
        assert supply.expiration_date == date(2024, 6, 30)
        assert config.seed.users == ()

    def test_environment_overrides_database_url(self):
        config = load_config(environ={DATABASE_URL_ENV: "postgresql+psycopg2://u:p@db/clinic"})
        assert config.database.url == "postgresql+psycopg2://u:p@db/clinic"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            parse_config({"backend": "mongo"})

    @pytest.mark.parametrize("value", [0, -1, "three", True])
    def test_invalid_lockout_limit_rejected(self, value):
        with pytest.raises(ValueError):
            parse_config({"security": {"max_failed_logins": value}})

    def test_missing_seed_key_raises(self):
        with pytest.raises(KeyError):
            parse_config({"seed": {"services": [{"id": 1}]}})

    def test_malformed_yaml_propagates(self, tmp_path):
        path = _write(tmp_path, "backend: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config(path, environ={})

    def test_config_is_frozen(self):
        config = load_config(environ={})
        with pytest.raises(AttributeError):
            config.backend = "sql"


class TestBuildApplication:
    @pytest.fixture(params=["memory", "sql"])
    def app(self, request, tmp_path, clock):
        base = load_config(environ={})
        config = ClinicConfig(
            backend=request.param,
            database=DatabaseConfig(url=f"sqlite+pysqlite:///{tmp_path / 'app.db'}"),
            security=base.security,
            alerts=base.alerts,
            seed=base.seed,
        )
        application = build_application(config, clock=clock, alert_sink=RecordingAlertSink())
        yield application
        application.close()

    def test_wired_end_to_end(self, app):
        user = app.accounts.login(2000, "aux123")
        assert user.role is Role.AUXILIARY

        app.stock.register_egress("GAS-01", 45, service_id=1, actor=user)
        assert [s.code for s in app.stock.critical_supplies()] == ["GAS-01"]
        assert app.reports.net_movement("GAS-01") == -45
        assert [u.legajo for u in app.users.list_active()] == [1000, 2000]

    def test_login_limit_from_config(self, app):
        for _ in range(3):
            with pytest.raises(InvalidCredentialsError):
                app.accounts.login(1000, "bad")
        with pytest.raises(AccountLockedError):
            app.accounts.login(1000, "admin123")
        assert app.login_tracker.is_locked(1000)

    def test_seeding_is_idempotent(self, app):
        app.stock.register_ingress("GAS-01", 5, app.users.get_by_legajo(1000))
        inserted = seed_reference_data(app.uow_factory, app.config.seed)
        assert inserted == {"services": 0, "supplies": 0, "users": 0}
        assert app.stock.find_supply("GAS-01").stock == 55
