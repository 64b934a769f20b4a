"""Settings validation and CLI tests."""

import pytest
from click.testing import CliRunner
from pydantic import ValidationError

from threadstocks import __version__
from threadstocks.cli.main import main
from threadstocks.config import DEFAULT_JWT_SECRET, Settings


# ═══════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════


def test_defaults_match_session_contract():
    s = Settings()
    assert s.jwt_issuer == "threadStocks"
    assert s.token_expire_hours == 72
    assert s.cookie_name == "token"
    assert s.cookie_max_age == 86400
    assert s.bcrypt_rounds == 14
    assert s.reset_token_expire_minutes == 60


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("THREADSTOCKS_PORT", "9001")
    monkeypatch.setenv("THREADSTOCKS_BCRYPT_ROUNDS", "10")
    s = Settings()
    assert s.port == 9001
    assert s.bcrypt_rounds == 10


def test_default_secret_refused_outside_development():
    with pytest.raises(ValidationError):
        Settings(environment="production", jwt_secret=DEFAULT_JWT_SECRET)

    s = Settings(environment="production", jwt_secret="a-real-secret")
    assert s.environment == "production"


@pytest.mark.parametrize("algorithm", ["none", "RS256", "ES256"])
def test_non_hmac_algorithm_refused(algorithm):
    with pytest.raises(ValidationError):
        Settings(jwt_algorithm=algorithm)


def test_frontend_url_must_be_http():
    with pytest.raises(ValidationError):
        Settings(frontend_url="javascript:alert(1)")


# ═══════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════


def test_cli_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_gen_secret():
    result = CliRunner().invoke(main, ["gen-secret", "--bytes", "16"])
    assert result.exit_code == 0
    secret = result.output.strip()
    assert len(secret) >= 20
    assert secret != CliRunner().invoke(main, ["gen-secret"]).output.strip()


def test_cli_rejects_bad_config(monkeypatch):
    monkeypatch.setenv("THREADSTOCKS_ENVIRONMENT", "production")
    monkeypatch.delenv("THREADSTOCKS_JWT_SECRET", raising=False)
    result = CliRunner().invoke(main, ["init-db"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_cli_init_db_sqlite(monkeypatch, tmp_path):
    db_file = tmp_path / "cli.db"
    monkeypatch.setenv("THREADSTOCKS_DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    result = CliRunner().invoke(main, ["init-db"])
    assert result.exit_code == 0, result.output
    assert "Schema ready" in result.output
    assert db_file.exists()


# ═══════════════════════════════════════════════════════════
# Migrations
# ═══════════════════════════════════════════════════════════


def test_alembic_upgrade_builds_schema(monkeypatch, tmp_path):
    """`alembic upgrade head` targets THREADSTOCKS_DATABASE_URL."""
    from pathlib import Path

    from alembic import command
    from alembic.config import Config
    from sqlalchemy import create_engine, inspect

    db_file = tmp_path / "migrated.db"
    monkeypatch.setenv("THREADSTOCKS_DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    command.upgrade(Config(str(Path(__file__).parents[1] / "alembic.ini")), "head")

    engine = create_engine(f"sqlite:///{db_file}")
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"users", "threads", "password_reset_tokens"} <= tables
