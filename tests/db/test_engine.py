"""Tests for engine initialization and transactional scope (checkin_kernel/db)."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from checkin_kernel.db import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from checkin_kernel.models import TaxRate


@pytest.fixture
def sqlite_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


def _tax_rate_count() -> int:
    with session_scope() as session:
        return session.execute(select(func.count(TaxRate.id))).scalar_one()


class TestEngineLifecycle:
    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_sqlite_skips_pool_arguments(self, sqlite_engine):
        assert get_engine() is sqlite_engine
        assert sqlite_engine.dialect.name == "sqlite"


class TestSessionScope:
    def test_commits_on_success(self, sqlite_engine):
        with session_scope() as session:
            session.add(TaxRate(tax_name="GST", rate=Decimal("0.15"), is_default=True))

        assert _tax_rate_count() == 1

    def test_rolls_back_on_error(self, sqlite_engine, captured_logs):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(TaxRate(tax_name="GST", rate=Decimal("0.15")))
                session.flush()
                raise ValueError("abort")

        assert _tax_rate_count() == 0
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())
