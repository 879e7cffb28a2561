"""session_scope() owns commit-or-rollback; services only flush."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from stock_kernel.db.engine import get_session, session_scope
from stock_kernel.models.catalog import Category
from stock_kernel.services.catalog_service import CatalogService


def _find(name: str) -> Category | None:
    with get_session() as check:
        return check.execute(select(Category).where(Category.name == name)).scalar_one_or_none()


def test_rolls_back_on_error(db_tables, captured_logs):
    name = f"Scoped-{uuid4().hex[:8]}"

    with pytest.raises(RuntimeError):
        with session_scope() as session:
            CatalogService(session).create_category(name, uuid4())
            raise RuntimeError("abort")

    assert _find(name) is None
    assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())


def test_commits_on_success(db_tables):
    name = f"Scoped-{uuid4().hex[:8]}"

    with session_scope() as session:
        CatalogService(session).create_category(name, uuid4())

    committed = _find(name)
    assert committed is not None

    with session_scope() as session:
        session.delete(session.get(Category, committed.id))
    assert _find(name) is None
