from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from database import Base
from errors import NotFound, StoreUnavailable
from models import Category, TransactionType, TypeFilter, User
from periods import resolve_window
from schemas import TransactionIn, TransactionUpdateIn, UserRegisterIn
from services import TransactionService, UserService, read_with_retry

TODAY = date(2026, 10, 19)


def _user(session: Session, email: str = "asha@example.com") -> User:
    return UserService(session).register(
        UserRegisterIn(name="Asha", email=email, password="secret1")
    )


def _txn_in(
    amount: str,
    category: str,
    txn_type: str = "expense",
    on: date = TODAY,
    title: str = "Item",
) -> TransactionIn:
    return TransactionIn(
        title=title,
        amount=amount,
        category=category,
        transactionType=txn_type,
        date=on,
        description="note",
    )


def test_create_stores_amount_in_cents() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        txn = TransactionService(session, user.id).create(
            _txn_in("499.99", "🛒 Groceries")
        )
        assert txn.amount_cents == 49_999
        assert txn.category == Category.groceries
        assert txn.transaction_type == TransactionType.expense
        assert txn.user_id == user.id


def test_query_filters_by_window_and_type() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        service = TransactionService(session, user.id)
        service.create(_txn_in("10", "Groceries", on=date(2026, 10, 18), title="b"))
        service.create(_txn_in("20", "Rent", on=date(2026, 10, 12), title="a"))
        service.create(_txn_in("30", "Salary", "credit", on=date(2026, 10, 15)))
        service.create(_txn_in("40", "Travel", on=date(2026, 9, 1)))

        week = resolve_window("7", today=TODAY)
        everything = service.query(week)
        assert [t.title for t in everything] == ["a", "Item", "b"]

        expenses = service.query(week, TypeFilter.expense)
        assert {t.category for t in expenses} == {Category.groceries, Category.rent}

        credits = service.query(week, TypeFilter.credit)
        assert [t.amount_cents for t in credits] == [3_000]

        custom = resolve_window("custom", "2026-09-01", "2026-09-30", today=TODAY)
        assert [t.category for t in service.query(custom)] == [Category.travel]


def test_query_only_returns_own_transactions() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        asha = _user(session)
        ravi = _user(session, "ravi@example.com")
        TransactionService(session, asha.id).create(_txn_in("10", "Groceries"))

        window = resolve_window("30", today=TODAY)
        assert TransactionService(session, ravi.id).query(window) == []


def test_query_unknown_user_is_not_found() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        with pytest.raises(NotFound):
            TransactionService(session, 404).query(resolve_window("7", today=TODAY))


def test_update_applies_only_given_fields() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        service = TransactionService(session, user.id)
        txn = service.create(_txn_in("10", "Groceries"))

        updated = service.update(
            txn.id, TransactionUpdateIn(amount=Decimal("12.50"), category="Shopping")
        )
        assert updated.amount_cents == 1_250
        assert updated.category == Category.shopping
        assert updated.title == "Item"
        assert updated.description == "note"


def test_update_and_delete_respect_ownership() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        asha = _user(session)
        ravi = _user(session, "ravi@example.com")
        txn = TransactionService(session, asha.id).create(_txn_in("10", "Groceries"))

        intruder = TransactionService(session, ravi.id)
        with pytest.raises(NotFound):
            intruder.update(txn.id, TransactionUpdateIn(title="mine now"))
        with pytest.raises(NotFound):
            intruder.delete(txn.id)

        owner = TransactionService(session, asha.id)
        owner.delete(txn.id)
        with pytest.raises(NotFound):
            owner.get(txn.id)


class _FakeSession:
    def __init__(self) -> None:
        self.rollbacks = 0

    def rollback(self) -> None:
        self.rollbacks += 1


def _flaky(failures: int):
    calls = {"count": 0}

    def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return ["ok"]

    return operation, calls


def test_read_with_retry_recovers_from_one_failure() -> None:
    session = _FakeSession()
    operation, calls = _flaky(1)

    assert read_with_retry(session, operation, label="test") == ["ok"]
    assert calls["count"] == 2
    assert session.rollbacks == 1


def test_read_with_retry_gives_up_after_second_failure() -> None:
    session = _FakeSession()
    operation, calls = _flaky(2)

    with pytest.raises(StoreUnavailable):
        read_with_retry(session, operation, label="test")
    assert calls["count"] == 2
