from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from analytics import (
    AggregationSummary,
    BudgetReport,
    aggregate,
    category_totals_for_month,
    evaluate_budgets,
)
from auth import hash_password, verify_password
from errors import (
    AuthError,
    ConflictError,
    InvalidBudget,
    NotFound,
    StoreUnavailable,
)
from models import Budget, Category, Transaction, TransactionType, TypeFilter, User
from notifications import Notification, evaluate_notifications
from periods import Period, local_now
from schemas import BudgetIn, TransactionIn, TransactionUpdateIn, UserRegisterIn

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_with_retry(session: Session, operation: Callable[[], T], *, label: str) -> T:
    """Run a read once more after a transient store failure, then give up."""
    try:
        return operation()
    except OperationalError as exc:
        logger.warning(f"store_retry: op={label} error={exc.__class__.__name__}")
        session.rollback()
    try:
        return operation()
    except OperationalError as exc:
        session.rollback()
        logger.error(f"store_unavailable: op={label}")
        raise StoreUnavailable(f"Store unavailable during {label}") from exc


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(
            select(User).where(func.lower(User.email) == _normalize_email(email))
        )

    def get(self, user_id: int) -> User:
        user = read_with_retry(
            self.session, lambda: self.session.get(User, user_id), label="user_get"
        )
        if not user:
            raise NotFound("User not found")
        return user

    def register(self, data: UserRegisterIn) -> User:
        if self._by_email(data.email):
            raise ConflictError("User already exists")
        user = User(
            name=data.name.strip(),
            email=_normalize_email(data.email),
            password_hash=hash_password(data.password),
            is_avatar_image_set=False,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("User already exists") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self._by_email(email)
        # Same message for unknown email and wrong password.
        if not user or not verify_password(password, user.password_hash):
            raise AuthError("Incorrect email or password")
        return user

    def set_avatar(self, user_id: int, image: str) -> User:
        user = self.get(user_id)
        user.avatar_image = image
        user.is_avatar_image_set = True
        self.session.commit()
        self.session.refresh(user)
        return user

    def list_others(self, user_id: int) -> list[User]:
        stmt = select(User).where(User.id != user_id).order_by(User.name, User.id)
        return self.session.scalars(stmt).all()


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _require_user(self) -> None:
        UserService(self.session).get(self.user_id)

    def create(self, data: TransactionIn) -> Transaction:
        self._require_user()
        txn = Transaction(
            user_id=self.user_id,
            title=data.title.strip(),
            amount_cents=data.amount_cents,
            category=data.category,
            transaction_type=data.transaction_type,
            date=data.date,
            description=data.description,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} "
            f"type={txn.transaction_type.value}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise NotFound("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionUpdateIn) -> Transaction:
        txn = self.get(transaction_id)
        for field, value in data.changes().items():
            if field == "title":
                value = value.strip()
            setattr(txn, field, value)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_updated: user_id={self.user_id} id={txn.id}")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: user_id={self.user_id} id={transaction_id}")

    def query(
        self, window: Period, type_filter: TypeFilter = TypeFilter.all
    ) -> list[Transaction]:
        self._require_user()
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date.between(window.start, window.end),
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        if type_filter != TypeFilter.all:
            stmt = stmt.where(
                Transaction.transaction_type == TransactionType(type_filter.value)
            )
        return read_with_retry(
            self.session,
            lambda: list(self.session.scalars(stmt).all()),
            label="transaction_query",
        )


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.id.asc())
        )
        return read_with_retry(
            self.session, lambda: list(self.session.scalars(stmt).all()), label="budgets"
        )

    def as_mapping(self) -> dict[Category, int]:
        return {budget.category: budget.amount_cents for budget in self.list_all()}

    def upsert(self, data: BudgetIn) -> Budget:
        UserService(self.session).get(self.user_id)
        amount_cents = data.amount_cents
        if amount_cents <= 0:
            raise InvalidBudget(data.category, amount_cents)
        budget = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id, Budget.category == data.category
            )
        )
        if budget:
            budget.amount_cents = amount_cents
        else:
            budget = Budget(
                user_id=self.user_id,
                category=data.category,
                amount_cents=amount_cents,
            )
            self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_saved: user_id={self.user_id} category={data.category.value} "
            f"amount_cents={amount_cents}"
        )
        return budget

    def delete(self, category: Category) -> None:
        budget = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id, Budget.category == category
            )
        )
        if not budget:
            raise NotFound("Budget not found")
        self.session.delete(budget)
        self.session.commit()


@dataclass(frozen=True)
class Dashboard:
    window: Period
    generated_at: datetime
    transactions: tuple[Transaction, ...]
    summary: AggregationSummary
    month_category_totals: dict[Category, int]
    budget_report: BudgetReport
    notifications: tuple[Notification, ...]


class DashboardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def build(
        self,
        window: Period,
        type_filter: TypeFilter = TypeFilter.all,
        *,
        now: Optional[datetime] = None,
    ) -> Dashboard:
        now = now or local_now()
        transactions = TransactionService(self.session, self.user_id).query(
            window, type_filter
        )
        summary = aggregate(transactions, now)
        month_totals = category_totals_for_month(transactions, now.year, now.month)
        budget_report = evaluate_budgets(
            month_totals, BudgetService(self.session, self.user_id).as_mapping()
        )
        notifications = evaluate_notifications(
            transactions, summary, budget_report, now
        )
        return Dashboard(
            window=window,
            generated_at=now,
            transactions=tuple(transactions),
            summary=summary,
            month_category_totals=month_totals,
            budget_report=budget_report,
            notifications=notifications,
        )
