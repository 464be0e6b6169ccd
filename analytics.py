"""Aggregation and budget evaluation over an in-memory transaction set.

Everything here is a pure function of its arguments: no session, no clock.
Callers pass ``now`` explicitly, so the same input always yields the same
summary. Money is integer cents throughout; percentages are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence, Union

from errors import InvalidBudget
from models import Category, Transaction, TransactionType
from money import percentage_of, round_percentage
from periods import previous_month

WARNING_THRESHOLD = Decimal("50")
OVER_WARNING_THRESHOLD = Decimal("80")
EXCEEDED_THRESHOLD = Decimal("100")


class TrendDirection(str, Enum):
    up = "up"
    down = "down"
    neutral = "neutral"


class BudgetStatus(str, Enum):
    ok = "ok"
    warning = "warning"
    over_warning = "over-warning"


@dataclass(frozen=True)
class SpendingTrend:
    direction: TrendDirection
    percentage: Decimal


@dataclass(frozen=True)
class AggregationSummary:
    total_income_cents: int
    total_expenses_cents: int
    balance_cents: int
    category_totals: Mapping[Category, int]
    top_category: Optional[Category]
    average_expense_cents: int
    this_month_spending_cents: int
    last_month_spending_cents: int
    spending_trend: SpendingTrend
    transaction_count: int
    expense_count: int


@dataclass(frozen=True)
class BudgetLine:
    category: Category
    spent_cents: int
    budget_cents: int
    percentage: Decimal  # unrounded; thresholds compare against this
    status: BudgetStatus
    exceeded: bool

    @property
    def remaining_cents(self) -> int:
        return self.budget_cents - self.spent_cents

    @property
    def rounded_percentage(self) -> Decimal:
        return round_percentage(self.percentage)


@dataclass(frozen=True)
class BudgetReport:
    lines: Mapping[Category, BudgetLine]
    rejected: tuple[InvalidBudget, ...]
    total_budget_cents: int
    total_spent_cents: int

    @property
    def overall_percentage(self) -> Decimal:
        if self.total_budget_cents <= 0:
            return Decimal("0")
        return round_percentage(
            percentage_of(self.total_spent_cents, self.total_budget_cents)
        )


def _today(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def is_expense(txn: Transaction) -> bool:
    return txn.transaction_type == TransactionType.expense


def expenses(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [txn for txn in transactions if is_expense(txn)]


def category_totals(transactions: Iterable[Transaction]) -> dict[Category, int]:
    """Expense totals per category, keyed in first-encounter order."""
    totals: dict[Category, int] = {}
    for txn in transactions:
        if not is_expense(txn):
            continue
        totals[txn.category] = totals.get(txn.category, 0) + txn.amount_cents
    return totals


def _in_month(txn: Transaction, year: int, month: int) -> bool:
    return txn.date.year == year and txn.date.month == month


def category_totals_for_month(
    transactions: Iterable[Transaction], year: int, month: int
) -> dict[Category, int]:
    return category_totals(txn for txn in transactions if _in_month(txn, year, month))


def spending_for_month(
    transactions: Iterable[Transaction], year: int, month: int
) -> int:
    return sum(
        txn.amount_cents
        for txn in transactions
        if is_expense(txn) and _in_month(txn, year, month)
    )


def top_category(totals: Mapping[Category, int]) -> Optional[Category]:
    # max() keeps the first maximal key, so ties go to the earliest category.
    if not totals:
        return None
    return max(totals, key=lambda category: totals[category])


def average_expense_cents(transactions: Iterable[Transaction]) -> int:
    amounts = [txn.amount_cents for txn in transactions if is_expense(txn)]
    if not amounts:
        return 0
    average = Decimal(sum(amounts)) / Decimal(len(amounts))
    return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def spending_trend(this_month_cents: int, last_month_cents: int) -> SpendingTrend:
    if last_month_cents == 0:
        return SpendingTrend(TrendDirection.neutral, Decimal("0"))
    change = percentage_of(abs(this_month_cents - last_month_cents), last_month_cents)
    if this_month_cents > last_month_cents:
        direction = TrendDirection.up
    elif this_month_cents < last_month_cents:
        direction = TrendDirection.down
    else:
        direction = TrendDirection.neutral
    return SpendingTrend(direction, round_percentage(change))


def aggregate(
    transactions: Sequence[Transaction], now: Union[date, datetime]
) -> AggregationSummary:
    today = _today(now)
    last_year, last_month = previous_month(today.year, today.month)

    income = sum(
        txn.amount_cents
        for txn in transactions
        if txn.transaction_type == TransactionType.credit
    )
    spent = sum(txn.amount_cents for txn in transactions if is_expense(txn))
    totals = category_totals(transactions)
    this_month = spending_for_month(transactions, today.year, today.month)
    previous = spending_for_month(transactions, last_year, last_month)

    return AggregationSummary(
        total_income_cents=income,
        total_expenses_cents=spent,
        balance_cents=income - spent,
        category_totals=MappingProxyType(totals),
        top_category=top_category(totals),
        average_expense_cents=average_expense_cents(transactions),
        this_month_spending_cents=this_month,
        last_month_spending_cents=previous,
        spending_trend=spending_trend(this_month, previous),
        transaction_count=len(transactions),
        expense_count=sum(1 for txn in transactions if is_expense(txn)),
    )


def budget_status(percentage: Decimal) -> BudgetStatus:
    if percentage < WARNING_THRESHOLD:
        return BudgetStatus.ok
    if percentage < OVER_WARNING_THRESHOLD:
        return BudgetStatus.warning
    return BudgetStatus.over_warning


def evaluate_budgets(
    totals: Mapping[Category, int], budgets: Mapping[Category, Optional[int]]
) -> BudgetReport:
    """Compare category spend against monthly budgets.

    ``totals`` should already be restricted to the month being evaluated.
    A non-positive budget is reported in ``rejected`` and skipped; the other
    categories are still evaluated.
    """
    lines: dict[Category, BudgetLine] = {}
    rejected: list[InvalidBudget] = []
    for category, amount_cents in budgets.items():
        if amount_cents is None or amount_cents <= 0:
            rejected.append(InvalidBudget(category, amount_cents))
            continue
        spent = totals.get(category, 0)
        percentage = percentage_of(spent, amount_cents)
        lines[category] = BudgetLine(
            category=category,
            spent_cents=spent,
            budget_cents=amount_cents,
            percentage=percentage,
            status=budget_status(percentage),
            exceeded=percentage >= EXCEEDED_THRESHOLD,
        )
    return BudgetReport(
        lines=MappingProxyType(lines),
        rejected=tuple(rejected),
        total_budget_cents=sum(line.budget_cents for line in lines.values()),
        total_spent_cents=sum(totals.values()),
    )
