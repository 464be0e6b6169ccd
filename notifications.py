from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Sequence, Union

from analytics import AggregationSummary, BudgetReport, expenses
from categories import display_label
from models import Transaction
from money import format_currency

BUDGET_DANGER_THRESHOLD = Decimal("90")
BUDGET_WARNING_THRESHOLD = Decimal("75")
LARGE_EXPENSE_MULTIPLIER = 2
LARGE_EXPENSE_WINDOW_DAYS = 1
HIGH_ACTIVITY_WINDOW_DAYS = 7
HIGH_ACTIVITY_MIN_COUNT = 10
FAVORABLE_TREND_RATIO = Decimal("0.8")


class Severity(str, Enum):
    danger = "danger"
    warning = "warning"
    info = "info"
    success = "success"


class NotificationTag(str, Enum):
    budget = "budget"
    expense = "expense"
    activity = "activity"
    achievement = "achievement"


@dataclass(frozen=True)
class Notification:
    id: str
    rule: str
    subject: str
    severity: Severity
    tag: NotificationTag
    title: str
    message: str
    timestamp: datetime

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        """Stable across refreshes within the same month, unlike ``id``."""
        return (self.rule, self.subject, self.timestamp.strftime("%Y-%m"))


def _as_datetime(now: Union[date, datetime]) -> datetime:
    if isinstance(now, datetime):
        return now
    return datetime.combine(now, time())


def _days_ago(txn: Transaction, today: date) -> int:
    # A window of N days is today plus the N - 1 calendar days before it.
    return (today - txn.date).days


def _whole_percent(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class _Builder:
    def __init__(self, now: datetime) -> None:
        self.now = now
        self.stamp = int(now.timestamp())
        self.items: list[Notification] = []

    def add(
        self,
        rule: str,
        subject: object,
        severity: Severity,
        tag: NotificationTag,
        title: str,
        message: str,
        timestamp: Optional[datetime] = None,
    ) -> None:
        self.items.append(
            Notification(
                id=f"{rule}-{subject}-{self.stamp}",
                rule=rule,
                subject=str(subject),
                severity=severity,
                tag=tag,
                title=title,
                message=message,
                timestamp=timestamp or self.now,
            )
        )


def _budget_rules(builder: _Builder, budget_report: BudgetReport) -> None:
    for category, line in budget_report.lines.items():
        percent = _whole_percent(line.percentage)
        if line.percentage >= BUDGET_DANGER_THRESHOLD:
            builder.add(
                "budget-danger",
                category.value,
                Severity.danger,
                NotificationTag.budget,
                "🚨 Budget Alert!",
                f"You've spent {percent}% of your {display_label(category)} budget!",
            )
        elif line.percentage >= BUDGET_WARNING_THRESHOLD:
            builder.add(
                "budget-warning",
                category.value,
                Severity.warning,
                NotificationTag.budget,
                "⚠️ Budget Warning",
                f"You've spent {percent}% of your {display_label(category)} budget.",
            )


def _large_expense_rule(
    builder: _Builder, expense_txns: list[Transaction], today: date
) -> None:
    if not expense_txns:
        return
    count = len(expense_txns)
    total = sum(txn.amount_cents for txn in expense_txns)
    for txn in expense_txns:
        if not 0 <= _days_ago(txn, today) < LARGE_EXPENSE_WINDOW_DAYS:
            continue
        # amount > 2 * (total / count), kept in integers
        if txn.amount_cents * count <= LARGE_EXPENSE_MULTIPLIER * total:
            continue
        builder.add(
            "large-expense",
            txn.id,
            Severity.info,
            NotificationTag.expense,
            "💸 Large Expense Detected",
            f"{format_currency(txn.amount_cents)} spent on {display_label(txn.category)}",
            timestamp=datetime.combine(txn.date, time()),
        )


def _high_activity_rule(
    builder: _Builder, expense_txns: list[Transaction], today: date
) -> None:
    recent = [
        txn
        for txn in expense_txns
        if 0 <= _days_ago(txn, today) < HIGH_ACTIVITY_WINDOW_DAYS
    ]
    if len(recent) < HIGH_ACTIVITY_MIN_COUNT:
        return
    builder.add(
        "spending-streak",
        today.isoformat(),
        Severity.warning,
        NotificationTag.activity,
        "📈 High Activity Alert",
        f"You've made {len(recent)} transactions in the last "
        f"{HIGH_ACTIVITY_WINDOW_DAYS} days!",
    )


def _favorable_trend_rule(
    builder: _Builder, summary: AggregationSummary, today: date
) -> None:
    last_month = summary.last_month_spending_cents
    if last_month <= 0:
        return
    if Decimal(summary.this_month_spending_cents) >= FAVORABLE_TREND_RATIO * last_month:
        return
    builder.add(
        "good-spending",
        today.strftime("%Y-%m"),
        Severity.success,
        NotificationTag.achievement,
        "🎉 Great Job!",
        f"You're spending {summary.spending_trend.percentage}% less than last month! "
        "Keep it up!",
    )


def evaluate_notifications(
    transactions: Sequence[Transaction],
    summary: AggregationSummary,
    budget_report: BudgetReport,
    now: Union[date, datetime],
) -> tuple[Notification, ...]:
    """Run every advisory rule once against the given state.

    Rules are independent and may all fire in the same pass. Budget rules check
    danger before warning, so a category gets at most one budget notification.
    Nothing is remembered between calls.
    """
    moment = _as_datetime(now)
    today = moment.date()
    builder = _Builder(moment)
    expense_txns = expenses(transactions)

    _budget_rules(builder, budget_report)
    _large_expense_rule(builder, expense_txns, today)
    _high_activity_rule(builder, expense_txns, today)
    _favorable_trend_rule(builder, summary, today)
    return tuple(builder.items)
