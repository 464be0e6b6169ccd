from datetime import date, datetime, timedelta

from analytics import aggregate, category_totals_for_month, evaluate_budgets
from models import Category, Transaction, TransactionType
from notifications import NotificationTag, Severity, evaluate_notifications

NOW = datetime(2026, 10, 19, 12, 0)
TODAY = NOW.date()


def _expense(txn_id: int, amount_cents: int, on: date, category=Category.other):
    return Transaction(
        id=txn_id,
        user_id=1,
        title=f"Expense {txn_id}",
        amount_cents=amount_cents,
        category=category,
        transaction_type=TransactionType.expense,
        date=on,
    )


def _run(txns, budgets=None, now=NOW):
    summary = aggregate(txns, now)
    totals = category_totals_for_month(txns, now.year, now.month)
    report = evaluate_budgets(totals, budgets or {})
    return evaluate_notifications(txns, summary, report, now)


def _rules(notifications) -> list[str]:
    return [n.rule for n in notifications]


def test_high_frequency_fires_once_for_eleven_recent_expenses() -> None:
    txns = [
        _expense(i, 1_000, TODAY - timedelta(days=i % 3)) for i in range(1, 12)
    ]
    notifications = _run(txns)

    streaks = [n for n in notifications if n.rule == "spending-streak"]
    assert len(streaks) == 1
    assert streaks[0].severity == Severity.warning
    assert streaks[0].tag == NotificationTag.activity
    assert "11 transactions" in streaks[0].message


def test_high_frequency_needs_ten_expenses() -> None:
    txns = [_expense(i, 1_000, TODAY - timedelta(days=1)) for i in range(1, 10)]
    assert "spending-streak" not in _rules(_run(txns))


def test_high_frequency_window_excludes_the_seventh_day_back() -> None:
    week_ago = [_expense(i, 1_000, TODAY - timedelta(days=7)) for i in range(1, 11)]
    assert "spending-streak" not in _rules(_run(week_ago))

    six_days_ago = [
        _expense(i, 1_000, TODAY - timedelta(days=6)) for i in range(1, 11)
    ]
    assert "spending-streak" in _rules(_run(six_days_ago))


def test_high_frequency_ignores_future_dated_expenses() -> None:
    txns = [_expense(i, 1_000, TODAY + timedelta(days=1)) for i in range(1, 11)]
    assert "spending-streak" not in _rules(_run(txns))


def test_budget_danger_takes_precedence_over_warning() -> None:
    txns = [
        _expense(1, 9_500, TODAY, Category.groceries),
        _expense(2, 8_000, TODAY, Category.rent),
        _expense(3, 7_000, TODAY, Category.travel),
    ]
    budgets = {
        Category.groceries: 10_000,
        Category.rent: 10_000,
        Category.travel: 10_000,
    }
    notifications = [n for n in _run(txns, budgets) if n.tag == NotificationTag.budget]

    by_subject = {n.subject: n for n in notifications}
    assert set(by_subject) == {"Groceries", "Rent"}
    assert by_subject["Groceries"].severity == Severity.danger
    assert "95%" in by_subject["Groceries"].message
    assert by_subject["Rent"].severity == Severity.warning


def test_budget_thresholds_at_exact_boundaries() -> None:
    txns = [
        _expense(1, 9_000, TODAY, Category.groceries),
        _expense(2, 7_500, TODAY, Category.rent),
        _expense(3, 7_499, TODAY, Category.travel),
    ]
    budgets = {
        Category.groceries: 10_000,
        Category.rent: 10_000,
        Category.travel: 10_000,
    }
    severities = {
        n.subject: n.severity
        for n in _run(txns, budgets)
        if n.tag == NotificationTag.budget
    }
    assert severities == {"Groceries": Severity.danger, "Rent": Severity.warning}


def test_large_recent_expense_is_flagged() -> None:
    txns = [
        _expense(1, 100, TODAY - timedelta(days=10)),
        _expense(2, 100, TODAY - timedelta(days=10)),
        _expense(3, 100, TODAY - timedelta(days=10)),
        _expense(4, 1_000, TODAY),
        _expense(5, 1_000, TODAY - timedelta(days=2)),
    ]
    large = [n for n in _run(txns) if n.rule == "large-expense"]

    assert [n.subject for n in large] == ["4"]
    assert large[0].severity == Severity.info
    assert "₹10.00" in large[0].message


def test_large_expense_from_yesterday_is_not_recent() -> None:
    txns = [
        _expense(1, 100, TODAY - timedelta(days=10)),
        _expense(2, 100, TODAY - timedelta(days=10)),
        _expense(3, 100, TODAY - timedelta(days=10)),
        _expense(4, 1_000, TODAY - timedelta(days=1)),
    ]
    assert "large-expense" not in _rules(_run(txns))


def test_large_expense_must_exceed_twice_the_mean() -> None:
    # mean is 500, so 1000 is exactly twice and does not qualify
    txns = [_expense(1, 0, TODAY - timedelta(days=5)), _expense(2, 1_000, TODAY)]
    assert "large-expense" not in _rules(_run(txns))


def test_favorable_trend_when_spending_drops_below_eighty_percent() -> None:
    txns = [
        _expense(1, 100_000, date(2026, 9, 12)),
        _expense(2, 75_000, date(2026, 10, 2)),
    ]
    summary = aggregate(txns, NOW)
    assert summary.spending_trend.percentage == 25

    good = [n for n in _run(txns) if n.rule == "good-spending"]
    assert len(good) == 1
    assert good[0].severity == Severity.success
    assert good[0].tag == NotificationTag.achievement


def test_no_favorable_trend_at_exactly_eighty_percent() -> None:
    txns = [
        _expense(1, 100_000, date(2026, 9, 12)),
        _expense(2, 80_000, date(2026, 10, 2)),
    ]
    assert "good-spending" not in _rules(_run(txns))


def test_no_favorable_trend_without_last_month_spend() -> None:
    txns = [_expense(1, 10, date(2026, 10, 2))]
    assert "good-spending" not in _rules(_run(txns))


def test_rules_fire_together_in_one_pass() -> None:
    txns = [_expense(100, 500_000, date(2026, 9, 1), Category.rent)]
    txns += [
        _expense(i, 1_000, TODAY - timedelta(days=1), Category.groceries)
        for i in range(1, 11)
    ]
    txns.append(_expense(50, 200_000, TODAY, Category.shopping))
    notifications = _run(txns, {Category.groceries: 10_000})

    assert set(_rules(notifications)) == {
        "budget-danger",
        "large-expense",
        "spending-streak",
        "good-spending",
    }


def test_evaluation_is_repeatable() -> None:
    txns = [_expense(i, 1_000 * i, TODAY - timedelta(days=i % 4)) for i in range(1, 13)]
    budgets = {Category.other: 50_000}

    first = _run(txns, budgets)
    second = _run(txns, budgets)

    assert first == second
    assert [n.dedupe_key for n in first] == [n.dedupe_key for n in second]


def test_notification_ids_are_unique_within_a_pass() -> None:
    txns = [_expense(i, 1_000, TODAY) for i in range(1, 12)]
    txns += [_expense(20, 50_000, TODAY), _expense(21, 60_000, TODAY)]
    notifications = _run(txns, {Category.other: 10_000})

    ids = [n.id for n in notifications]
    assert len(ids) == len(set(ids))


def test_no_notifications_for_empty_input() -> None:
    assert _run([]) == ()
