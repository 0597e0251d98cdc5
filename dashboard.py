"""Dashboard statistics derived from an in-memory transaction list.

Everything here is pure: the functions read the transactions and categories
they are handed and never touch the database, so they can be recomputed on
every request or memoized by the caller.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence, Union

from models import TransactionType
from periods import TimeRange, resolve_time_range

UNCATEGORIZED = "Uncategorized"


class TransactionLike(Protocol):
    category_id: int
    amount: Decimal
    date: date
    type: TransactionType


class CategoryLike(Protocol):
    id: int
    name: str


@dataclass
class DashboardState:
    transactions: list[TransactionLike] = field(default_factory=list)
    categories: list[CategoryLike] = field(default_factory=list)


@dataclass(frozen=True)
class Stats:
    income: Decimal
    expenses: Decimal
    balance: Decimal


@dataclass
class CategoryTotal:
    name: str
    value: Decimal


@dataclass
class DailyTotal:
    date: str
    income: Decimal = Decimal(0)
    expense: Decimal = Decimal(0)


@dataclass(frozen=True)
class DashboardSummary:
    range: str
    stats: Stats
    by_category: list[CategoryTotal]
    daily: list[DailyTotal]


def filter_by_time_range(
    transactions: Iterable[TransactionLike],
    time_range: Union[TimeRange, str],
    now: Union[date, datetime, None] = None,
) -> list[TransactionLike]:
    period = resolve_time_range(time_range, now=now)
    return [t for t in transactions if period.contains(t.date)]


def compute_stats(transactions: Iterable[TransactionLike]) -> Stats:
    income = Decimal(0)
    expenses = Decimal(0)
    for t in transactions:
        if t.type == TransactionType.income:
            income += Decimal(t.amount)
        elif t.type == TransactionType.expense:
            expenses += Decimal(t.amount)
    return Stats(income=income, expenses=expenses, balance=income - expenses)


def group_by_category(
    transactions: Iterable[TransactionLike],
    categories: Sequence[CategoryLike],
) -> list[CategoryTotal]:
    # Keyed by name: two categories sharing a name land in one slice.
    names = {c.id: c.name for c in categories}
    totals: dict[str, CategoryTotal] = {}
    for t in transactions:
        if t.type != TransactionType.expense:
            continue
        name = names.get(t.category_id, UNCATEGORIZED)
        bucket = totals.get(name)
        if bucket is None:
            totals[name] = CategoryTotal(name=name, value=Decimal(t.amount))
        else:
            bucket.value += Decimal(t.amount)
    return list(totals.values())


def bucket_by_day(transactions: Iterable[TransactionLike]) -> list[DailyTotal]:
    days: dict[str, DailyTotal] = {}
    for t in transactions:
        key = t.date.isoformat() if isinstance(t.date, date) else str(t.date)
        bucket = days.setdefault(key, DailyTotal(date=key))
        if t.type == TransactionType.income:
            bucket.income += Decimal(t.amount)
        else:
            bucket.expense += Decimal(t.amount)
    # ISO dates sort lexicographically in calendar order.
    return sorted(days.values(), key=lambda d: d.date)


def build_dashboard(
    state: DashboardState,
    time_range: Union[TimeRange, str] = TimeRange.month,
    now: Optional[Union[date, datetime]] = None,
) -> DashboardSummary:
    period = resolve_time_range(time_range, now=now)
    filtered = filter_by_time_range(state.transactions, period.slug, now)
    return DashboardSummary(
        range=period.slug,
        stats=compute_stats(filtered),
        by_category=group_by_category(filtered, state.categories),
        daily=bucket_by_day(filtered),
    )
