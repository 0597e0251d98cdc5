from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import get_settings
from dashboard import DashboardState, DashboardSummary, build_dashboard
from errors import (
    CategoryNotFound,
    DivisionUndefined,
    DuplicateBudget,
    Forbidden,
    NotFound,
    StoreError,
    ValidationError,
)
from models import Budget, Category, Transaction, TransactionType
from periods import TimeRange, month_window, parse_month
from schemas import (
    BudgetIn,
    BudgetView,
    CategoryIn,
    CategoryOut,
    TransactionIn,
    describe_validation_error,
)

logger = logging.getLogger(__name__)

WARNING_THRESHOLD = 80
BUDGET_FIELDS_MESSAGE = "Missing required fields: category_id, amount, month"
BUDGET_FIELD_ERRORS = {
    "category_id": "category_id must be an integer",
    "amount": "Amount must be a positive number",
    "month": "Month must be in YYYY-MM format",
}


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == "23505":
        return True
    if getattr(orig, "sqlstate", None) == "23505":
        return True
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate key" in message


def budget_percentage(spent: Decimal, budget_amount: Decimal) -> int:
    amount = Decimal(str(budget_amount))
    if amount <= 0:
        raise DivisionUndefined(f"Budget amount must be positive, got {budget_amount}")
    ratio = Decimal(str(spent)) / amount * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def budget_status(percentage: int) -> str:
    return "WARNING" if percentage >= WARNING_THRESHOLD else "OK"


@dataclass(frozen=True)
class SpendSummary:
    spent: Decimal
    percentage: int
    status: str


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, owner_id: str) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.owner_id == owner_id)
            .order_by(Category.name, Category.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, owner_id: str, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.owner_id != owner_id:
            raise NotFound("Category not found")
        return category

    def create(self, owner_id: str, data: CategoryIn) -> Category:
        existing = self.session.scalar(
            select(Category).where(
                Category.owner_id == owner_id,
                func.lower(Category.name) == data.name.lower(),
            )
        )
        if existing:
            raise ValidationError("Category with this name already exists")
        category = Category(owner_id=owner_id, name=data.name, color=data.color)
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if _is_unique_violation(exc):
                raise ValidationError("Category with this name already exists") from exc
            raise
        self.session.refresh(category)
        logger.info(f"category_created: owner={owner_id} category={category.id}")
        return category

    def delete(self, owner_id: str, category_id: int) -> None:
        category = self.get(owner_id, category_id)
        txn_count = len(category.transactions)
        budget_count = len(category.budgets)
        self.session.delete(category)
        self.session.commit()
        logger.info(
            f"category_deleted: owner={owner_id} category={category_id} "
            f"transactions={txn_count} budgets={budget_count}"
        )


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(
        self, owner_id: str, txn_type: Optional[TransactionType] = None
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.owner_id == owner_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if txn_type:
            stmt = stmt.where(Transaction.type == txn_type)
        return self.session.scalars(stmt).all()

    def create(self, owner_id: str, data: TransactionIn) -> Transaction:
        category = self.session.get(Category, data.category_id)
        if not category or category.owner_id != owner_id:
            raise CategoryNotFound()
        txn = Transaction(
            owner_id=owner_id,
            category_id=data.category_id,
            amount=data.amount,
            description=data.description,
            date=data.date,
            type=data.type,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: owner={owner_id} transaction={txn.id} "
            f"type={txn.type.value} date={txn.date.isoformat()}"
        )
        return txn

    def delete(self, owner_id: str, transaction_id: int) -> None:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.owner_id != owner_id:
            raise NotFound("Transaction not found")
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: owner={owner_id} transaction={transaction_id}")


class BudgetAggregator:
    """Works out how much of a monthly budget has been consumed.

    Spend is re-read from the transactions table on every call, so results
    always reflect the current transaction state. A failing read is masked as
    zero spend unless ``strict`` is set, in which case it raises StoreError.
    """

    def __init__(self, session: Session, *, strict: Optional[bool] = None) -> None:
        self.session = session
        if strict is None:
            strict = get_settings().strict_aggregation
        self.strict = strict

    def spent_for_month(
        self, owner_id: str, category_id: int, month_start: date
    ) -> Decimal:
        window = month_window(month_start)
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.owner_id == owner_id,
            Transaction.category_id == category_id,
            Transaction.type == TransactionType.expense,
            Transaction.date >= window.start,
            Transaction.date < window.end,
        )
        try:
            spent = self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            self.session.rollback()
            if self.strict:
                logger.exception(
                    f"budget_spend_failed: owner={owner_id} category={category_id} "
                    f"month={window.start.isoformat()}"
                )
                raise StoreError() from exc
            logger.warning(
                f"budget_spend_masked: owner={owner_id} category={category_id} "
                f"month={window.start.isoformat()} error={exc.__class__.__name__}"
            )
            return Decimal(0)
        return Decimal(str(spent or 0))

    def compute_spend(
        self,
        owner_id: str,
        category_id: int,
        month_start: date,
        budget_amount: Decimal,
    ) -> SpendSummary:
        spent = self.spent_for_month(owner_id, category_id, month_start)
        percentage = budget_percentage(spent, budget_amount)
        return SpendSummary(
            spent=spent, percentage=percentage, status=budget_status(percentage)
        )


class BudgetService:
    def __init__(
        self, session: Session, aggregator: Optional[BudgetAggregator] = None
    ) -> None:
        self.session = session
        self.aggregator = aggregator or BudgetAggregator(session)

    @staticmethod
    def _parse_input(category_id: Any, amount: Any, month: Any) -> BudgetIn:
        if any(value is None or value == "" for value in (category_id, amount, month)):
            raise ValidationError(BUDGET_FIELDS_MESSAGE)
        try:
            return BudgetIn(category_id=category_id, amount=amount, month=month)
        except SchemaValidationError as exc:
            raise ValidationError(
                describe_validation_error(exc, BUDGET_FIELD_ERRORS)
            ) from exc

    def create(self, owner_id: str, category_id: Any, amount: Any, month: Any) -> Budget:
        data = self._parse_input(category_id, amount, month)
        month_start = parse_month(data.month)

        category = self.session.get(Category, data.category_id)
        if not category or category.owner_id != owner_id:
            raise CategoryNotFound()

        budget = Budget(
            owner_id=owner_id,
            category_id=data.category_id,
            amount=data.amount,
            month=month_start,
        )
        self.session.add(budget)
        # The unique constraint decides duplicates; there is no pre-check.
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if _is_unique_violation(exc):
                logger.info(
                    f"budget_duplicate: owner={owner_id} category={data.category_id} "
                    f"month={data.month}"
                )
                raise DuplicateBudget() from exc
            logger.exception(f"budget_create_failed: owner={owner_id}")
            raise StoreError() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"budget_create_failed: owner={owner_id}")
            raise StoreError() from exc
        self.session.refresh(budget)
        logger.info(
            f"budget_created: owner={owner_id} budget={budget.id} "
            f"category={budget.category_id} month={data.month}"
        )
        return budget

    def list(self, owner_id: str, month: Optional[str] = None) -> list[BudgetView]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(Budget.owner_id == owner_id)
            .order_by(Budget.month.desc(), Budget.id.desc())
        )
        if month:
            window = month_window(parse_month(month))
            stmt = stmt.where(Budget.month >= window.start, Budget.month < window.end)
        budgets = self.session.scalars(stmt).all()

        views: list[BudgetView] = []
        for budget in budgets:
            summary = self.aggregator.compute_spend(
                owner_id, budget.category_id, budget.month, budget.amount
            )
            views.append(
                BudgetView(
                    id=budget.id,
                    owner_id=budget.owner_id,
                    category_id=budget.category_id,
                    amount=budget.amount,
                    month=budget.month,
                    created_at=budget.created_at,
                    updated_at=budget.updated_at,
                    spent=summary.spent,
                    percentage=summary.percentage,
                    status=summary.status,
                    category=CategoryOut.model_validate(budget.category)
                    if budget.category
                    else None,
                )
            )
        return views

    def delete(self, owner_id: str, budget_id: int) -> None:
        budget = self.session.get(Budget, budget_id)
        if not budget:
            raise NotFound("Budget not found")
        if budget.owner_id != owner_id:
            raise Forbidden("Budget does not belong to you")
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: owner={owner_id} budget={budget_id}")


class DashboardService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def state_for(self, owner_id: str) -> DashboardState:
        return DashboardState(
            transactions=TransactionService(self.session).list(owner_id),
            categories=CategoryService(self.session).list(owner_id),
        )

    def summary(
        self,
        owner_id: str,
        time_range: Union[TimeRange, str] = TimeRange.month,
        now: Optional[Union[date, datetime]] = None,
    ) -> DashboardSummary:
        return build_dashboard(self.state_for(owner_id), time_range, now)
