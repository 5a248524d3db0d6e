"""Expense repository."""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select

from ..core.enums import ExpenseCategory
from ..core.exceptions import ValidationException
from ..core.timezone_utils import parse_timestamp
from ..database.pool import ConnectionPool
from ..models.expense import Expense
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


class ExpenseRepository(BaseRepository[Expense]):
    def __init__(self, pool: ConnectionPool):
        super().__init__(pool, Expense)

    def list_expenses(
        self, start_date: Optional[DateLike] = None, end_date: Optional[DateLike] = None
    ) -> List[Expense]:
        stmt = select(Expense).where(*self._date_filters(start_date, end_date))
        stmt = stmt.order_by(Expense.date.desc(), Expense.created_at.desc())
        with self.read_session() as session:
            return list(session.scalars(stmt).all())

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self.get_by_id(expense_id)

    def create_expense(self, **kwargs: Any) -> Expense:
        self._validate(kwargs)
        return self.create(**kwargs)

    def update_expense(self, expense_id: str, **kwargs: Any) -> Optional[Expense]:
        kwargs.pop("id", None)
        kwargs.pop("created_at", None)
        self._validate(kwargs)
        return self.update(expense_id, **kwargs)

    def delete_expense(self, expense_id: str) -> bool:
        return self.delete(expense_id)

    def summary_by_category(
        self, start_date: Optional[DateLike] = None, end_date: Optional[DateLike] = None
    ) -> Dict[str, int]:
        """Total amount per category, every category present."""
        stmt = (
            select(Expense.category, func.coalesce(func.sum(Expense.amount), 0))
            .where(*self._date_filters(start_date, end_date))
            .group_by(Expense.category)
        )
        totals = {category.value: 0 for category in ExpenseCategory}
        with self.read_session() as session:
            for category, amount in session.execute(stmt):
                totals[str(category)] = totals.get(str(category), 0) + int(amount or 0)
        return totals

    @staticmethod
    def _date_filters(start_date: Optional[DateLike], end_date: Optional[DateLike]) -> List[Any]:
        conditions: List[Any] = []
        if start_date:
            start = parse_timestamp(start_date)
            if start is None:
                raise ValidationException("Invalid start date")
            conditions.append(Expense.date >= start)
        if end_date:
            end = parse_timestamp(end_date)
            if end is None:
                raise ValidationException("Invalid end date")
            conditions.append(Expense.date < datetime(end.year, end.month, end.day) + timedelta(days=1))
        return conditions

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        category = values.get("category")
        if category is not None:
            try:
                values["category"] = ExpenseCategory(category).value
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown expense category: {category}", code="INVALID_EXPENSE_CATEGORY"
                ) from exc
        amount = values.get("amount")
        if amount is not None and int(amount) <= 0:
            raise ValidationException("Expense amount must be positive", code="INVALID_EXPENSE_AMOUNT")
