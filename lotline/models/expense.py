from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from lotline.models.base import OrganizationScopedBase


class ExpenseCategory(OrganizationScopedBase):
    __tablename__ = "expense_categories"
    __organization_ondelete__ = "CASCADE"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(nullable=False, default=False)


class Expense(OrganizationScopedBase):
    __tablename__ = "expenses"
    __organization_ondelete__ = "CASCADE"

    category_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("expense_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Users are deleted before the organization during tenant destruction.
    created_by_user_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
