from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_ledger.core.models import Base, IntegerPrimaryKey, Timestamped


class ExpenseStatus:
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class Expense(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense"

    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels_vessel.id"), index=True)
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vendor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    expense_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    description: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), default="Other")
    payment_method: Mapped[str] = mapped_column(String(50), default="Unknown")
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ExpenseStatus.PENDING, index=True)

    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identity_user.id")
    )

    vessel = relationship("Vessel")
    created_by = relationship("User")
