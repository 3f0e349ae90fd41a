from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_ledger.core.models import Base, IntegerPrimaryKey, Timestamped


class Vessel(IntegerPrimaryKey, Timestamped, Base):
    __tablename__ = "vessels_vessel"

    name: Mapped[str] = mapped_column(String(200), index=True)
    registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
