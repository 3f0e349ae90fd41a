from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_ledger.modules.vessels.models import Vessel


def create_vessel(
    session: Session, *, name: str, registration_number: str | None = None
) -> Vessel:
    name = name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    vessel = Vessel(
        name=name,
        registration_number=(registration_number or "").strip() or None,
    )
    session.add(vessel)
    session.commit()
    session.refresh(vessel)
    return vessel


def list_vessels(session: Session) -> list[Vessel]:
    return list(session.scalars(select(Vessel).order_by(Vessel.name)))


def parse_vessel_id(raw: Any) -> int | None:
    """Accept ints and numeric strings (multipart forms send strings); reject the rest."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str):
        s = raw.strip()
        if s.isdigit() and int(s) > 0:
            return int(s)
    return None


def get_vessel(session: Session, *, vessel_id: int) -> Vessel:
    vessel = session.scalar(select(Vessel).where(Vessel.id == vessel_id))
    if not vessel:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vessel not found")
    return vessel
