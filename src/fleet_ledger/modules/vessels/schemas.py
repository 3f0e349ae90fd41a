from __future__ import annotations

from datetime import datetime

from fleet_ledger.core.schemas import CamelModel


class VesselCreate(CamelModel):
    name: str
    registration_number: str | None = None


class VesselOut(CamelModel):
    id: int
    name: str
    registration_number: str | None
    created_at: datetime
    updated_at: datetime
