from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleet_ledger.api.deps import get_current_user, require_role
from fleet_ledger.core.db import db_session
from fleet_ledger.modules.identity.models import User, UserRole
from fleet_ledger.modules.vessels.schemas import VesselCreate, VesselOut
from fleet_ledger.modules.vessels.service import create_vessel, get_vessel, list_vessels

router = APIRouter(tags=["vessels"])


@router.post("/vessels", response_model=VesselOut)
def create_vessel_endpoint(
    payload: VesselCreate,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> VesselOut:
    vessel = create_vessel(
        session, name=payload.name, registration_number=payload.registration_number
    )
    return VesselOut.model_validate(vessel, from_attributes=True)


@router.get("/vessels", response_model=list[VesselOut])
def list_vessels_endpoint(
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> list[VesselOut]:
    return [VesselOut.model_validate(v, from_attributes=True) for v in list_vessels(session)]


@router.get("/vessels/{vessel_id}", response_model=VesselOut)
def get_vessel_endpoint(
    vessel_id: int,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> VesselOut:
    return VesselOut.model_validate(get_vessel(session, vessel_id=vessel_id), from_attributes=True)
