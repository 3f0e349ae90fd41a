from __future__ import annotations

from fastapi import APIRouter

from fleet_ledger.modules.categorization.api import router as categorization_router
from fleet_ledger.modules.expenses.api import router as expenses_router
from fleet_ledger.modules.identity.api import router as identity_router
from fleet_ledger.modules.receipts.api import router as receipts_router
from fleet_ledger.modules.receipts.api import uploads_router
from fleet_ledger.modules.vessels.api import router as vessels_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(vessels_router, prefix="/api")
router.include_router(categorization_router, prefix="/api")
router.include_router(expenses_router, prefix="/api")
router.include_router(receipts_router, prefix="/api")
router.include_router(uploads_router)


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
