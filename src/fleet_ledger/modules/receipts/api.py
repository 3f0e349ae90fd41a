from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from fleet_ledger.api.deps import get_current_user
from fleet_ledger.core.db import db_session
from fleet_ledger.core.logging import get_logger, log_event, log_exception
from fleet_ledger.modules.expenses.schemas import ExpenseOut
from fleet_ledger.modules.identity.models import User
from fleet_ledger.modules.receipts.schemas import (
    AnalyzeOut,
    CreateExpenseIn,
    ExpenseMutationOut,
    LinkToExpenseIn,
    ReceiptOut,
)
from fleet_ledger.modules.receipts.service import (
    analyze_receipt,
    create_expense_from_receipt,
    link_receipt_to_expense,
    list_vessel_receipts,
    read_receipt_image,
    validate_receipt_upload,
)
from fleet_ledger.modules.vessels.service import get_vessel, parse_vessel_id

router = APIRouter(prefix="/receipts", tags=["receipts"])
uploads_router = APIRouter(tags=["uploads"])
logger = get_logger(__name__)


def _server_error(message: str, error: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": message, "details": str(error)},
    )


@router.get("/{vessel_id}", response_model=list[ReceiptOut])
def list_receipts_endpoint(
    vessel_id: int,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> list[ReceiptOut]:
    vessel = get_vessel(session, vessel_id=vessel_id)
    return list_vessel_receipts(session, vessel_id=vessel.id)


@router.post("/analyze", response_model=AnalyzeOut)
async def analyze_receipt_endpoint(
    receipt: UploadFile | None = File(None),
    vessel_id: str | None = Form(None, alias="vesselId"),
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> AnalyzeOut:
    if receipt is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    parsed_vessel_id = parse_vessel_id(vessel_id)
    if parsed_vessel_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Vessel ID is required"
        )

    body = await receipt.read()
    log_event(
        logger,
        "upload.received",
        vessel_id=parsed_vessel_id,
        filename=receipt.filename,
        content_type=receipt.content_type,
        byte_size=len(body),
    )
    validate_receipt_upload(filename=receipt.filename, body=body)
    vessel = await run_in_threadpool(get_vessel, session, vessel_id=parsed_vessel_id)

    try:
        return await analyze_receipt(
            session, vessel=vessel, body=body, content_type=receipt.content_type
        )
    except HTTPException:
        raise
    except Exception as e:
        log_exception(logger, "receipt.analyze.failure", vessel_id=vessel.id)
        raise _server_error("Failed to analyze receipt", e) from e


@router.post("/link-to-expense", response_model=ExpenseMutationOut)
def link_to_expense_endpoint(
    payload: LinkToExpenseIn,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> ExpenseMutationOut:
    try:
        expense = link_receipt_to_expense(
            session,
            expense_id=payload.expense_id,
            receipt_url=payload.receipt_url,
            add_notes=payload.add_notes,
            notes=payload.notes,
        )
    except HTTPException:
        raise
    except Exception as e:
        log_exception(logger, "receipt.link.failure", expense_id=payload.expense_id)
        raise _server_error("Failed to link receipt to expense", e) from e
    return ExpenseMutationOut(
        success=True,
        message="Receipt linked to expense successfully",
        expense=ExpenseOut.model_validate(expense, from_attributes=True),
    )


@router.post("/create-expense", response_model=ExpenseMutationOut)
def create_expense_endpoint(
    payload: CreateExpenseIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ExpenseMutationOut:
    try:
        expense = create_expense_from_receipt(
            session,
            user=user,
            expense_data=payload.expense_data,
            vessel_id=payload.vessel_id,
        )
    except HTTPException:
        raise
    except Exception as e:
        log_exception(logger, "receipt.create.failure")
        raise _server_error("Failed to create expense from receipt", e) from e
    return ExpenseMutationOut(
        success=True,
        message="Expense created successfully from receipt",
        expense=ExpenseOut.model_validate(expense, from_attributes=True),
    )


@uploads_router.get("/uploads/{filename}")
def download_upload(filename: str) -> Response:
    stored = read_receipt_image(filename)
    return Response(content=stored.body or b"", media_type=stored.content_type)
