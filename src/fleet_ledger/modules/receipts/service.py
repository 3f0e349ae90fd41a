from __future__ import annotations

import base64
import re
import time
import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from fleet_ledger.core.config import settings
from fleet_ledger.core.logging import get_logger, log_event, log_exception, monotonic_ms
from fleet_ledger.core.storage import StorageError, StoredObject, get_storage
from fleet_ledger.modules.expenses.models import Expense
from fleet_ledger.modules.expenses.service import (
    create_expense,
    get_expense,
    get_expenses_by_vessel,
    get_expenses_with_receipts_by_vessel,
    update_expense,
)
from fleet_ledger.modules.identity.models import User
from fleet_ledger.modules.receipts.ai import extract_receipt
from fleet_ledger.modules.receipts.drafts import build_expense_draft, normalize_expense_payload
from fleet_ledger.modules.receipts.matching import filter_candidates, score_candidates
from fleet_ledger.modules.receipts.schemas import AnalyzeOut, CandidateMatch, ReceiptOut
from fleet_ledger.modules.vessels.models import Vessel
from fleet_ledger.modules.vessels.service import get_vessel, parse_vessel_id

logger = get_logger(__name__)

UPLOADS_PREFIX = "uploads"
ALLOWED_IMAGE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".webp")

_UPLOAD_NAME_RE = re.compile(r"^[A-Za-z0-9-]+\.(jpg|jpeg|png|gif|webp)$")


def validate_receipt_upload(*, filename: str | None, body: bytes) -> None:
    name = (filename or "").lower()
    if not name.endswith(ALLOWED_IMAGE_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are allowed!"
        )
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if len(body) > settings.receipt_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Receipt image is too large",
        )


def store_receipt_image(body: bytes) -> str:
    """Persist the upload once under a fresh name and return its public URL."""
    filename = f"{uuid.uuid4()}-{int(time.time() * 1000)}.jpg"
    get_storage().put(key=f"{UPLOADS_PREFIX}/{filename}", body=body)
    return f"/{UPLOADS_PREFIX}/{filename}"


def read_receipt_image(filename: str) -> StoredObject:
    if not _UPLOAD_NAME_RE.match(filename):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        return get_storage().get(key=f"{UPLOADS_PREFIX}/{filename}")
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from e


def _image_mime(content_type: str | None) -> str:
    if content_type and content_type.startswith("image/"):
        return content_type
    return "image/jpeg"


async def analyze_receipt(
    session: Session,
    *,
    vessel: Vessel,
    body: bytes,
    content_type: str | None = None,
) -> AnalyzeOut:
    """
    Extract -> filter -> score -> draft -> persist image.

    Extraction failures propagate. Scoring failures degrade to an empty match list so
    a good extraction still yields a draft. Database reads and the image write run in
    the threadpool so they never stall the event loop.
    """
    start = time.monotonic()
    log_event(logger, "receipt.analyze.start", vessel_id=vessel.id, byte_size=len(body))

    image_b64 = base64.b64encode(body).decode("ascii")
    try:
        extraction = await extract_receipt(image_b64, content_type=_image_mime(content_type))
    except Exception:
        log_exception(logger, "receipt.extract.failure", vessel_id=vessel.id)
        raise
    log_event(
        logger,
        "receipt.extract.success",
        vessel_id=vessel.id,
        item_count=len(extraction.items),
        category=extraction.category,
    )

    expenses = await run_in_threadpool(get_expenses_by_vessel, session, vessel_id=vessel.id)
    candidates = filter_candidates(extraction, expenses)
    log_event(
        logger,
        "receipt.candidates.filtered",
        vessel_id=vessel.id,
        expense_count=len(expenses),
        candidate_count=len(candidates),
    )

    matches: list[CandidateMatch] = []
    if candidates:
        try:
            matches = await score_candidates(extraction, candidates)
        except Exception:  # noqa: BLE001
            log_exception(
                logger,
                "receipt.match.failure",
                vessel_id=vessel.id,
                candidate_count=len(candidates),
            )
            matches = []

    draft = build_expense_draft(extraction)
    receipt_url = await run_in_threadpool(store_receipt_image, body)
    draft.receipt_url = receipt_url

    log_event(
        logger,
        "receipt.analyze.finish",
        vessel_id=vessel.id,
        match_count=len(matches),
        receipt_url=receipt_url,
        duration_ms=monotonic_ms(start),
    )
    return AnalyzeOut(
        analysis=extraction,
        potential_matches=matches,
        suggested_expense=draft,
        receipt_url=receipt_url,
    )


def link_receipt_to_expense(
    session: Session,
    *,
    expense_id: int | None,
    receipt_url: str | None,
    add_notes: bool = False,
    notes: str | None = None,
) -> Expense:
    receipt_url = (receipt_url or "").strip()
    if not expense_id or not receipt_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expense ID and receipt URL are required",
        )

    expense = get_expense(session, expense_id=expense_id)
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")

    changes: dict[str, Any] = {"receipt_url": receipt_url}
    extra = (notes or "").strip()
    if add_notes and extra:
        changes["notes"] = f"{expense.notes}\n{extra}" if expense.notes else extra

    expense = update_expense(session, expense=expense, changes=changes)
    log_event(
        logger,
        "receipt.link.success",
        expense_id=expense.id,
        vessel_id=expense.vessel_id,
        receipt_url=receipt_url,
        notes_appended="notes" in changes,
    )
    return expense


def create_expense_from_receipt(
    session: Session,
    *,
    user: User,
    expense_data: dict[str, Any] | None,
    vessel_id: Any,
) -> Expense:
    if expense_data is None or vessel_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expense data and vessel ID are required",
        )
    parsed_vessel_id = parse_vessel_id(vessel_id)
    if parsed_vessel_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expense data and vessel ID are required",
        )
    vessel = get_vessel(session, vessel_id=parsed_vessel_id)

    fields = normalize_expense_payload(expense_data)
    expense = create_expense(session, vessel_id=vessel.id, created_by_id=user.id, **fields)
    log_event(
        logger,
        "receipt.create.success",
        expense_id=expense.id,
        vessel_id=vessel.id,
        has_receipt=bool(expense.receipt_url),
    )
    return expense


def list_vessel_receipts(session: Session, *, vessel_id: int) -> list[ReceiptOut]:
    return [
        ReceiptOut(
            id=e.id,
            expense_id=e.id,
            receipt_url=e.receipt_url or "",
            vendor=e.vendor_name,
            date=e.expense_date,
            total=e.total,
            description=e.description,
            category=e.category,
            status=e.status,
            notes=e.notes,
        )
        for e in get_expenses_with_receipts_by_vessel(session, vessel_id=vessel_id)
    ]
