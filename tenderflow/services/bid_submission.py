"""
Supplier bid submission against published RFx.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from tenderflow.core.logging import get_logger
from tenderflow.db import repository
from tenderflow.db.models import RfxStatus, SupplierBid, BidStatus
from tenderflow.db.session import run_in_transaction
from tenderflow.schemas.bid import SubmitBidRequest, BidSubmissionResponse, SupplierBidSummary
from tenderflow.services.audit import record_audit
from tenderflow.services.result import ServiceResult, ErrorCode
from tenderflow.services.rfx_mapping import (
    deserialize_list, dump_json_list, is_base64, required_inputs, status_value,
)

logger = get_logger(__name__)

SUBMITTED_MESSAGE = "Bid submitted successfully."


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def validate_bid_request(request: Optional[SubmitBidRequest]) -> Optional[ServiceResult]:
    if request is None:
        return ServiceResult.fail(ErrorCode.INVALID_REQUEST, "Request body is required.")
    if request.bid_amount is None or request.bid_amount <= 0:
        return ServiceResult.fail(ErrorCode.INVALID_AMOUNT, "Bid amount must be greater than zero.")
    if _blank(request.currency):
        return ServiceResult.fail(ErrorCode.INVALID_CURRENCY, "Currency is required.")
    if request.expected_delivery_date is None:
        return ServiceResult.fail(ErrorCode.MISSING_DELIVERY_DATE, "Expected delivery date is required.")
    if _blank(request.proposal_summary):
        return ServiceResult.fail(ErrorCode.MISSING_PROPOSAL, "Proposal summary is required.")
    return None


def check_documents(required: List[str], request: SubmitBidRequest) -> Optional[ServiceResult]:
    """Every required document present with a file and content; every upload valid base64."""
    documents = request.documents or []
    missing = [
        name for name in required
        if not any(
            (doc.name or "").strip().lower() == name.lower()
            and not _blank(doc.file_name)
            and not _blank(doc.content_base64)
            for doc in documents
        )
    ]
    if missing:
        return ServiceResult.fail(
            ErrorCode.DOCUMENTS_INCOMPLETE,
            f"Missing required document details: {', '.join(missing)}.",
            details=missing,
        )

    invalid = next((doc for doc in documents if not is_base64(doc.content_base64)), None)
    if invalid is not None:
        return ServiceResult.fail(
            ErrorCode.DOCUMENTS_INVALID,
            f"The uploaded document for '{invalid.name}' is invalid or unreadable.",
            details=[invalid.name],
        )
    return None


def check_inputs(required: List[str], request: SubmitBidRequest) -> Optional[ServiceResult]:
    inputs = request.inputs or []
    missing = [
        name for name in required
        if not any(
            (item.name or "").strip().lower() == name.lower() and not _blank(item.value)
            for item in inputs
        )
    ]
    if missing:
        return ServiceResult.fail(
            ErrorCode.INPUTS_INCOMPLETE,
            f"Missing required input data: {', '.join(missing)}.",
            details=missing,
        )
    return None


def _submit_bid(db: Session, rfx_id: int, bidder_id: int, request: Optional[SubmitBidRequest], now: datetime):
    failure = validate_bid_request(request)
    if failure:
        return failure

    rfx = repository.get_rfx(db, rfx_id)
    if rfx is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Tender not found.")

    if status_value(rfx.status) != RfxStatus.PUBLISHED.value:
        return ServiceResult.fail(ErrorCode.NOT_PUBLISHED, "This tender is not open for bids.")

    failure = check_documents(deserialize_list(rfx.required_documents), request)
    if failure:
        logger.info(f"Bid on RFx {rfx_id} rejected: {failure.message}", extra={"error_code": failure.code})
        return failure

    failure = check_inputs(required_inputs(rfx), request)
    if failure:
        logger.info(f"Bid on RFx {rfx_id} rejected: {failure.message}", extra={"error_code": failure.code})
        return failure

    bid = SupplierBid(
        rfx_id=rfx.id,
        submitted_by_user_id=bidder_id,
        bid_amount=request.bid_amount,
        currency=request.currency.strip(),
        expected_delivery_date=request.expected_delivery_date,
        proposal_summary=request.proposal_summary.strip(),
        notes=request.notes,
        documents_json=dump_json_list([d.model_dump() for d in request.documents or []]),
        inputs_json=dump_json_list([i.model_dump() for i in request.inputs or []]),
        submitted_at=now,
        evaluation_status=BidStatus.PENDING_REVIEW.value,
    )
    db.add(bid)
    db.flush()

    record_audit(db, "submit_bid", bidder_id, "supplier_bid", bid.id, {
        "rfx_id": rfx.id,
        "reference_number": rfx.reference_number,
        "bid_amount": str(request.bid_amount),
        "currency": bid.currency,
        "documents": [d.name for d in request.documents or []],
    })
    return ServiceResult.ok(BidSubmissionResponse(bid_id=bid.id, message=SUBMITTED_MESSAGE))


def submit_bid(
    db: Session,
    rfx_id: int,
    bidder_id: int,
    request: Optional[SubmitBidRequest],
    now: Optional[datetime] = None,
) -> ServiceResult[BidSubmissionResponse]:
    """Validate a supplier's bid against the RFx requirements and persist it."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _submit_bid, db, rfx_id, bidder_id, request, now)


def list_supplier_bids(db: Session, bidder_id: int, limit: int = 50, offset: int = 0) -> ServiceResult[List[SupplierBidSummary]]:
    bids = repository.list_bids_by_supplier(db, bidder_id, limit, offset)
    return ServiceResult.ok([
        SupplierBidSummary(
            id=b.id,
            rfx_id=b.rfx_id,
            rfx_reference_number=b.rfx.reference_number,
            rfx_title=b.rfx.title,
            bid_amount=b.bid_amount,
            currency=b.currency,
            submitted_at=b.submitted_at,
            evaluation_status=status_value(b.evaluation_status),
        )
        for b in bids
    ])
