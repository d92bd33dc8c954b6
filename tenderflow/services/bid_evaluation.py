"""
Bid evaluation aggregation.

Each reviewer holds exactly one BidReview per bid (insert or overwrite).
The bid's own evaluation fields summarize the most recent evaluation by any
reviewer: the last reviewer to act sets the bid status.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenderflow.core.logging import get_logger
from tenderflow.db import repository
from tenderflow.db.models import BidReview, SupplierBid
from tenderflow.db.session import run_in_transaction
from tenderflow.schemas.bid import EvaluateBidRequest, BidSummary, BidReviewResponse
from tenderflow.services.audit import record_audit
from tenderflow.services.result import ServiceResult, ErrorCode, ErrorCategory
from tenderflow.services.rfx_mapping import (
    normalize_bid_status, status_value, to_bid_summary, to_review_response,
)

logger = get_logger(__name__)

ALLOWED_STATUSES = (
    "Pending Review, Under Review, Recommended, Approved, Rejected, Needs Clarification"
)


def _is_review_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "uq_bid_review_bid_reviewer" in message or "bid_reviews.reviewer_user_id" in message


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None or not notes.strip():
        return None
    return notes.strip()


def upsert_review(
    db: Session,
    bid: SupplierBid,
    reviewer_id: int,
    status: str,
    notes: Optional[str],
    now: datetime,
) -> BidReview:
    """Insert the reviewer's review for the bid or overwrite the existing one."""
    review = repository.get_review(db, bid.id, reviewer_id)
    if review is None:
        review = BidReview(bid_id=bid.id, reviewer_user_id=reviewer_id)
        db.add(review)
    review.status = status
    review.notes = notes
    review.reviewed_at = now
    db.flush()
    return review


def apply_summary(
    bid: SupplierBid,
    reviewer_id: int,
    status: str,
    notes: Optional[str],
    now: datetime,
) -> SupplierBid:
    """Overwrite the bid's summary fields with this evaluation, unconditionally."""
    bid.evaluation_status = status
    bid.evaluation_notes = notes
    bid.evaluated_at = now
    bid.evaluated_by_user_id = reviewer_id
    return bid


def _evaluate_bid(
    db: Session,
    rfx_id: int,
    bid_id: int,
    request: Optional[EvaluateBidRequest],
    reviewer_id: int,
    now: datetime,
):
    status = normalize_bid_status(request.status if request else None)
    if status is None:
        return ServiceResult.fail(
            ErrorCode.INVALID_STATUS,
            f"Invalid evaluation status. Allowed: {ALLOWED_STATUSES}.",
            category=ErrorCategory.VALIDATION,
        )

    if repository.get_rfx(db, rfx_id) is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")

    bid = repository.get_bid_in_rfx(db, rfx_id, bid_id)
    if bid is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Bid not found.")

    notes = _clean_notes(request.notes)
    try:
        upsert_review(db, bid, reviewer_id, status, notes, now)
    except IntegrityError as e:
        db.rollback()
        if not _is_review_conflict(e):
            raise
        # A concurrent first review by the same reviewer won the insert
        logger.warning(f"Concurrent review insert on bid {bid_id}, retrying as update")
        bid = repository.get_bid_in_rfx(db, rfx_id, bid_id)
        if bid is None:
            return ServiceResult.fail(ErrorCode.NOT_FOUND, "Bid not found.")
        upsert_review(db, bid, reviewer_id, status, notes, now)

    previous = status_value(bid.evaluation_status)
    apply_summary(bid, reviewer_id, status, notes, now)

    record_audit(db, "evaluate_bid", reviewer_id, "supplier_bid", bid.id, {
        "rfx_id": rfx_id,
        "reference_number": bid.rfx.reference_number,
        "previous_status": previous,
        "status": status,
    })
    db.flush()
    db.expire(bid, ["reviews"])
    return ServiceResult.ok(to_bid_summary(bid))


def evaluate_bid(
    db: Session,
    rfx_id: int,
    bid_id: int,
    request: Optional[EvaluateBidRequest],
    reviewer_id: int,
    now: Optional[datetime] = None,
) -> ServiceResult[BidSummary]:
    """Record a reviewer's decision on a bid and make it the bid's current status."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _evaluate_bid, db, rfx_id, bid_id, request, reviewer_id, now)


# ============= QUERIES =============

def list_bids_for_rfx(db: Session, rfx_id: int) -> ServiceResult[List[BidSummary]]:
    if repository.get_rfx(db, rfx_id) is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")
    return ServiceResult.ok([to_bid_summary(b) for b in repository.list_bids_for_rfx(db, rfx_id)])


def list_bid_reviews(db: Session, rfx_id: int, bid_id: int) -> ServiceResult[List[BidReviewResponse]]:
    if repository.get_bid_in_rfx(db, rfx_id, bid_id) is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Bid not found.")
    return ServiceResult.ok([to_review_response(r) for r in repository.list_reviews(db, bid_id)])


def get_review_for_reviewer(db: Session, bid_id: int, reviewer_id: int) -> ServiceResult[BidReviewResponse]:
    review = repository.get_review(db, bid_id, reviewer_id)
    if review is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Review not found.")
    return ServiceResult.ok(to_review_response(review))
