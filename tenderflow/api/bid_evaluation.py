"""
Bid evaluation API routes.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenderflow.api.errors import unwrap
from tenderflow.core.rbac import require_procurement
from tenderflow.db.session import get_db
from tenderflow.schemas.bid import EvaluateBidRequest, BidSummary, BidReviewResponse
from tenderflow.services import bid_evaluation

router = APIRouter(prefix="/api/rfx", tags=["Bid Evaluation"])


@router.get("/{rfx_id}/bids", response_model=List[BidSummary])
async def list_bids(
    rfx_id: int,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """List bids submitted against an RFx."""
    return unwrap(bid_evaluation.list_bids_for_rfx(db, rfx_id))


@router.post("/{rfx_id}/bids/{bid_id}/evaluate", response_model=BidSummary)
async def evaluate_bid(
    rfx_id: int,
    bid_id: int,
    evaluation: EvaluateBidRequest,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Record the current reviewer's decision on a bid."""
    return unwrap(bid_evaluation.evaluate_bid(db, rfx_id, bid_id, evaluation, user_context["user_id"]))


@router.get("/{rfx_id}/bids/{bid_id}/reviews", response_model=List[BidReviewResponse])
async def list_bid_reviews(
    rfx_id: int,
    bid_id: int,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Every reviewer's current decision on a bid, newest first."""
    return unwrap(bid_evaluation.list_bid_reviews(db, rfx_id, bid_id))
