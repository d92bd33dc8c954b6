from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel


class BidDocumentInput(BaseModel):
    name: Optional[str] = None
    file_name: Optional[str] = None
    content_base64: Optional[str] = None


class BidInputValue(BaseModel):
    name: Optional[str] = None
    value: Optional[str] = None


class SubmitBidRequest(BaseModel):
    bid_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    expected_delivery_date: Optional[datetime] = None
    proposal_summary: Optional[str] = None
    notes: Optional[str] = None
    documents: Optional[List[BidDocumentInput]] = None
    inputs: Optional[List[BidInputValue]] = None


class BidSubmissionResponse(BaseModel):
    bid_id: int
    message: str


class EvaluateBidRequest(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class BidReviewResponse(BaseModel):
    id: int
    bid_id: int
    reviewer_user_id: int
    status: str
    notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BidDocumentSummary(BaseModel):
    name: str
    file_name: Optional[str] = None


class BidSummary(BaseModel):
    id: int
    rfx_id: int
    submitted_by_user_id: int
    bid_amount: Decimal
    currency: str
    expected_delivery_date: Optional[datetime] = None
    proposal_summary: str
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    evaluation_status: str
    evaluation_notes: Optional[str] = None
    evaluated_at: Optional[datetime] = None
    evaluated_by_user_id: Optional[int] = None
    documents: List[BidDocumentSummary] = []
    inputs: List[BidInputValue] = []
    reviews: List[BidReviewResponse] = []


class SupplierBidSummary(BaseModel):
    """A supplier's own bid as listed in the supplier portal."""
    id: int
    rfx_id: int
    rfx_reference_number: str
    rfx_title: str
    bid_amount: Decimal
    currency: str
    submitted_at: Optional[datetime] = None
    evaluation_status: str
