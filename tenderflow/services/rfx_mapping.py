"""
Shared helpers for RFx, bid and contract services.

Stored-format conversions (semicolon lists, JSON document/input arrays),
status normalization, the derived committee status and response projections.
"""
import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from tenderflow.db.models import (
    Rfx, RfxStatus, SupplierBid, BidStatus, Contract, ContractStatus, User,
)
from tenderflow.schemas.rfx import (
    RfxDetail, RfxSummary, PublishedRfx,
    EvaluationCriterionResponse, CommitteeMemberResponse,
)
from tenderflow.schemas.bid import (
    BidSummary, BidReviewResponse, BidDocumentSummary, BidInputValue,
)
from tenderflow.schemas.contract import ContractSummary


BASE_REQUIRED_INPUTS = ["Bid Amount", "Delivery Date", "Proposal Summary"]
TECHNICAL_COMPLIANCE_INPUT = "Technical Compliance Notes"
DELIVERY_APPROACH_INPUT = "Delivery Approach"


# ============= STORED FORMATS =============

def serialize_list(values: Iterable[Optional[str]]) -> str:
    """Join values into the semicolon-delimited stored form, dropping blanks."""
    return ";".join(v.strip() for v in values if v and v.strip())


def deserialize_list(data: Optional[str]) -> List[str]:
    if not data or not data.strip():
        return []
    return [v.strip() for v in data.split(";") if v.strip()]


def dump_json_list(items: list) -> str:
    return json.dumps(items)


def load_json_list(data: Optional[str]) -> list:
    if not data:
        return []
    try:
        loaded = json.loads(data)
    except ValueError:
        return []
    return loaded if isinstance(loaded, list) else []


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so stored and request values compare."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_base64(content: Optional[str]) -> bool:
    """True if the content is non-blank and decodes as strict base64."""
    if not content or not content.strip():
        return False
    try:
        base64.b64decode(content.strip(), validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


# ============= STATUSES =============

def _normalize(value: Optional[str], enum_cls) -> Optional[str]:
    if value is None:
        return None
    wanted = value.strip().lower()
    for member in enum_cls:
        if member.value.lower() == wanted:
            return member.value
    return None


def normalize_rfx_status(value: Optional[str]) -> Optional[str]:
    """Canonical RFx status for a case-insensitive match, else None."""
    return _normalize(value, RfxStatus)


def normalize_bid_status(value: Optional[str]) -> Optional[str]:
    """Canonical bid status for a case-insensitive match, else None."""
    return _normalize(value, BidStatus)


def normalize_contract_status(value: Optional[str]) -> Optional[str]:
    return _normalize(value, ContractStatus)


def status_value(status) -> str:
    """Safely extract a status column as a string."""
    if status is None:
        return ""
    if hasattr(status, "value"):
        return status.value
    return str(status)


def committee_status(rfx: Rfx) -> str:
    """
    Human-readable committee progress, derived on read and never stored.

    "Approved" once published, "<approved>/<total> Approved" while members
    exist, otherwise "Pending".
    """
    if status_value(rfx.status) == RfxStatus.PUBLISHED.value:
        return "Approved"
    members = rfx.committee_members or []
    if members:
        approved = sum(1 for m in members if m.is_approved)
        return f"{approved}/{len(members)} Approved"
    return "Pending"


def required_inputs(rfx: Rfx) -> List[str]:
    inputs = list(BASE_REQUIRED_INPUTS)
    if rfx.technical_specification and rfx.technical_specification.strip():
        inputs.append(TECHNICAL_COMPLIANCE_INPUT)
    if rfx.deliverables and rfx.deliverables.strip():
        inputs.append(DELIVERY_APPROACH_INPUT)
    return inputs


def user_display_name(user: Optional[User]) -> str:
    if user is None:
        return "Unknown"
    return (user.full_name or "").strip() or user.email


# ============= PROJECTIONS =============

def _criteria(rfx: Rfx) -> List[EvaluationCriterionResponse]:
    ordered = sorted(rfx.evaluation_criteria, key=lambda c: (status_value(c.type), c.title))
    return [
        EvaluationCriterionResponse(
            id=c.id,
            title=c.title,
            weight=c.weight,
            description=c.description,
            type=status_value(c.type),
        )
        for c in ordered
    ]


def _members(rfx: Rfx) -> List[CommitteeMemberResponse]:
    ordered = sorted(rfx.committee_members, key=lambda m: m.display_name.lower())
    return [CommitteeMemberResponse.model_validate(m) for m in ordered]


def to_rfx_detail(rfx: Rfx) -> RfxDetail:
    return RfxDetail(
        id=rfx.id,
        reference_number=rfx.reference_number,
        rfx_type=rfx.rfx_type,
        category=rfx.category,
        title=rfx.title,
        department=rfx.department,
        description=rfx.description,
        estimated_budget=rfx.estimated_budget,
        currency=rfx.currency,
        hide_budget=bool(rfx.hide_budget),
        publication_date=rfx.publication_date,
        submission_deadline=rfx.submission_deadline,
        closing_date=rfx.closing_date,
        priority=rfx.priority,
        tender_bond_required=bool(rfx.tender_bond_required),
        contact_person=rfx.contact_person,
        contact_email=rfx.contact_email,
        contact_phone=rfx.contact_phone,
        scope=rfx.scope,
        technical_specification=rfx.technical_specification,
        deliverables=rfx.deliverables,
        timeline=rfx.timeline,
        required_documents=deserialize_list(rfx.required_documents),
        required_inputs=required_inputs(rfx),
        minimum_score=rfx.minimum_score,
        evaluation_notes=rfx.evaluation_notes,
        status=status_value(rfx.status),
        committee_status=committee_status(rfx),
        created_by=rfx.created_by,
        created_at=rfx.created_at,
        last_modified=rfx.last_modified,
        evaluation_criteria=_criteria(rfx),
        committee_members=_members(rfx),
    )


def to_rfx_summary(rfx: Rfx, current_user_id: Optional[int] = None) -> RfxSummary:
    can_approve = status_value(rfx.status) == RfxStatus.DRAFT.value and any(
        m.user_id == current_user_id and not m.is_approved
        for m in rfx.committee_members
    )
    return RfxSummary(
        id=rfx.id,
        reference_number=rfx.reference_number,
        title=rfx.title,
        category=rfx.category,
        department=rfx.department,
        status=status_value(rfx.status),
        closing_date=rfx.closing_date,
        committee_status=committee_status(rfx),
        can_approve=can_approve,
        created_at=rfx.created_at,
    )


def to_published_rfx(rfx: Rfx) -> PublishedRfx:
    return PublishedRfx(
        id=rfx.id,
        reference_number=rfx.reference_number,
        rfx_type=rfx.rfx_type,
        category=rfx.category,
        title=rfx.title,
        department=rfx.department,
        description=rfx.description,
        estimated_budget=None if rfx.hide_budget else rfx.estimated_budget,
        currency=rfx.currency,
        submission_deadline=rfx.submission_deadline,
        closing_date=rfx.closing_date,
        tender_bond_required=bool(rfx.tender_bond_required),
        contact_person=rfx.contact_person,
        contact_email=rfx.contact_email,
        contact_phone=rfx.contact_phone,
        scope=rfx.scope,
        technical_specification=rfx.technical_specification,
        deliverables=rfx.deliverables,
        timeline=rfx.timeline,
        required_documents=deserialize_list(rfx.required_documents),
        required_inputs=required_inputs(rfx),
        evaluation_criteria=_criteria(rfx),
    )


def to_review_response(review) -> BidReviewResponse:
    return BidReviewResponse(
        id=review.id,
        bid_id=review.bid_id,
        reviewer_user_id=review.reviewer_user_id,
        status=status_value(review.status),
        notes=review.notes,
        reviewed_at=review.reviewed_at,
    )


def to_bid_summary(bid: SupplierBid) -> BidSummary:
    documents = [
        BidDocumentSummary(name=d.get("name") or "", file_name=d.get("file_name"))
        for d in load_json_list(bid.documents_json)
        if isinstance(d, dict)
    ]
    inputs = [
        BidInputValue(name=i.get("name"), value=i.get("value"))
        for i in load_json_list(bid.inputs_json)
        if isinstance(i, dict)
    ]
    reviews = sorted(bid.reviews, key=lambda r: (as_utc(r.reviewed_at), r.id), reverse=True)
    return BidSummary(
        id=bid.id,
        rfx_id=bid.rfx_id,
        submitted_by_user_id=bid.submitted_by_user_id,
        bid_amount=bid.bid_amount,
        currency=bid.currency,
        expected_delivery_date=bid.expected_delivery_date,
        proposal_summary=bid.proposal_summary,
        notes=bid.notes,
        submitted_at=bid.submitted_at,
        evaluation_status=status_value(bid.evaluation_status),
        evaluation_notes=bid.evaluation_notes,
        evaluated_at=bid.evaluated_at,
        evaluated_by_user_id=bid.evaluated_by_user_id,
        documents=documents,
        inputs=inputs,
        reviews=[to_review_response(r) for r in reviews],
    )


def to_contract_summary(contract: Contract) -> ContractSummary:
    return ContractSummary(
        id=contract.id,
        rfx_id=contract.rfx_id,
        bid_id=contract.bid_id,
        title=contract.title,
        supplier_name=contract.supplier_name,
        supplier_user_id=contract.supplier_user_id,
        contract_value=contract.contract_value,
        currency=contract.currency,
        start_date=contract.start_date,
        end_date=contract.end_date,
        status=status_value(contract.status),
        supplier_signature=contract.supplier_signature,
        supplier_signed_at=contract.supplier_signed_at,
        created_at=contract.created_at,
    )
