from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel


# ============= REQUESTS =============
# Fields are optional so that rule violations surface as coded service errors
# rather than generic 422 responses.

class EvaluationCriterionInput(BaseModel):
    title: Optional[str] = None
    weight: int = 0
    description: Optional[str] = None
    type: Optional[str] = None  # technical | commercial


class CreateRfxRequest(BaseModel):
    rfx_type: Optional[str] = None
    category: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None

    estimated_budget: Optional[Decimal] = None
    currency: Optional[str] = None
    hide_budget: bool = False

    publication_date: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    closing_date: Optional[datetime] = None

    priority: Optional[str] = None
    tender_bond_required: bool = False
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    scope: Optional[str] = None
    technical_specification: Optional[str] = None
    deliverables: Optional[str] = None
    timeline: Optional[str] = None
    required_documents: Optional[List[str]] = None

    minimum_score: int = 0
    evaluation_notes: Optional[str] = None
    status: Optional[str] = None  # Draft | Published | Closed, defaults to Draft

    evaluation_criteria: Optional[List[EvaluationCriterionInput]] = None
    committee_member_ids: Optional[List[int]] = None


# ============= RESPONSES =============

class CommitteeMemberResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    display_name: str
    is_approved: bool
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EvaluationCriterionResponse(BaseModel):
    id: int
    title: str
    weight: int
    description: Optional[str] = None
    type: str

    class Config:
        from_attributes = True


class RfxSummary(BaseModel):
    id: int
    reference_number: str
    title: str
    category: Optional[str] = None
    department: Optional[str] = None
    status: str
    closing_date: Optional[datetime] = None
    committee_status: str
    can_approve: bool = False
    created_at: Optional[datetime] = None


class RfxDetail(BaseModel):
    id: int
    reference_number: str
    rfx_type: Optional[str] = None
    category: Optional[str] = None
    title: str
    department: Optional[str] = None
    description: Optional[str] = None
    estimated_budget: Optional[Decimal] = None
    currency: str
    hide_budget: bool = False
    publication_date: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    priority: Optional[str] = None
    tender_bond_required: bool = False
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    scope: Optional[str] = None
    technical_specification: Optional[str] = None
    deliverables: Optional[str] = None
    timeline: Optional[str] = None
    required_documents: List[str] = []
    required_inputs: List[str] = []
    minimum_score: int
    evaluation_notes: Optional[str] = None
    status: str
    committee_status: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    evaluation_criteria: List[EvaluationCriterionResponse] = []
    committee_members: List[CommitteeMemberResponse] = []


class PublishedRfx(BaseModel):
    """Supplier-facing view of a published RFx."""
    id: int
    reference_number: str
    rfx_type: Optional[str] = None
    category: Optional[str] = None
    title: str
    department: Optional[str] = None
    description: Optional[str] = None
    estimated_budget: Optional[Decimal] = None  # None when the budget is hidden
    currency: str
    submission_deadline: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    tender_bond_required: bool = False
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    scope: Optional[str] = None
    technical_specification: Optional[str] = None
    deliverables: Optional[str] = None
    timeline: Optional[str] = None
    required_documents: List[str] = []
    required_inputs: List[str] = []
    evaluation_criteria: List[EvaluationCriterionResponse] = []
