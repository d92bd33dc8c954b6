"""
SQLAlchemy ORM models for TenderFlow.
Tender issuance, committee approval, supplier bids, reviews and contracts.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric,
    ForeignKey, Enum, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from tenderflow.db.session import Base


# ============= ENUMS =============
# Stored as their string values in VARCHAR columns so the same schema runs on
# Postgres and SQLite. Always assign `.value` when writing.

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    PROCUREMENT = "procurement"
    SUPPLIER = "supplier"


class RfxStatus(str, enum.Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    CLOSED = "Closed"


class BidStatus(str, enum.Enum):
    PENDING_REVIEW = "Pending Review"
    UNDER_REVIEW = "Under Review"
    RECOMMENDED = "Recommended"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    NEEDS_CLARIFICATION = "Needs Clarification"


class ContractStatus(str, enum.Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"


class CriterionType(str, enum.Enum):
    TECHNICAL = "technical"
    COMMERCIAL = "commercial"


def enum_values(enum_cls):
    return [e.value for e in enum_cls]


UserRoleType = Enum(*enum_values(UserRole), name='userrole', native_enum=False, length=32)
RfxStatusType = Enum(*enum_values(RfxStatus), name='rfxstatus', native_enum=False, length=32)
BidStatusType = Enum(*enum_values(BidStatus), name='bidstatus', native_enum=False, length=32)
ContractStatusType = Enum(*enum_values(ContractStatus), name='contractstatus', native_enum=False, length=32)
CriterionTypeType = Enum(*enum_values(CriterionType), name='criteriontype', native_enum=False, length=32)


# ============= IDENTITY =============

class User(Base):
    """
    Local directory entry used to resolve committee members.

    Identity is owned by the token issuer. Actor ids (creators, bidders,
    reviewers, contract suppliers, audit users) are opaque integers and carry
    no foreign key to this table.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255))
    role = Column(UserRoleType, default=UserRole.PROCUREMENT.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ============= AUDIT LOG =============

class AuditLog(Base):
    """Compliance-grade audit log."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), index=True)
    entity_id = Column(Integer)
    details = Column(JSON)

    __table_args__ = (
        Index('ix_audit_logs_entity', 'entity_type', 'entity_id'),
    )


# ============= TENDERS (RFx) =============

class Rfx(Base):
    """Request for quotation/proposal. Moves Draft -> Published -> Closed."""
    __tablename__ = "rfx"

    id = Column(Integer, primary_key=True, index=True)
    reference_number = Column(String(50), nullable=False)

    rfx_type = Column(String(50))
    category = Column(String(100))
    title = Column(String(500), nullable=False)
    department = Column(String(255))
    description = Column(Text)

    estimated_budget = Column(Numeric(18, 2))
    currency = Column(String(10), nullable=False)
    hide_budget = Column(Boolean, default=False)

    publication_date = Column(DateTime(timezone=True))
    submission_deadline = Column(DateTime(timezone=True))
    closing_date = Column(DateTime(timezone=True), nullable=False)

    priority = Column(String(50))
    tender_bond_required = Column(Boolean, default=False)
    contact_person = Column(String(255))
    contact_email = Column(String(255))
    contact_phone = Column(String(50))

    scope = Column(Text)
    technical_specification = Column(Text)
    deliverables = Column(Text)
    timeline = Column(Text)
    # Semicolon-delimited, order preserved
    required_documents = Column(Text)

    minimum_score = Column(Integer, nullable=False, default=0)
    evaluation_notes = Column(Text)

    status = Column(RfxStatusType, nullable=False, default=RfxStatus.DRAFT.value, index=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified = Column(DateTime(timezone=True))

    committee_members = relationship(
        "RfxCommitteeMember",
        back_populates="rfx",
        cascade="all, delete-orphan",
        order_by="RfxCommitteeMember.id",
    )
    evaluation_criteria = relationship(
        "RfxEvaluationCriterion",
        back_populates="rfx",
        cascade="all, delete-orphan",
        order_by="RfxEvaluationCriterion.id",
    )
    bids = relationship("SupplierBid", back_populates="rfx", order_by="SupplierBid.id")

    __table_args__ = (
        UniqueConstraint('reference_number', name='uq_rfx_reference_number'),
        Index('ix_rfx_created_at', 'created_at'),
    )


class RfxCommitteeMember(Base):
    """Reviewer whose approval is required before an RFx is published."""
    __tablename__ = "rfx_committee_members"

    id = Column(Integer, primary_key=True, index=True)
    rfx_id = Column(Integer, ForeignKey("rfx.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    display_name = Column(String(255), nullable=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_at = Column(DateTime(timezone=True))

    rfx = relationship("Rfx", back_populates="committee_members")

    __table_args__ = (
        UniqueConstraint('rfx_id', 'user_id', name='uq_rfx_committee_member'),
    )


class RfxEvaluationCriterion(Base):
    """Weighted evaluation criterion attached to an RFx."""
    __tablename__ = "rfx_evaluation_criteria"

    id = Column(Integer, primary_key=True, index=True)
    rfx_id = Column(Integer, ForeignKey("rfx.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    weight = Column(Integer, nullable=False, default=0)
    description = Column(Text)
    type = Column(CriterionTypeType, nullable=False)

    rfx = relationship("Rfx", back_populates="evaluation_criteria")


# ============= BIDS =============

class SupplierBid(Base):
    """A supplier's proposal against a published RFx."""
    __tablename__ = "supplier_bids"

    id = Column(Integer, primary_key=True, index=True)
    rfx_id = Column(Integer, ForeignKey("rfx.id"), nullable=False, index=True)
    submitted_by_user_id = Column(Integer, nullable=False, index=True)

    bid_amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(10), nullable=False)
    expected_delivery_date = Column(DateTime(timezone=True), nullable=False)
    proposal_summary = Column(Text, nullable=False)
    notes = Column(Text)

    # JSON arrays of {name, file_name, content_base64} / {name, value}
    documents_json = Column(Text, nullable=False, default="[]")
    inputs_json = Column(Text, nullable=False, default="[]")

    submitted_at = Column(DateTime(timezone=True), server_default=func.now())

    # Summary of the most recent evaluation
    evaluation_status = Column(BidStatusType, nullable=False, default=BidStatus.PENDING_REVIEW.value)
    evaluation_notes = Column(Text)
    evaluated_at = Column(DateTime(timezone=True))
    evaluated_by_user_id = Column(Integer, nullable=True)

    rfx = relationship("Rfx", back_populates="bids")
    reviews = relationship(
        "BidReview",
        back_populates="bid",
        cascade="all, delete-orphan",
        order_by="BidReview.id",
    )
    contract = relationship("Contract", back_populates="bid", uselist=False)


class BidReview(Base):
    """One reviewer's current decision on one bid."""
    __tablename__ = "bid_reviews"

    id = Column(Integer, primary_key=True, index=True)
    bid_id = Column(Integer, ForeignKey("supplier_bids.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_user_id = Column(Integer, nullable=False)
    status = Column(BidStatusType, nullable=False)
    notes = Column(Text)
    reviewed_at = Column(DateTime(timezone=True), nullable=False)

    bid = relationship("SupplierBid", back_populates="reviews")

    __table_args__ = (
        UniqueConstraint('bid_id', 'reviewer_user_id', name='uq_bid_review_bid_reviewer'),
    )


# ============= CONTRACTS =============

class Contract(Base):
    """Agreement issued from an approved bid (or directly). Draft until signed."""
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    # Both null for direct contracts
    bid_id = Column(Integer, ForeignKey("supplier_bids.id"), nullable=True)
    rfx_id = Column(Integer, ForeignKey("rfx.id"), nullable=True, index=True)

    title = Column(String(500), nullable=False)
    supplier_name = Column(String(255), nullable=False)
    supplier_user_id = Column(Integer, nullable=False, index=True)
    contract_value = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(10), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    status = Column(ContractStatusType, nullable=False, default=ContractStatus.DRAFT.value)
    supplier_signature = Column(Text)
    supplier_signed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bid = relationship("SupplierBid", back_populates="contract")

    __table_args__ = (
        UniqueConstraint('bid_id', name='uq_contract_bid_id'),
    )
