"""
Query helpers shared by the procurement services.
"""
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from tenderflow.core.config import settings
from tenderflow.db.models import (
    User, Rfx, RfxStatus, RfxCommitteeMember, SupplierBid, BidReview, BidStatus, Contract,
)


# ============= RFX =============

def get_rfx(db: Session, rfx_id: int) -> Optional[Rfx]:
    return db.query(Rfx).options(
        selectinload(Rfx.committee_members),
        selectinload(Rfx.evaluation_criteria),
    ).filter(Rfx.id == rfx_id).first()


def rfx_for_update_query(db: Session, rfx_id: int):
    """
    Row-locking load of an RFx.

    Concurrent approvals of the same RFx serialize on this lock, so the
    all-members-approved check always runs against committed member state.
    `populate_existing` refreshes members already present in the session.
    """
    return (
        db.query(Rfx)
        .filter(Rfx.id == rfx_id)
        .with_for_update()
        .populate_existing()
    )


def get_rfx_for_update(db: Session, rfx_id: int) -> Optional[Rfx]:
    rfx = rfx_for_update_query(db, rfx_id).first()
    if rfx is None:
        return None
    # Reload members inside the locked transaction
    db.query(RfxCommitteeMember).filter(
        RfxCommitteeMember.rfx_id == rfx.id
    ).populate_existing().all()
    db.expire(rfx, ["committee_members"])
    return rfx


def list_rfx(
    db: Session,
    member_user_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Rfx]:
    query = db.query(Rfx).options(selectinload(Rfx.committee_members))
    if member_user_id is not None:
        query = query.join(RfxCommitteeMember).filter(RfxCommitteeMember.user_id == member_user_id)
    if status:
        query = query.filter(Rfx.status == status)
    return query.order_by(Rfx.created_at.desc(), Rfx.id.desc()).offset(offset).limit(limit).all()


def find_users(db: Session, user_ids: Sequence[int]) -> List[User]:
    if not user_ids:
        return []
    return db.query(User).filter(User.id.in_(list(user_ids))).all()


def missing_user_ids(db: Session, user_ids: Sequence[int]) -> List[int]:
    """Every requested id that does not resolve to a user, in request order."""
    found = {u.id for u in find_users(db, user_ids)}
    missing = []
    for user_id in user_ids:
        if user_id not in found and user_id not in missing:
            missing.append(user_id)
    return missing


# ============= REFERENCE NUMBERS =============

def _year_bounds(year: int):
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    return start, datetime(year + 1, 1, 1, tzinfo=timezone.utc)


def format_reference_number(year: int, sequence: int) -> str:
    width = settings.REFERENCE_SEQUENCE_WIDTH
    return f"{settings.REFERENCE_PREFIX}-{year}-{sequence:0{width}d}"


def count_rfx_created_in_year(db: Session, year: int) -> int:
    start, end = _year_bounds(year)
    return db.query(func.count(Rfx.id)).filter(
        Rfx.created_at >= start,
        Rfx.created_at < end,
    ).scalar() or 0


def max_reference_sequence(db: Session, year: int) -> int:
    """Highest sequence already used for the year, parsed from stored numbers."""
    prefix = f"{settings.REFERENCE_PREFIX}-{year}-"
    rows = db.query(Rfx.reference_number).filter(
        Rfx.reference_number.like(f"{prefix}%")
    ).all()
    highest = 0
    for (reference,) in rows:
        suffix = reference[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def next_reference_number(db: Session, year: int, after_conflict: bool = False) -> str:
    """
    Candidate reference number for a new RFx.

    The first candidate follows the yearly count. After a uniqueness conflict
    the candidate is derived from the highest stored sequence so a retry never
    proposes the number that just collided.
    """
    if after_conflict:
        sequence = max(max_reference_sequence(db, year), count_rfx_created_in_year(db, year)) + 1
    else:
        sequence = count_rfx_created_in_year(db, year) + 1
    return format_reference_number(year, sequence)


# ============= BIDS & REVIEWS =============

def get_bid_in_rfx(db: Session, rfx_id: int, bid_id: int) -> Optional[SupplierBid]:
    return db.query(SupplierBid).filter(
        SupplierBid.id == bid_id,
        SupplierBid.rfx_id == rfx_id,
    ).first()


def get_review(db: Session, bid_id: int, reviewer_user_id: int) -> Optional[BidReview]:
    return db.query(BidReview).filter(
        BidReview.bid_id == bid_id,
        BidReview.reviewer_user_id == reviewer_user_id,
    ).first()


def list_reviews(db: Session, bid_id: int) -> List[BidReview]:
    return db.query(BidReview).filter(
        BidReview.bid_id == bid_id
    ).order_by(BidReview.reviewed_at.desc(), BidReview.id.desc()).all()


def list_bids_for_rfx(db: Session, rfx_id: int) -> List[SupplierBid]:
    return db.query(SupplierBid).options(
        selectinload(SupplierBid.reviews)
    ).filter(SupplierBid.rfx_id == rfx_id).order_by(SupplierBid.submitted_at.desc(), SupplierBid.id.desc()).all()


def list_bids_by_supplier(db: Session, user_id: int, limit: int = 50, offset: int = 0) -> List[SupplierBid]:
    return db.query(SupplierBid).options(
        selectinload(SupplierBid.rfx)
    ).filter(
        SupplierBid.submitted_by_user_id == user_id
    ).order_by(SupplierBid.submitted_at.desc(), SupplierBid.id.desc()).offset(offset).limit(limit).all()


def list_contract_ready_bids(db: Session) -> List[SupplierBid]:
    """Approved bids on any RFx that have no contract yet."""
    return db.query(SupplierBid).options(
        selectinload(SupplierBid.rfx)
    ).outerjoin(
        Contract, Contract.bid_id == SupplierBid.id
    ).filter(
        func.lower(SupplierBid.evaluation_status) == BidStatus.APPROVED.value.lower(),
        Contract.id.is_(None),
    ).order_by(SupplierBid.evaluated_at.desc(), SupplierBid.id.desc()).all()


# ============= CONTRACTS =============

def get_contract_for_bid(db: Session, bid_id: int) -> Optional[Contract]:
    return db.query(Contract).filter(Contract.bid_id == bid_id).first()


def get_supplier_contract(db: Session, contract_id: int, supplier_user_id: int) -> Optional[Contract]:
    return db.query(Contract).filter(
        Contract.id == contract_id,
        Contract.supplier_user_id == supplier_user_id,
    ).first()


def list_contracts(
    db: Session,
    supplier_user_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Contract]:
    query = db.query(Contract)
    if supplier_user_id is not None:
        query = query.filter(Contract.supplier_user_id == supplier_user_id)
    if status:
        query = query.filter(Contract.status == status)
    return query.order_by(Contract.created_at.desc(), Contract.id.desc()).offset(offset).limit(limit).all()


def list_published_rfx(db: Session, limit: int = 50, offset: int = 0) -> List[Rfx]:
    return db.query(Rfx).options(
        selectinload(Rfx.evaluation_criteria)
    ).filter(
        Rfx.status == RfxStatus.PUBLISHED.value
    ).order_by(Rfx.closing_date.asc(), Rfx.id.asc()).offset(offset).limit(limit).all()
