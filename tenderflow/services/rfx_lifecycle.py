"""
RFx lifecycle: creation with reference numbering, explicit closing and
read-side queries for procurement staff and suppliers.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenderflow.core.config import settings
from tenderflow.core.logging import get_logger
from tenderflow.db import repository
from tenderflow.db.models import (
    Rfx, RfxStatus, RfxCommitteeMember, RfxEvaluationCriterion, CriterionType, User,
)
from tenderflow.db.session import run_in_transaction
from tenderflow.schemas.rfx import CreateRfxRequest, RfxDetail, RfxSummary, PublishedRfx
from tenderflow.services.audit import record_audit
from tenderflow.services.result import ServiceResult, ErrorCode, ErrorCategory
from tenderflow.services.rfx_mapping import (
    as_utc, normalize_rfx_status, serialize_list, status_value, user_display_name,
    to_rfx_detail, to_rfx_summary, to_published_rfx,
)

logger = get_logger(__name__)

_CRITERION_TYPES = {t.value for t in CriterionType}


# ============= VALIDATION =============

def validate_create_request(
    db: Session,
    request: Optional[CreateRfxRequest],
    now: datetime,
) -> Tuple[Optional[ServiceResult], Optional[str]]:
    """
    Check a create request. Returns (failure, normalized_status).

    Rules are checked in order and the first failure wins, except committee
    membership: every unknown member id is reported in one failure.
    """
    if request is None:
        return ServiceResult.fail(ErrorCode.INVALID_REQUEST, "Request body is required."), None

    if not request.title or not request.title.strip():
        return ServiceResult.fail(ErrorCode.INVALID_TITLE, "Title is required."), None

    if request.status is None or not request.status.strip():
        status = RfxStatus.DRAFT.value
    else:
        status = normalize_rfx_status(request.status)
        if status is None:
            return ServiceResult.fail(
                ErrorCode.INVALID_STATUS,
                f"Unknown status '{request.status}'. Allowed: Draft, Published, Closed.",
                category=ErrorCategory.VALIDATION,
            ), None

    criteria = request.evaluation_criteria or []
    if not criteria:
        return ServiceResult.fail(
            ErrorCode.INVALID_CRITERIA, "At least one evaluation criterion is required."
        ), None
    for criterion in criteria:
        if not criterion.title or not criterion.title.strip():
            return ServiceResult.fail(ErrorCode.INVALID_CRITERIA, "Every criterion needs a title."), None
        if (criterion.type or "").strip().lower() not in _CRITERION_TYPES:
            return ServiceResult.fail(
                ErrorCode.INVALID_CRITERIA,
                f"Criterion '{criterion.title}' must be technical or commercial.",
            ), None
        if criterion.weight < 0:
            return ServiceResult.fail(
                ErrorCode.INVALID_CRITERIA,
                f"Criterion '{criterion.title}' has a negative weight.",
            ), None
    if sum(c.weight for c in criteria) <= 0:
        return ServiceResult.fail(
            ErrorCode.INVALID_CRITERIA, "Combined criteria weight must be greater than zero."
        ), None

    if request.minimum_score < 0 or request.minimum_score > 100:
        return ServiceResult.fail(
            ErrorCode.INVALID_MINIMUM_SCORE, "Minimum score must be between 0 and 100."
        ), None

    if request.closing_date is None or as_utc(request.closing_date) <= now:
        return ServiceResult.fail(ErrorCode.INVALID_DATES, "Closing date must be in the future."), None

    missing = repository.missing_user_ids(db, request.committee_member_ids or [])
    if missing:
        ids = ", ".join(str(i) for i in missing)
        return ServiceResult.fail(
            ErrorCode.INVALID_COMMITTEE,
            f"Committee members not found: {ids}.",
            details=missing,
        ), None

    return None, status


# ============= CREATE =============

def _unique_ids(ids: List[int]) -> List[int]:
    seen = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen


def _build_rfx(
    request: CreateRfxRequest,
    status: str,
    reference_number: str,
    created_by: Optional[int],
    users: Dict[int, User],
    now: datetime,
) -> Rfx:
    rfx = Rfx(
        reference_number=reference_number,
        rfx_type=request.rfx_type,
        category=request.category,
        title=request.title.strip(),
        department=request.department,
        description=request.description,
        estimated_budget=request.estimated_budget,
        currency=(request.currency or "").strip() or settings.DEFAULT_CURRENCY,
        hide_budget=request.hide_budget,
        publication_date=request.publication_date,
        submission_deadline=request.submission_deadline,
        closing_date=request.closing_date,
        priority=request.priority,
        tender_bond_required=request.tender_bond_required,
        contact_person=request.contact_person,
        contact_email=request.contact_email,
        contact_phone=request.contact_phone,
        scope=request.scope,
        technical_specification=request.technical_specification,
        deliverables=request.deliverables,
        timeline=request.timeline,
        required_documents=serialize_list(request.required_documents or []),
        minimum_score=request.minimum_score,
        evaluation_notes=request.evaluation_notes,
        status=status,
        created_by=created_by,
        created_at=now,
        last_modified=now,
    )
    for criterion in request.evaluation_criteria:
        rfx.evaluation_criteria.append(RfxEvaluationCriterion(
            title=criterion.title.strip(),
            weight=criterion.weight,
            description=criterion.description,
            type=criterion.type.strip().lower(),
        ))
    for user_id in _unique_ids(request.committee_member_ids or []):
        rfx.committee_members.append(RfxCommitteeMember(
            user_id=user_id,
            display_name=user_display_name(users.get(user_id)),
            is_approved=False,
        ))
    return rfx


def _is_reference_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "uq_rfx_reference_number" in message or "rfx.reference_number" in message


def _insert_rfx(db: Session, request, status, reference_number, created_by, now) -> Rfx:
    users = {u.id: u for u in repository.find_users(db, request.committee_member_ids or [])}
    rfx = _build_rfx(request, status, reference_number, created_by, users, now)
    db.add(rfx)
    db.flush()
    return rfx


def _create_rfx(
    db: Session,
    request: Optional[CreateRfxRequest],
    created_by: Optional[int],
    now: datetime,
) -> ServiceResult[RfxDetail]:
    failure, status = validate_create_request(db, request, now)
    if failure:
        logger.info(f"RFx creation rejected: {failure.code}", extra={"error_code": failure.code})
        return failure

    year = now.year
    reference_number = repository.next_reference_number(db, year)
    try:
        rfx = _insert_rfx(db, request, status, reference_number, created_by, now)
    except IntegrityError as e:
        db.rollback()
        if not _is_reference_conflict(e):
            raise
        logger.warning(f"Reference number {reference_number} already taken, retrying once")
        reference_number = repository.next_reference_number(db, year, after_conflict=True)
        try:
            rfx = _insert_rfx(db, request, status, reference_number, created_by, now)
        except IntegrityError as retry_error:
            db.rollback()
            if not _is_reference_conflict(retry_error):
                raise
            logger.error(f"Reference number {reference_number} conflicted again")
            return ServiceResult.fail(
                ErrorCode.REFERENCE_CONFLICT,
                "Could not allocate a reference number. Please retry.",
            )

    record_audit(db, "create_rfx", created_by, "rfx", rfx.id, {
        "reference_number": rfx.reference_number,
        "title": rfx.title,
        "status": status,
        "committee_size": len(rfx.committee_members),
    })
    logger.info(f"Created RFx {rfx.reference_number} ({status})")
    return ServiceResult.ok(to_rfx_detail(rfx))


def create_rfx(
    db: Session,
    request: Optional[CreateRfxRequest],
    created_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceResult[RfxDetail]:
    """Validate and persist a new RFx with its criteria and committee."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _create_rfx, db, request, created_by, now)


# ============= CLOSE =============

def _close_rfx(db: Session, rfx_id: int, current_user_id: Optional[int], is_admin: bool, now: datetime):
    rfx = repository.get_rfx_for_update(db, rfx_id)
    if rfx is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")

    is_member = current_user_id is not None and any(
        m.user_id == current_user_id for m in rfx.committee_members
    )
    if not is_admin and not is_member:
        return ServiceResult.fail(ErrorCode.FORBIDDEN, "Only administrators or committee members can close this RFx.")

    if status_value(rfx.status) == RfxStatus.CLOSED.value:
        return ServiceResult.fail(ErrorCode.ALREADY_CLOSED, "RFx is already closed.")

    previous = status_value(rfx.status)
    rfx.status = RfxStatus.CLOSED.value
    rfx.last_modified = now
    record_audit(db, "close_rfx", current_user_id, "rfx", rfx.id, {
        "reference_number": rfx.reference_number,
        "previous_status": previous,
    })
    db.flush()
    return ServiceResult.ok(to_rfx_detail(rfx))


def close_rfx(
    db: Session,
    rfx_id: int,
    current_user_id: Optional[int],
    is_admin: bool = False,
    now: Optional[datetime] = None,
) -> ServiceResult[RfxDetail]:
    """Close a Draft or Published RFx (admins and committee members only)."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _close_rfx, db, rfx_id, current_user_id, is_admin, now)


# ============= QUERIES =============

def get_rfx(db: Session, rfx_id: int) -> ServiceResult[RfxDetail]:
    rfx = repository.get_rfx(db, rfx_id)
    if rfx is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")
    return ServiceResult.ok(to_rfx_detail(rfx))


def list_rfx(
    db: Session,
    current_user_id: Optional[int] = None,
    assigned_only: bool = False,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> ServiceResult[List[RfxSummary]]:
    if status:
        normalized = normalize_rfx_status(status)
        if normalized is None:
            return ServiceResult.fail(
                ErrorCode.INVALID_STATUS, f"Unknown status '{status}'.", category=ErrorCategory.VALIDATION
            )
        status = normalized
    items = repository.list_rfx(
        db,
        member_user_id=current_user_id if assigned_only else None,
        status=status,
        limit=limit,
        offset=offset,
    )
    return ServiceResult.ok([to_rfx_summary(r, current_user_id) for r in items])


def list_published_rfx(db: Session, limit: int = 50, offset: int = 0) -> ServiceResult[List[PublishedRfx]]:
    return ServiceResult.ok([to_published_rfx(r) for r in repository.list_published_rfx(db, limit, offset)])


def get_published_rfx(db: Session, rfx_id: int) -> ServiceResult[PublishedRfx]:
    rfx = repository.get_rfx(db, rfx_id)
    if rfx is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Tender not found.")
    if status_value(rfx.status) != RfxStatus.PUBLISHED.value:
        return ServiceResult.fail(ErrorCode.NOT_PUBLISHED, "This tender is not open for bids.")
    return ServiceResult.ok(to_published_rfx(rfx))
