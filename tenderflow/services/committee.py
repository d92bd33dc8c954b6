"""
Committee approval tracking.

An RFx is published automatically once every committee member has approved
it. Progress is never stored; see `rfx_mapping.committee_status`.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from tenderflow.core.logging import get_logger
from tenderflow.db import repository
from tenderflow.db.models import RfxStatus
from tenderflow.db.session import run_in_transaction
from tenderflow.schemas.rfx import RfxDetail
from tenderflow.services.audit import record_audit
from tenderflow.services.result import ServiceResult, ErrorCode
from tenderflow.services.rfx_mapping import committee_status, status_value, to_rfx_detail

logger = get_logger(__name__)


def _approve_rfx(db: Session, rfx_id: int, current_user_id: Optional[int], now: datetime):
    if current_user_id is None:
        return ServiceResult.fail(ErrorCode.UNAUTHORIZED, "User identity is required.")

    rfx = repository.get_rfx_for_update(db, rfx_id)
    if rfx is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")

    member = next((m for m in rfx.committee_members if m.user_id == current_user_id), None)
    if member is None:
        return ServiceResult.fail(ErrorCode.FORBIDDEN, "You are not a committee member for this RFx.")

    if status_value(rfx.status) != RfxStatus.DRAFT.value:
        return ServiceResult.fail(ErrorCode.INVALID_STATUS, "Only draft RFx can be approved.")

    if member.is_approved:
        return ServiceResult.fail(ErrorCode.ALREADY_APPROVED, "You have already approved this RFx.")

    member.is_approved = True
    member.approved_at = now
    rfx.last_modified = now

    published = all(m.is_approved for m in rfx.committee_members)
    if published:
        rfx.status = RfxStatus.PUBLISHED.value

    record_audit(db, "approve_rfx", current_user_id, "rfx", rfx.id, {
        "reference_number": rfx.reference_number,
        "committee_status": committee_status(rfx),
        "published": published,
    })
    db.flush()

    if published:
        logger.info(f"RFx {rfx.reference_number} published after committee approval")
    return ServiceResult.ok(to_rfx_detail(rfx))


def approve_rfx(
    db: Session,
    rfx_id: int,
    current_user_id: Optional[int],
    now: Optional[datetime] = None,
) -> ServiceResult[RfxDetail]:
    """
    Record the current member's approval of a draft RFx.

    The RFx row is locked for the whole transaction, so concurrent approvals
    serialize and exactly one of them observes the final member approving.
    """
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _approve_rfx, db, rfx_id, current_user_id, now)
