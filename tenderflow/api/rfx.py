"""
RFx management API routes - creation, committee approval and closing.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tenderflow.api.errors import unwrap
from tenderflow.core.config import settings
from tenderflow.core.rbac import require_procurement
from tenderflow.db.session import get_db
from tenderflow.schemas.rfx import CreateRfxRequest, RfxDetail, RfxSummary
from tenderflow.services import committee, rfx_lifecycle

router = APIRouter(prefix="/api/rfx", tags=["RFx"])


@router.get("", response_model=List[RfxSummary])
async def list_rfx(
    assigned_only: bool = Query(False, description="Only RFx where I sit on the committee"),
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """List RFx with derived committee progress."""
    return unwrap(rfx_lifecycle.list_rfx(
        db,
        current_user_id=user_context["user_id"],
        assigned_only=assigned_only,
        status=status,
        limit=limit,
        offset=offset,
    ))


@router.post("", response_model=RfxDetail)
async def create_rfx(
    rfx_data: CreateRfxRequest,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Create a new RFx with its evaluation criteria and committee."""
    return unwrap(rfx_lifecycle.create_rfx(db, rfx_data, created_by=user_context["user_id"]))


@router.get("/{rfx_id}", response_model=RfxDetail)
async def get_rfx(
    rfx_id: int,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Get RFx details."""
    return unwrap(rfx_lifecycle.get_rfx(db, rfx_id))


@router.post("/{rfx_id}/approve", response_model=RfxDetail)
async def approve_rfx(
    rfx_id: int,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Record the current committee member's approval."""
    return unwrap(committee.approve_rfx(db, rfx_id, user_context["user_id"]))


@router.post("/{rfx_id}/close", response_model=RfxDetail)
async def close_rfx(
    rfx_id: int,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Close an RFx (administrators and committee members)."""
    return unwrap(rfx_lifecycle.close_rfx(
        db, rfx_id, user_context["user_id"], is_admin=user_context["is_admin"]
    ))
