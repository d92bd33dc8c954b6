"""
Contract management API routes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tenderflow.api.errors import unwrap
from tenderflow.core.config import settings
from tenderflow.core.rbac import require_procurement
from tenderflow.db.session import get_db
from tenderflow.schemas.contract import CreateContractRequest, ContractSummary, ContractReadyBid
from tenderflow.services import contracts

router = APIRouter(prefix="/api/contracts", tags=["Contracts"])


@router.get("", response_model=List[ContractSummary])
async def list_contracts(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    return unwrap(contracts.list_contracts(db, status=status, limit=limit, offset=offset))


@router.get("/ready-bids", response_model=List[ContractReadyBid])
async def list_contract_ready_bids(
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Approved bids still waiting for a contract."""
    return unwrap(contracts.list_contract_ready_bids(db))


@router.post("", response_model=ContractSummary)
async def create_contract(
    contract_data: CreateContractRequest,
    user_context: dict = Depends(require_procurement),
    db: Session = Depends(get_db)
):
    """Issue a draft contract from an approved bid, or a direct contract."""
    return unwrap(contracts.create_contract(db, contract_data, created_by=user_context["user_id"]))
