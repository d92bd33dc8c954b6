"""
Supplier portal API routes - published tenders, bids and contract signing.
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tenderflow.api.errors import unwrap
from tenderflow.core.config import settings
from tenderflow.core.rbac import require_supplier
from tenderflow.db.session import get_db
from tenderflow.schemas.bid import SubmitBidRequest, BidSubmissionResponse, SupplierBidSummary
from tenderflow.schemas.contract import ContractSummary, SignContractRequest
from tenderflow.schemas.rfx import PublishedRfx
from tenderflow.services import bid_submission, contracts, rfx_lifecycle

router = APIRouter(prefix="/api/supplier", tags=["Supplier"])


# ============= TENDERS & BIDS =============

@router.get("/rfx", response_model=List[PublishedRfx])
async def list_published_rfx(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Tenders currently open for bids."""
    return unwrap(rfx_lifecycle.list_published_rfx(db, limit=limit, offset=offset))


@router.get("/rfx/{rfx_id}", response_model=PublishedRfx)
async def get_published_rfx(
    rfx_id: int,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Tender details including required documents and inputs."""
    return unwrap(rfx_lifecycle.get_published_rfx(db, rfx_id))


@router.post("/rfx/{rfx_id}/bid", response_model=BidSubmissionResponse)
async def submit_bid(
    rfx_id: int,
    bid_data: SubmitBidRequest,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Submit a bid on a published tender."""
    return unwrap(bid_submission.submit_bid(db, rfx_id, user_context["user_id"], bid_data))


@router.get("/bids", response_model=List[SupplierBidSummary])
async def list_my_bids(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """The current supplier's bids with their evaluation status."""
    return unwrap(bid_submission.list_supplier_bids(db, user_context["user_id"], limit=limit, offset=offset))


# ============= CONTRACTS =============

@router.get("/contracts", response_model=List[ContractSummary])
async def list_my_contracts(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    return unwrap(contracts.list_supplier_contracts(db, user_context["user_id"], limit=limit, offset=offset))


@router.get("/contracts/{contract_id}", response_model=ContractSummary)
async def get_my_contract(
    contract_id: int,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    return unwrap(contracts.get_supplier_contract(db, contract_id, user_context["user_id"]))


@router.post("/contracts/{contract_id}/sign", response_model=ContractSummary)
async def sign_contract(
    contract_id: int,
    sign_data: SignContractRequest,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Sign a draft contract, making it active."""
    return unwrap(contracts.sign_contract(db, contract_id, user_context["user_id"], sign_data.signature))
