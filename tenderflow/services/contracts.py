"""
Contract issuance from approved bids (or directly) and supplier signing.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenderflow.core.logging import get_logger
from tenderflow.db import repository
from tenderflow.db.models import Contract, ContractStatus, BidStatus
from tenderflow.db.session import run_in_transaction
from tenderflow.schemas.contract import CreateContractRequest, ContractSummary, ContractReadyBid
from tenderflow.services.audit import record_audit
from tenderflow.services.result import ServiceResult, ErrorCode, ErrorCategory
from tenderflow.services.rfx_mapping import (
    as_utc, normalize_contract_status, status_value, to_contract_summary, user_display_name,
)

logger = get_logger(__name__)


def is_direct_contract(request: CreateContractRequest) -> bool:
    return request.is_direct_contract or (request.bid_id is None and request.rfx_id is None)


def validate_contract_request(request: Optional[CreateContractRequest]) -> Optional[ServiceResult]:
    if request is None:
        return ServiceResult.fail(ErrorCode.INVALID_REQUEST, "Request body is required.")

    problems = []
    if not is_direct_contract(request) and (request.bid_id is None or request.rfx_id is None):
        problems.append("RFx and bid are required for bid contracts")
    if not request.title or not request.title.strip():
        problems.append("title is required")
    if not request.supplier_name or not request.supplier_name.strip():
        problems.append("supplier name is required")
    if request.supplier_user_id is None:
        problems.append("supplier user is required")
    if request.contract_value is None or request.contract_value <= 0:
        problems.append("contract value must be greater than zero")
    if not request.currency or not request.currency.strip():
        problems.append("currency is required")
    if request.start_date is None or request.end_date is None:
        problems.append("start and end dates are required")
    elif as_utc(request.end_date) < as_utc(request.start_date):
        problems.append("end date must not be before start date")

    if problems:
        return ServiceResult.fail(
            ErrorCode.INVALID_REQUEST,
            f"Invalid contract request: {'; '.join(problems)}.",
            details=problems,
        )
    return None


def _is_bid_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "uq_contract_bid_id" in message or "contracts.bid_id" in message


def _create_contract(db: Session, request: Optional[CreateContractRequest], created_by: Optional[int], now: datetime):
    failure = validate_contract_request(request)
    if failure:
        return failure

    direct = is_direct_contract(request)
    rfx = None
    if not direct:
        rfx = repository.get_rfx(db, request.rfx_id)
        if rfx is None:
            return ServiceResult.fail(ErrorCode.NOT_FOUND, "RFx not found.")
        bid = repository.get_bid_in_rfx(db, request.rfx_id, request.bid_id)
        if bid is None:
            return ServiceResult.fail(ErrorCode.NOT_FOUND, "Bid not found for this RFx.")
        if status_value(bid.evaluation_status).lower() != BidStatus.APPROVED.value.lower():
            return ServiceResult.fail(ErrorCode.INVALID_STATUS, "Only approved bids can be converted into contracts.")
        if repository.get_contract_for_bid(db, bid.id) is not None:
            return ServiceResult.fail(ErrorCode.DUPLICATE, "A contract already exists for this bid.")

    contract = Contract(
        bid_id=None if direct else request.bid_id,
        rfx_id=None if direct else request.rfx_id,
        title=request.title.strip(),
        supplier_name=request.supplier_name.strip(),
        supplier_user_id=request.supplier_user_id,
        contract_value=request.contract_value,
        currency=request.currency.strip(),
        start_date=request.start_date,
        end_date=request.end_date,
        status=ContractStatus.DRAFT.value,
        created_at=now,
    )
    db.add(contract)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        if not _is_bid_conflict(e):
            raise
        # Another request created the contract between our check and insert
        logger.warning(f"Contract insert for bid {request.bid_id} lost a race")
        return ServiceResult.fail(ErrorCode.DUPLICATE, "A contract already exists for this bid.")

    record_audit(db, "create_contract", created_by, "contract", contract.id, {
        "bid_id": contract.bid_id,
        "rfx_id": contract.rfx_id,
        "reference_number": rfx.reference_number if rfx else None,
        "direct": direct,
        "contract_value": str(contract.contract_value),
        "currency": contract.currency,
    })
    return ServiceResult.ok(to_contract_summary(contract))


def create_contract(
    db: Session,
    request: Optional[CreateContractRequest],
    created_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceResult[ContractSummary]:
    """Issue a Draft contract for an approved bid, or a direct contract."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _create_contract, db, request, created_by, now)


def _sign_contract(db: Session, contract_id: int, supplier_user_id: Optional[int], signature: Optional[str], now: datetime):
    if supplier_user_id is None:
        return ServiceResult.fail(ErrorCode.UNAUTHORIZED, "Supplier identity is required.")

    if signature is None or not signature.strip():
        return ServiceResult.fail(ErrorCode.INVALID_SIGNATURE, "A signature is required.")

    contract = repository.get_supplier_contract(db, contract_id, supplier_user_id)
    if contract is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Contract not found.")

    if status_value(contract.status) != ContractStatus.DRAFT.value:
        return ServiceResult.fail(ErrorCode.INVALID_STATUS, "Only draft contracts can be signed.")

    contract.supplier_signature = signature.strip()
    contract.supplier_signed_at = now
    contract.status = ContractStatus.ACTIVE.value

    record_audit(db, "sign_contract", supplier_user_id, "contract", contract.id, {
        "bid_id": contract.bid_id,
        "status": ContractStatus.ACTIVE.value,
    })
    db.flush()
    return ServiceResult.ok(to_contract_summary(contract))


def sign_contract(
    db: Session,
    contract_id: int,
    supplier_user_id: Optional[int],
    signature: Optional[str],
    now: Optional[datetime] = None,
) -> ServiceResult[ContractSummary]:
    """Supplier signs their own Draft contract, activating it. One-time and one-way."""
    now = now or datetime.now(timezone.utc)
    return run_in_transaction(db, _sign_contract, db, contract_id, supplier_user_id, signature, now)


# ============= QUERIES =============

def list_contract_ready_bids(db: Session) -> ServiceResult[List[ContractReadyBid]]:
    bids = repository.list_contract_ready_bids(db)
    users = {u.id: u for u in repository.find_users(db, list({b.submitted_by_user_id for b in bids}))}
    return ServiceResult.ok([
        ContractReadyBid(
            bid_id=b.id,
            rfx_id=b.rfx_id,
            rfx_reference_number=b.rfx.reference_number,
            rfx_title=b.rfx.title,
            supplier_user_id=b.submitted_by_user_id,
            supplier_name=user_display_name(users.get(b.submitted_by_user_id)),
            bid_amount=b.bid_amount,
            currency=b.currency,
            evaluated_at=b.evaluated_at,
        )
        for b in bids
    ])


def list_contracts(db: Session, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> ServiceResult[List[ContractSummary]]:
    if status:
        normalized = normalize_contract_status(status)
        if normalized is None:
            return ServiceResult.fail(
                ErrorCode.INVALID_STATUS, f"Unknown status '{status}'.", category=ErrorCategory.VALIDATION
            )
        status = normalized
    contracts = repository.list_contracts(db, status=status, limit=limit, offset=offset)
    return ServiceResult.ok([to_contract_summary(c) for c in contracts])


def list_supplier_contracts(db: Session, supplier_user_id: int, limit: int = 50, offset: int = 0) -> ServiceResult[List[ContractSummary]]:
    contracts = repository.list_contracts(db, supplier_user_id=supplier_user_id, limit=limit, offset=offset)
    return ServiceResult.ok([to_contract_summary(c) for c in contracts])


def get_supplier_contract(db: Session, contract_id: int, supplier_user_id: int) -> ServiceResult[ContractSummary]:
    contract = db.get(Contract, contract_id)
    if contract is None:
        return ServiceResult.fail(ErrorCode.NOT_FOUND, "Contract not found.")
    if contract.supplier_user_id != supplier_user_id:
        return ServiceResult.fail(ErrorCode.FORBIDDEN, "This contract belongs to another supplier.")
    return ServiceResult.ok(to_contract_summary(contract))
