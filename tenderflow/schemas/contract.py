from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class CreateContractRequest(BaseModel):
    rfx_id: Optional[int] = None
    bid_id: Optional[int] = None
    is_direct_contract: bool = False
    title: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_user_id: Optional[int] = None
    contract_value: Optional[Decimal] = None
    currency: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class SignContractRequest(BaseModel):
    signature: Optional[str] = None


class ContractSummary(BaseModel):
    id: int
    rfx_id: Optional[int] = None
    bid_id: Optional[int] = None
    title: str
    supplier_name: str
    supplier_user_id: int
    contract_value: Decimal
    currency: str
    start_date: datetime
    end_date: datetime
    status: str
    supplier_signature: Optional[str] = None
    supplier_signed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContractReadyBid(BaseModel):
    """Approved bid that has no contract yet."""
    bid_id: int
    rfx_id: int
    rfx_reference_number: str
    rfx_title: str
    supplier_user_id: int
    supplier_name: str
    bid_amount: Decimal
    currency: str
    evaluated_at: Optional[datetime] = None
