"""Result objects returned across every external-client boundary."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from swiftclaim.state.claim_state import RecordBundle


# ============================================================
# Health records
# ============================================================

class RecordsErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    UNAVAILABLE = "UNAVAILABLE"
    INVALID_ID = "INVALID_ID"


class RecordsFetchResult(BaseModel):
    record_id: str
    found: bool
    bundle: Optional[RecordBundle] = None
    error_kind: Optional[RecordsErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def of(cls, record_id: str, bundle: RecordBundle) -> "RecordsFetchResult":
        return cls(record_id=record_id, found=True, bundle=bundle)

    @classmethod
    def failure(cls, record_id: str, kind: RecordsErrorKind, error: str) -> "RecordsFetchResult":
        return cls(record_id=record_id, found=False, error_kind=kind, error=error)


# ============================================================
# Payouts
# ============================================================

class PayoutRequest(BaseModel):
    claim_id: str
    payout_id: Optional[str] = None
    amount: float
    beneficiary_name: Optional[str] = None
    bank_account: Optional[str] = None
    routing_code: Optional[str] = None
    purpose: str = "Insurance Claim Settlement"


class PayoutResult(BaseModel):
    success: bool
    payout_id: str
    transfer_id: Optional[str] = None
    status: str = "FAILED"
    utr: Optional[str] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None


# ============================================================
# Ledger
# ============================================================

class LedgerEvent(BaseModel):
    event_type: str
    subject_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class LedgerReceipt(BaseModel):
    receipt_id: str
    mocked: bool
