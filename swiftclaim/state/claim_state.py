from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================================
# Enumerations
# ============================================================

class PolicyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"


class ClaimStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    ANALYSIS_PENDING = "ANALYSIS_PENDING"
    RECORDS_FETCH_FAILED = "RECORDS_FETCH_FAILED"
    AUTO_REJECTED = "AUTO_REJECTED"
    PENDING_PROVIDER_REVIEW = "PENDING_PROVIDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# At most one claim per policy may sit in one of these.
OPEN_CLAIM_STATUSES = (
    ClaimStatus.SUBMITTED,
    ClaimStatus.ANALYSIS_PENDING,
    ClaimStatus.RECORDS_FETCH_FAILED,
    ClaimStatus.PENDING_PROVIDER_REVIEW,
)

TERMINAL_CLAIM_STATUSES = (
    ClaimStatus.AUTO_REJECTED,
    ClaimStatus.APPROVED,
    ClaimStatus.REJECTED,
)


class ClaimPayoutStatus(str, Enum):
    """Payout sub-state tracked on an APPROVED claim."""

    INITIATED = "INITIATED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class VerdictSource(str, Enum):
    LLM = "llm"
    TEXT = "text"
    FALLBACK = "fallback"


# ============================================================
# Policy
# ============================================================

class Policy(BaseModel):
    policy_id: str
    holder_id: str
    provider_id: str
    policy_type: str = "health"
    coverage_amount: float
    premium: float = 0.0
    start_date: date
    end_date: date
    status: PolicyStatus = PolicyStatus.ACTIVE
    created_at: Optional[str] = None

    def covers(self, incident_date: date) -> bool:
        return self.start_date <= incident_date <= self.end_date


# ============================================================
# Document Model
# ============================================================

class DocumentRecord(BaseModel):
    filename: str
    content_type: str = "application/octet-stream"
    size_bytes: int = 0
    doc_type: Optional[str] = None
    label: Optional[str] = None


class BankDetails(BaseModel):
    beneficiary_name: str
    bank_account: str
    routing_code: str


# ============================================================
# Risk Verdict
# ============================================================

class RiskVerdict(BaseModel):
    """Immutable outcome of one risk-analysis call."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    fraud_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    is_valid_claim: bool
    confidence: int = Field(ge=0, le=100)
    analysis: Dict[str, str] = Field(default_factory=dict)
    red_flags: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    required_actions: List[str] = Field(default_factory=list)
    summary: str = ""
    source: VerdictSource = VerdictSource.LLM


# ============================================================
# Payout Attempt
# ============================================================

class PayoutRecord(BaseModel):
    payout_id: str
    claim_id: str
    amount: float
    bank_account: Optional[str] = None
    routing_code: Optional[str] = None
    status: str
    transfer_ref: Optional[str] = None
    error_kind: Optional[str] = None
    created_at: Optional[str] = None


# ============================================================
# MAIN CLAIM
# ============================================================

class Claim(BaseModel):

    # -------------------------
    # Identifiers
    # -------------------------
    claim_id: str
    policy_id: str
    claimant_id: str
    provider_id: str

    # -------------------------
    # Claim Data
    # -------------------------
    amount: float
    description: str
    incident_date: date
    external_record_id: str

    # -------------------------
    # Documents & Bank
    # -------------------------
    documents: List[DocumentRecord] = Field(default_factory=list)
    beneficiary_name: Optional[str] = None
    bank_account: Optional[str] = None
    routing_code: Optional[str] = None

    # -------------------------
    # Lifecycle
    # -------------------------
    status: ClaimStatus = ClaimStatus.SUBMITTED
    records_error: Optional[str] = None

    # -------------------------
    # Risk
    # -------------------------
    risk_verdict: Optional[RiskVerdict] = None
    fraud_score: Optional[int] = None
    risk_level: Optional[RiskLevel] = None
    ai_confidence: Optional[int] = None

    # -------------------------
    # Provider Decision
    # -------------------------
    provider_comments: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[str] = None

    # -------------------------
    # Payout
    # -------------------------
    payout_status: Optional[ClaimPayoutStatus] = None
    payout_id: Optional[str] = None
    payout_amount: Optional[float] = None
    payout_error: Optional[str] = None

    # -------------------------
    # Timestamps
    # -------------------------
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def bank_details(self) -> Optional[BankDetails]:
        if not (self.beneficiary_name and self.bank_account and self.routing_code):
            return None
        return BankDetails(
            beneficiary_name=self.beneficiary_name,
            bank_account=self.bank_account,
            routing_code=self.routing_code,
        )


# ============================================================
# Analysis
# ============================================================

class RecordBundle(BaseModel):
    """Patient history returned by the health-record registry."""

    model_config = ConfigDict(extra="allow")

    patient_id: str
    full_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    medical_records: List[Dict[str, Any]] = Field(default_factory=list)
    current_medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)


class AnalysisContext(BaseModel):
    claim_id: str
    claim_amount: float
    policy_type: str
    coverage_amount: float
    description: str
    incident_date: date
    records: Optional[RecordBundle] = None
    documents: List[DocumentRecord] = Field(default_factory=list)


class AnalysisOutcome(BaseModel):
    claim: Claim
    verdict: Optional[RiskVerdict] = None
    records_error: Optional[str] = None
