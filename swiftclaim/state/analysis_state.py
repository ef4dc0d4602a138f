from typing import Optional

from pydantic import BaseModel

from swiftclaim.state.claim_state import Claim, ClaimStatus, Policy, RiskVerdict
from swiftclaim.state.results import RecordsFetchResult


class AnalysisState(BaseModel):
    """Graph state for one run of the analysis pipeline."""

    # Inputs
    claim: Claim
    policy: Policy

    # Records step
    records_result: Optional[RecordsFetchResult] = None
    records_error: Optional[str] = None

    # Fraud step
    verdict: Optional[RiskVerdict] = None

    # Manager step
    next_status: Optional[ClaimStatus] = None
