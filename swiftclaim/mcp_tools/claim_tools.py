from typing import Any, Callable, Dict

from swiftclaim.errors import ClaimWorkflowError
from swiftclaim.state.claim_state import Claim
from swiftclaim.workflow.claim_workflow import ClaimWorkflow


# ---------------------------------------------------
# Helpers
# ---------------------------------------------------

def _serialize(claim: Claim) -> Dict[str, Any]:
    return claim.model_dump(mode="json", by_alias=True)


def _guarded(fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    # Tool callers get the named error as data instead of a transport failure
    try:
        return fn()
    except ClaimWorkflowError as e:
        return {"error": e.to_dict()}


# ===================================================
# SUBMISSION
# ===================================================

def submit_claim_tool(workflow: ClaimWorkflow, input_data: dict):
    return _guarded(lambda: _serialize(workflow.submit(
        policy_id=input_data["policy_id"],
        claimant_id=input_data["claimant_id"],
        amount=float(input_data["amount"]),
        incident_date=input_data["incident_date"],
        description=input_data.get("description", ""),
        external_record_id=input_data["external_record_id"],
        documents=input_data.get("documents") or [],
        bank_details=input_data.get("bank_details"),
    )))


# ===================================================
# STATUS
# ===================================================

def claim_status_tool(workflow: ClaimWorkflow, claim_id: str):
    def _status():
        claim = workflow.get_claim(claim_id)
        return {
            "claim_id": claim.claim_id,
            "policy_id": claim.policy_id,
            "status": claim.status.value,
            "payout_status": claim.payout_status.value if claim.payout_status else None,
            "fraud_score": claim.fraud_score,
            "risk_level": claim.risk_level.value if claim.risk_level else None,
            "records_error": claim.records_error,
            "updated_at": claim.updated_at,
        }
    return _guarded(_status)


# ===================================================
# ANALYSIS
# ===================================================

def analysis_tool(workflow: ClaimWorkflow, claim_id: str):
    def _analyze():
        outcome = workflow.run_analysis(claim_id)
        return {
            "claim": _serialize(outcome.claim),
            "verdict": outcome.verdict.model_dump(mode="json", by_alias=True) if outcome.verdict else None,
            "records_error": outcome.records_error,
        }
    return _guarded(_analyze)


# ===================================================
# PROVIDER DECISION
# ===================================================

def decision_tool(workflow: ClaimWorkflow, claim_id: str, decider_id: str, action: str, comments: str = ""):
    return _guarded(lambda: _serialize(workflow.decide(claim_id, decider_id, action, comments)))


# ===================================================
# PAYOUT RETRY
# ===================================================

def payout_retry_tool(workflow: ClaimWorkflow, claim_id: str, requester_id: str):
    return _guarded(lambda: _serialize(workflow.retry_payout(claim_id, requester_id)))
