from typing import Any, Dict

from swiftclaim.services.risk_client import RiskAnalysisClient
from swiftclaim.state.claim_state import AnalysisContext


def build_analysis_context(state) -> AnalysisContext:
    claim, policy = state.claim, state.policy
    bundle = state.records_result.bundle if state.records_result else None
    return AnalysisContext(
        claim_id=claim.claim_id,
        claim_amount=claim.amount,
        policy_type=policy.policy_type,
        coverage_amount=policy.coverage_amount,
        description=claim.description,
        incident_date=claim.incident_date,
        records=bundle,
        documents=claim.documents,
    )


class FraudAgent:

    def __init__(self, risk_client: RiskAnalysisClient):
        self.risk_client = risk_client

    def run(self, state) -> Dict[str, Any]:
        # analyze() is total: a backend outage comes back as the fallback verdict
        verdict = self.risk_client.analyze(build_analysis_context(state))
        return {"verdict": verdict}
