from typing import Any, Dict

from swiftclaim.state.claim_state import ClaimStatus
from swiftclaim.utils.logger import logger


class ManagerAgent:
    """
    Manager Agent
    -------------
    Responsible for:
    - Routing a claim after records fetch and risk analysis
    - Never auto-rejecting on missing records (the registry is not authoritative)
    - Leaving every valid-looking claim to a human provider, whatever the score
    """

    # -----------------------------------
    # Routing Logic
    # -----------------------------------
    def decide_next_status(self, state) -> ClaimStatus:

        if state.records_result is None or not state.records_result.found:
            return ClaimStatus.RECORDS_FETCH_FAILED

        if state.verdict is not None and not state.verdict.is_valid_claim:
            return ClaimStatus.AUTO_REJECTED

        return ClaimStatus.PENDING_PROVIDER_REVIEW

    # -----------------------------------
    # Graph Entry
    # -----------------------------------
    def run(self, state) -> Dict[str, Any]:

        next_status = self.decide_next_status(state)
        logger.info(f"[Manager] Claim {state.claim.claim_id} → {next_status.value}")

        return {"next_status": next_status}
