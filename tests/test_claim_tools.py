from conftest import BANK, HOLDER, PROVIDER, RECORD_ID
from swiftclaim.mcp_tools import claim_tools


def _input(**overrides):
    data = {
        "policy_id": "POL-2024-0001",
        "claimant_id": HOLDER,
        "amount": "120000",
        "incident_date": "2024-01-15",
        "description": "Emergency admission",
        "external_record_id": RECORD_ID,
        "bank_details": BANK,
    }
    data.update(overrides)
    return data


class TestClaimTools:

    def test_full_cycle(self, workflow, policy):
        submitted = claim_tools.submit_claim_tool(workflow, _input())
        claim_id = submitted["claim_id"]
        assert submitted["status"] == "SUBMITTED"
        assert submitted["amount"] == 120000.0

        analyzed = claim_tools.analysis_tool(workflow, claim_id)
        assert analyzed["claim"]["status"] == "PENDING_PROVIDER_REVIEW"
        assert analyzed["verdict"]["riskLevel"] == "LOW"

        decided = claim_tools.decision_tool(workflow, claim_id, PROVIDER, "approve")
        assert decided["status"] == "APPROVED"

        status = claim_tools.claim_status_tool(workflow, claim_id)
        assert status["payout_status"] == "SETTLED"
        assert status["fraud_score"] == 22

    def test_errors_are_returned_as_data(self, workflow, policy):
        result = claim_tools.submit_claim_tool(workflow, _input(policy_id="POL-NOPE"))
        assert result["error"]["code"] == "POLICY_NOT_FOUND"

        assert claim_tools.claim_status_tool(workflow, "missing")["error"]["code"] == "CLAIM_NOT_FOUND"

    def test_retry_without_failed_payout(self, workflow, policy):
        claim_id = claim_tools.submit_claim_tool(workflow, _input())["claim_id"]
        result = claim_tools.payout_retry_tool(workflow, claim_id, PROVIDER)
        assert result["error"]["code"] == "INVALID_CLAIM_STATE"
