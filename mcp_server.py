# mcp_server.py

from typing import Optional

from fastmcp import FastMCP

from server.app import create_app
from swiftclaim.mcp_tools import claim_tools
from swiftclaim.workflow.bootstrap import build_workflow

workflow, policy_book = build_workflow()
app = create_app(workflow=workflow, policy_book=policy_book)

# ----------------------
# Convert the FastAPI app into MCP
# ----------------------
mcp = FastMCP.from_fastapi(app=app)

# ----------------------
# Workflow tools
# ----------------------

@mcp.tool
def ClaimSubmissionTool(
    policy_id: str,
    claimant_id: str,
    amount: float,
    incident_date: str,
    description: str,
    external_record_id: str,
    documents: list = [],
    bank_details: Optional[dict] = None,
):
    """Submit a new claim against a policy"""
    return claim_tools.submit_claim_tool(workflow, {
        "policy_id": policy_id,
        "claimant_id": claimant_id,
        "amount": amount,
        "incident_date": incident_date,
        "description": description,
        "external_record_id": external_record_id,
        "documents": documents,
        "bank_details": bank_details,
    })


@mcp.tool
def ClaimStatusTool(claim_id: str):
    """Check claim status"""
    return claim_tools.claim_status_tool(workflow, claim_id)


@mcp.tool
def ClaimAnalysisTool(claim_id: str):
    """Fetch medical records and run AI fraud analysis for a claim"""
    return claim_tools.analysis_tool(workflow, claim_id)


@mcp.tool
def ProviderDecisionTool(claim_id: str, decider_id: str, action: str, comments: str = ""):
    """Approve or reject a claim as its provider"""
    return claim_tools.decision_tool(workflow, claim_id, decider_id, action, comments)


@mcp.tool
def PayoutRetryTool(claim_id: str, requester_id: str):
    """Retry a failed payout for an approved claim"""
    return claim_tools.payout_retry_tool(workflow, claim_id, requester_id)


# ----------------------
# Run MCP server
# ----------------------
if __name__ == "__main__":
    mcp.run(transport="http", host="0.0.0.0", port=8000)
