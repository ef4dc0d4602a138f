"""
Analysis Graph
==============
Claim analysis flow using LangGraph:

    fetch_records → (fraud?) → manager → END

Nodes:
- fetch_records (RecordsAgent):
    • Looks the claimant up in the health-record registry
    • Sets records_result and records_error (NOT_FOUND / UNAVAILABLE / INVALID_ID)

- fraud (FraudAgent):
    • Runs the AI risk analysis on claim + policy + records + documents
    • Always sets a complete verdict (fallback on AI failure)

- manager (ManagerAgent):
    • Picks next_status in {RECORDS_FETCH_FAILED, AUTO_REJECTED, PENDING_PROVIDER_REVIEW}

The graph never writes to the database. ClaimWorkflow persists the outcome.
"""

from typing import Literal, Union

from langgraph.graph import END, StateGraph

from swiftclaim.agents.fraud_agent import FraudAgent
from swiftclaim.agents.manager_agent import ManagerAgent
from swiftclaim.agents.records_agent import RecordsAgent
from swiftclaim.services.records_client import RecordsClient
from swiftclaim.services.risk_client import RiskAnalysisClient
from swiftclaim.state.analysis_state import AnalysisState
from swiftclaim.utils.logger import logger


# -----------------------------------------------------------------------------
# Routing functions
# -----------------------------------------------------------------------------
def route_after_records(state: AnalysisState) -> Literal["fraud", "manager"]:
    """Records missing → Manager (manual handling). Records found → Fraud."""
    if state.records_result is None or not state.records_result.found:
        logger.info("[Router] Records unavailable → Manager")
        return "manager"
    logger.info("[Router] Records OK → Fraud")
    return "fraud"


# -----------------------------------------------------------------------------
# Graph builder
# -----------------------------------------------------------------------------
def build_analysis_graph(
    records_client: RecordsClient,
    risk_client: RiskAnalysisClient,
):
    graph = StateGraph(AnalysisState)

    graph.add_node("fetch_records", RecordsAgent(records_client).run)
    graph.add_node("fraud", FraudAgent(risk_client).run)
    graph.add_node("manager", ManagerAgent().run)

    graph.set_entry_point("fetch_records")

    graph.add_conditional_edges(
        "fetch_records",
        route_after_records,
        {
            "fraud": "fraud",
            "manager": "manager",
        },
    )

    graph.add_edge("fraud", "manager")
    graph.add_edge("manager", END)

    return graph.compile()


def as_analysis_state(final_state: Union[dict, AnalysisState]) -> AnalysisState:
    """invoke() hands back a dict of channel values; normalize it to the model."""
    if isinstance(final_state, AnalysisState):
        return final_state
    return AnalysisState.model_validate(dict(final_state))
