import sqlite3
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from swiftclaim.config import Settings
from swiftclaim.errors import ClaimWorkflowError, WorkflowFailure
from swiftclaim.state.claim_state import BankDetails, Claim, DocumentRecord
from swiftclaim.utils.logger import logger
from swiftclaim.workflow.bootstrap import build_workflow
from swiftclaim.workflow.claim_workflow import ClaimWorkflow
from swiftclaim.workflow.policy_book import PolicyBook


# ==================================================
# REQUEST MODELS
# ==================================================

class PolicyCreateRequest(BaseModel):
    holder_id: str
    provider_id: str
    coverage_amount: float
    start_date: date
    end_date: date
    policy_type: str = "health"
    premium: float = 0.0
    policy_id: Optional[str] = None


class PolicyStatusRequest(BaseModel):
    status: str


class ClaimSubmitRequest(BaseModel):
    policy_id: str
    claimant_id: str
    amount: float
    incident_date: date
    description: str
    external_record_id: str
    documents: List[DocumentRecord] = Field(default_factory=list)
    bank_details: Optional[BankDetails] = None


class ClaimDecisionRequest(BaseModel):
    decider_id: str
    action: str  # approve / reject
    comments: str = ""


class PayoutRetryRequest(BaseModel):
    requester_id: str
    bank_details: Optional[BankDetails] = None


# ==================================================
# HELPERS
# ==================================================

def generate_confirmation_message(claim_id: str, policy_id: str, submitted_at: str) -> str:

    dt = datetime.fromisoformat(submitted_at)
    formatted_date = dt.strftime("%B %d, %Y")
    formatted_time = dt.strftime("%I:%M %p UTC")

    return (
        f"Thank you for submitting your claim.\n\n"
        f"Your claim under policy '{policy_id}' "
        f"was successfully submitted on {formatted_date} at {formatted_time}.\n\n"
        f"Your claim reference number is:\n"
        f"{claim_id}\n\n"
        f"We will now verify your medical records and review your claim. "
        f"You can use this reference number to track the status anytime.\n\n"
        f"Thank you for choosing our insurance services."
    )


def _claim_out(claim: Claim) -> dict:
    return claim.model_dump(mode="json", by_alias=True)


# ==================================================
# APP FACTORY
# ==================================================

def create_app(
    settings: Optional[Settings] = None,
    workflow: Optional[ClaimWorkflow] = None,
    policy_book: Optional[PolicyBook] = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.workflow is None:
            app.state.workflow, app.state.policy_book = build_workflow(settings)
            logger.info("Database initialized.")
        yield

    app = FastAPI(title="SwiftClaim Insurance Claim System", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.workflow = workflow
    app.state.policy_book = policy_book

    def _workflow() -> ClaimWorkflow:
        return app.state.workflow

    def _policies() -> PolicyBook:
        return app.state.policy_book

    # --------------------------------------------------
    # Error mapping
    # --------------------------------------------------

    @app.exception_handler(ClaimWorkflowError)
    async def workflow_error_handler(request: Request, exc: ClaimWorkflowError):
        if exc.http_status >= 500:
            logger.error(f"[API] {request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    @app.exception_handler(sqlite3.Error)
    async def database_error_handler(request: Request, exc: sqlite3.Error):
        logger.error(f"[API] Database error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
        failure = WorkflowFailure("The operation could not be completed, please retry", {"error": type(exc).__name__})
        return JSONResponse(status_code=failure.http_status, content={"error": failure.to_dict()})

    # ==================================================
    # POLICIES
    # ==================================================

    @app.post("/policies")
    def create_policy(request: PolicyCreateRequest):
        policy = _policies().register(
            holder_id=request.holder_id,
            provider_id=request.provider_id,
            coverage_amount=request.coverage_amount,
            start_date=request.start_date,
            end_date=request.end_date,
            policy_type=request.policy_type,
            premium=request.premium,
            policy_id=request.policy_id,
        )
        return policy.model_dump(mode="json")

    @app.get("/policies/{policy_id}")
    def get_policy(policy_id: str):
        return _policies().get(policy_id).model_dump(mode="json")

    @app.post("/policies/{policy_id}/status")
    def change_policy_status(policy_id: str, request: PolicyStatusRequest):
        return _policies().change_status(policy_id, request.status).model_dump(mode="json")

    # ==================================================
    # CLAIMANT: SUBMIT CLAIM
    # ==================================================

    @app.post("/claims/submit")
    def submit_claim(request: ClaimSubmitRequest):
        claim = _workflow().submit(
            policy_id=request.policy_id,
            claimant_id=request.claimant_id,
            amount=request.amount,
            incident_date=request.incident_date,
            description=request.description,
            external_record_id=request.external_record_id,
            documents=request.documents,
            bank_details=request.bank_details,
        )

        return {
            "claim_id": claim.claim_id,
            "status": claim.status.value,
            "submitted_at": claim.created_at,
            "documents_uploaded": len(claim.documents),
            "message": generate_confirmation_message(claim.claim_id, claim.policy_id, claim.created_at),
            "claim": _claim_out(claim),
        }

    # ==================================================
    # STATUS / LISTINGS
    # ==================================================

    @app.get("/claims/{claim_id}")
    def get_claim(claim_id: str):
        return _claim_out(_workflow().get_claim(claim_id))

    @app.get("/claims")
    def list_claims(claimant_id: Optional[str] = None, provider_id: Optional[str] = None):
        claims = _workflow().list_claims(claimant_id=claimant_id, provider_id=provider_id)
        return {"count": len(claims), "claims": [_claim_out(c) for c in claims]}

    @app.get("/claims/{claim_id}/payouts")
    def list_payouts(claim_id: str):
        return [p.model_dump(mode="json") for p in _workflow().list_payouts(claim_id)]

    @app.get("/notifications/{user_id}")
    def list_notifications(user_id: str):
        return _workflow().notifications(user_id)

    # ==================================================
    # AI ANALYSIS
    # ==================================================

    @app.post("/claims/{claim_id}/analyze")
    def analyze_claim(claim_id: str):
        outcome = _workflow().run_analysis(claim_id)
        return {
            "claim_id": claim_id,
            "status": outcome.claim.status.value,
            "records_error": outcome.records_error,
            "verdict": outcome.verdict.model_dump(mode="json", by_alias=True) if outcome.verdict else None,
            "claim": _claim_out(outcome.claim),
        }

    # ==================================================
    # PROVIDER: DECISION
    # ==================================================

    @app.post("/claims/{claim_id}/process")
    def process_claim(claim_id: str, request: ClaimDecisionRequest):
        claim = _workflow().decide(claim_id, request.decider_id, request.action, request.comments)
        return {
            "claim_id": claim_id,
            "status": claim.status.value,
            "payout_status": claim.payout_status.value if claim.payout_status else None,
            "claim": _claim_out(claim),
        }

    # ==================================================
    # PAYOUT
    # ==================================================

    @app.post("/claims/{claim_id}/payout/retry")
    def retry_payout(claim_id: str, request: PayoutRetryRequest):
        claim = _workflow().retry_payout(claim_id, request.requester_id, request.bank_details)
        return {
            "claim_id": claim_id,
            "payout_status": claim.payout_status.value if claim.payout_status else None,
            "claim": _claim_out(claim),
        }

    @app.post("/claims/{claim_id}/payout/refresh")
    def refresh_payout(claim_id: str):
        claim = _workflow().refresh_payout(claim_id)
        return {
            "claim_id": claim_id,
            "payout_status": claim.payout_status.value if claim.payout_status else None,
            "claim": _claim_out(claim),
        }

    return app


app = create_app()
