"""Shared fixtures: temporary SQLite store, stub AI backends, sandbox clients."""

import json
from datetime import date

import pytest

from swiftclaim.db.sqlite_store import ClaimStore
from swiftclaim.services.ledger_client import LedgerClient
from swiftclaim.services.notifier import Notifier
from swiftclaim.services.payout_client import PayoutClient
from swiftclaim.services.records_client import SandboxRecordsClient
from swiftclaim.services.risk_client import RiskAnalysisClient
from swiftclaim.workflow.claim_workflow import ClaimWorkflow
from swiftclaim.workflow.policy_book import PolicyBook

HOLDER = "holder-rajesh"
PROVIDER = "provider-apollo"
RECORD_ID = "ABDM123456789"
UNKNOWN_RECORD_ID = "ABDM000000001"
COVERAGE = 500_000.0
INCIDENT = date(2024, 1, 15)

BANK = {
    "beneficiary_name": "Rajesh Kumar",
    "bank_account": "123456789012",
    "routing_code": "HDFC0001234",
}


def verdict_json(**overrides) -> str:
    payload = {
        "fraudScore": 22,
        "riskLevel": "LOW",
        "isValidClaim": True,
        "confidence": 90,
        "analysis": {
            "medicalConsistency": "Diagnosis matches the claim description",
            "amountValidation": "Amount in line with angioplasty costs",
        },
        "redFlags": [],
        "recommendations": ["Approve after routine checks"],
        "requiredActions": [],
        "summary": "Claim is consistent with the medical records.",
    }
    payload.update(overrides)
    return json.dumps(payload)


class StubBackend:
    """Callable AI backend that returns a canned answer and counts prompts."""

    def __init__(self, answer=None, error: Exception = None):
        self.answer = verdict_json() if answer is None else answer
        self.error = error
        self.prompts = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store(tmp_path):
    s = ClaimStore(str(tmp_path / "claims.db"))
    s.init_db()
    return s


@pytest.fixture
def ledger():
    return LedgerClient()


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def make_workflow(store, ledger, backend):
    """Factory so a test can swap single collaborators."""

    def _make(records_client=None, risk_backend=None, payout_client=None, ledger_client=None, risk_timeout=5.0):
        return ClaimWorkflow(
            store=store,
            records_client=records_client or SandboxRecordsClient(),
            risk_client=RiskAnalysisClient(risk_backend or backend, timeout=risk_timeout),
            payout_client=payout_client or PayoutClient(),
            ledger_client=ledger_client or ledger,
            notifier=Notifier(store),
        )

    return _make


@pytest.fixture
def workflow(make_workflow):
    return make_workflow()


@pytest.fixture
def policy_book(store, ledger):
    return PolicyBook(store, ledger)


@pytest.fixture
def policy(policy_book):
    return policy_book.register(
        holder_id=HOLDER,
        provider_id=PROVIDER,
        coverage_amount=COVERAGE,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        premium=12_000.0,
        policy_id="POL-2024-0001",
    )


@pytest.fixture
def submit(workflow, policy):
    """Submit a valid claim against the default policy, with overridable fields."""

    def _submit(wf=None, **overrides):
        fields = dict(
            policy_id=policy.policy_id,
            claimant_id=HOLDER,
            amount=450_000.0,
            incident_date=INCIDENT,
            description="Angioplasty with stent placement after acute MI",
            external_record_id=RECORD_ID,
            documents=[{"filename": "apollo_final_invoice.pdf", "content_type": "application/pdf", "size_bytes": 2048}],
            bank_details=BANK,
        )
        fields.update(overrides)
        return (wf or workflow).submit(**fields)

    return _submit
