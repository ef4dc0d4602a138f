"""HTTP surface: routing, response shapes and error mapping."""

import pytest
from fastapi.testclient import TestClient

from conftest import BANK, HOLDER, PROVIDER, RECORD_ID
from server.app import create_app, generate_confirmation_message


@pytest.fixture
def client(workflow, policy_book, policy):
    app = create_app(workflow=workflow, policy_book=policy_book)
    with TestClient(app) as c:
        yield c


def _submit_body(**overrides):
    body = {
        "policy_id": "POL-2024-0001",
        "claimant_id": HOLDER,
        "amount": 450000.0,
        "incident_date": "2024-01-15",
        "description": "Angioplasty with stent placement after acute MI",
        "external_record_id": RECORD_ID,
        "documents": [{"filename": "apollo_final_invoice.pdf", "content_type": "application/pdf"}],
        "bank_details": BANK,
    }
    body.update(overrides)
    return body


def _submitted(client, **overrides):
    response = client.post("/claims/submit", json=_submit_body(**overrides))
    assert response.status_code == 200, response.text
    return response.json()


class TestPolicies:

    def test_create_and_fetch(self, client):
        response = client.post("/policies", json={
            "holder_id": "holder-priya",
            "provider_id": "provider-manipal",
            "coverage_amount": 300000,
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
        })
        assert response.status_code == 200
        policy_id = response.json()["policy_id"]

        fetched = client.get(f"/policies/{policy_id}").json()
        assert fetched["status"] == "ACTIVE"
        assert fetched["coverage_amount"] == 300000.0

    def test_status_change(self, client):
        response = client.post("/policies/POL-2024-0001/status", json={"status": "SUSPENDED"})
        assert response.json()["status"] == "SUSPENDED"

    def test_invalid_policy(self, client):
        response = client.post("/policies", json={
            "holder_id": "h", "provider_id": "p", "coverage_amount": 0,
            "start_date": "2024-01-01", "end_date": "2024-12-31",
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_POLICY"


class TestSubmit:

    def test_submit(self, client):
        body = _submitted(client)

        assert body["status"] == "SUBMITTED"
        assert body["documents_uploaded"] == 1
        assert body["claim_id"] in body["message"]
        assert body["claim"]["documents"][0]["doc_type"] == "itemized_invoice"

    @pytest.mark.parametrize("overrides,status,code", [
        ({"policy_id": "POL-MISSING"}, 404, "POLICY_NOT_FOUND"),
        ({"claimant_id": "someone-else"}, 404, "POLICY_NOT_FOUND"),
        ({"incident_date": "2025-03-01"}, 422, "POLICY_INACTIVE"),
        ({"amount": 900000.0}, 422, "INVALID_AMOUNT"),
        ({"external_record_id": "ABDM12"}, 422, "INVALID_RECORD_REFERENCE"),
        ({"bank_details": {**BANK, "routing_code": "HDFC1234"}}, 422, "INVALID_BANK_DETAILS"),
    ])
    def test_rejections(self, client, overrides, status, code):
        response = client.post("/claims/submit", json=_submit_body(**overrides))

        assert response.status_code == status
        error = response.json()["error"]
        assert error["code"] == code
        assert error["message"]

    def test_duplicate(self, client):
        first = _submitted(client)
        response = client.post("/claims/submit", json=_submit_body())

        assert response.status_code == 409
        assert response.json()["error"]["details"]["existing_claim_id"] == first["claim_id"]

    def test_malformed_body(self, client):
        assert client.post("/claims/submit", json={"policy_id": "POL-2024-0001"}).status_code == 422

    def test_confirmation_message(self):
        message = generate_confirmation_message("c-1", "POL-1", "2024-03-05T14:30:00+00:00")
        assert "March 05, 2024 at 02:30 PM UTC" in message


class TestLifecycle:

    def test_analyze_approve_and_pay(self, client):
        claim_id = _submitted(client)["claim_id"]

        analyzed = client.post(f"/claims/{claim_id}/analyze").json()
        assert analyzed["status"] == "PENDING_PROVIDER_REVIEW"
        assert analyzed["verdict"]["fraudScore"] == 22

        decided = client.post(f"/claims/{claim_id}/process", json={"decider_id": PROVIDER, "action": "approve"}).json()
        assert decided["status"] == "APPROVED"
        assert decided["payout_status"] == "SETTLED"

        payouts = client.get(f"/claims/{claim_id}/payouts").json()
        assert len(payouts) == 1

    def test_second_decision_conflicts(self, client):
        claim_id = _submitted(client)["claim_id"]
        client.post(f"/claims/{claim_id}/analyze")
        client.post(f"/claims/{claim_id}/process", json={"decider_id": PROVIDER, "action": "reject"})

        response = client.post(f"/claims/{claim_id}/process", json={"decider_id": PROVIDER, "action": "approve"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_PROCESSED"

    def test_wrong_provider(self, client):
        claim_id = _submitted(client)["claim_id"]
        client.post(f"/claims/{claim_id}/analyze")

        response = client.post(f"/claims/{claim_id}/process", json={"decider_id": "provider-other", "action": "approve"})
        assert response.status_code == 403

    def test_unknown_action(self, client):
        claim_id = _submitted(client)["claim_id"]
        response = client.post(f"/claims/{claim_id}/process", json={"decider_id": PROVIDER, "action": "escalate"})
        assert response.json()["error"]["code"] == "INVALID_ACTION"

    def test_retry_requires_failed_payout(self, client):
        claim_id = _submitted(client)["claim_id"]
        response = client.post(f"/claims/{claim_id}/payout/retry", json={"requester_id": PROVIDER})
        assert response.status_code == 409


class TestReads:

    def test_unknown_claim(self, client):
        response = client.get("/claims/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "error": {
                "code": "CLAIM_NOT_FOUND",
                "message": "Claim does-not-exist not found",
                "details": {"claim_id": "does-not-exist"},
            }
        }

    def test_listing_and_notifications(self, client):
        claim_id = _submitted(client)["claim_id"]

        listing = client.get("/claims", params={"claimant_id": HOLDER}).json()
        assert listing["count"] == 1
        assert listing["claims"][0]["claim_id"] == claim_id
        assert client.get("/claims", params={"claimant_id": "nobody"}).json()["count"] == 0

        notes = client.get(f"/notifications/{PROVIDER}").json()
        assert [n["category"] for n in notes] == ["new_claim"]
