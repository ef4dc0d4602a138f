import json

import httpx
import pytest

from swiftclaim.config import Settings
from swiftclaim.services.payout_client import PayoutClient, validate_bank_account
from swiftclaim.state.results import PayoutRequest


def _request(**overrides):
    fields = dict(
        claim_id="claim-1",
        amount=180_000.0,
        beneficiary_name="Priya Sharma",
        bank_account="987654321098",
        routing_code="ICIC0000456",
    )
    fields.update(overrides)
    return PayoutRequest(**fields)


def _live(handler):
    seen = []

    def recording(request):
        seen.append(request)
        return handler(request)

    http = httpx.Client(base_url="https://gateway.test", transport=httpx.MockTransport(recording))
    return PayoutClient(live=True, client_id="cid", client_secret="csecret", http_client=http), seen


class TestBankValidation:

    @pytest.mark.parametrize("account,ifsc,ok", [
        ("123456789", "SBIN0001234", True),
        ("123456789012345678", "HDFC0ABC123", True),
        ("12345678", "SBIN0001234", False),
        ("1234567890123456789", "SBIN0001234", False),
        ("12345678901A", "SBIN0001234", False),
        ("123456789", "SBIN1001234", False),
        ("123456789", "sbin0001234", False),
        ("123456789", "SBIN000123", False),
        (None, "SBIN0001234", False),
        ("123456789", "", False),
    ])
    def test_formats(self, account, ifsc, ok):
        assert (validate_bank_account(account, ifsc) is None) is ok


class TestSandbox:

    def test_fabricates_success(self):
        result = PayoutClient().initiate(_request())

        assert result.success
        assert result.status == "SUCCESS"
        assert result.payout_id.startswith("PAYOUT_claim-1_")
        assert result.utr.startswith("MOCK_UTR_")

    def test_ids_are_unique_per_attempt(self):
        client = PayoutClient()
        assert client.initiate(_request()).payout_id != client.initiate(_request()).payout_id

    def test_bad_bank_details_fail_even_in_sandbox(self):
        result = PayoutClient().initiate(_request(routing_code="BAD"))

        assert not result.success
        assert result.error_kind == "INVALID_BANK_DETAILS"

    def test_missing_beneficiary(self):
        assert PayoutClient().initiate(_request(beneficiary_name=None)).error_kind == "INVALID_BANK_DETAILS"

    def test_non_positive_amount(self):
        assert PayoutClient().initiate(_request(amount=0)).error_kind == "INVALID_AMOUNT"

    def test_status_is_success(self):
        assert PayoutClient().check_status("PAYOUT_x").status == "SUCCESS"

    def test_from_settings_defaults_to_sandbox(self):
        assert PayoutClient.from_settings(Settings()).live is False
        assert PayoutClient.from_settings(Settings(payout_mode="production")).live is True


class TestLiveGateway:

    def test_transfer_request(self):
        client, seen = _live(lambda r: httpx.Response(200, json={
            "status": "SUCCESS", "data": {"status": "SUCCESS", "utr": "UTR123"},
        }))

        result = client.initiate(_request())

        assert result.success
        assert result.utr == "UTR123"
        request = seen[0]
        assert request.url.path == "/v1/transfers"
        assert request.headers["X-Client-Id"] == "cid"
        assert request.headers["X-Client-Secret"] == "csecret"
        assert request.headers["X-Request-Id"] == result.payout_id
        body = json.loads(request.read())
        assert body["amount"] == 180_000.0
        assert body["ifsc"] == "ICIC0000456"
        assert body["transferId"] == result.payout_id

    def test_pending_transfer(self):
        client, _ = _live(lambda r: httpx.Response(200, json={"data": {"status": "PENDING"}}))
        result = client.initiate(_request())

        assert result.success
        assert result.status == "PENDING"

    def test_rejected_transfer(self):
        client, _ = _live(lambda r: httpx.Response(200, json={"status": "ERROR", "message": "Beneficiary blocked"}))
        result = client.initiate(_request())

        assert not result.success
        assert result.error_kind == "GATEWAY_REJECTED"
        assert result.message == "Beneficiary blocked"

    def test_http_error(self):
        client, _ = _live(lambda r: httpx.Response(500))
        result = client.initiate(_request())

        assert not result.success
        assert result.error_kind == "GATEWAY_REJECTED"

    def test_timeout(self):
        def hang(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client, _ = _live(hang)
        result = client.initiate(_request())

        assert not result.success
        assert result.error_kind == "TIMEOUT"

    def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = _live(refuse)
        assert client.initiate(_request()).error_kind == "GATEWAY_ERROR"

    def test_invalid_details_never_call_out(self):
        client, seen = _live(lambda r: httpx.Response(200, json={}))
        client.initiate(_request(bank_account="1"))
        assert seen == []

    def test_status_lookup(self):
        client, seen = _live(lambda r: httpx.Response(200, json={"data": {"status": "SUCCESS", "utr": "UTR9"}}))
        status = client.check_status("PAYOUT_1")

        assert status.status == "SUCCESS"
        assert status.utr == "UTR9"
        assert seen[0].url.path == "/v1/transfers/PAYOUT_1"

    @pytest.mark.parametrize("body", [["ok"], "accepted", {"status": "SUCCESS", "data": ["queued"]}])
    def test_unexpected_body_shape(self, body):
        client, _ = _live(lambda r: httpx.Response(200, json=body))
        result = client.initiate(_request())

        assert not result.success
        assert result.error_kind == "GATEWAY_ERROR"

    def test_non_string_fields_are_coerced(self):
        client, _ = _live(lambda r: httpx.Response(200, json={
            "message": 7, "data": {"status": "SUCCESS", "utr": 123456, "transferId": 99},
        }))
        result = client.initiate(_request())

        assert result.success
        assert result.utr == "123456"
        assert result.transfer_id == "99"
        assert result.message == "7"

    def test_caller_chosen_payout_id(self):
        client, seen = _live(lambda r: httpx.Response(200, json={"data": {"status": "SUCCESS"}}))
        result = client.initiate(_request(payout_id="PAYOUT_claim-1_fixed"))

        assert result.payout_id == "PAYOUT_claim-1_fixed"
        assert json.loads(seen[0].read())["transferId"] == "PAYOUT_claim-1_fixed"

    @pytest.mark.parametrize("final_status", ["FAILED", "REJECTED", "ERROR", "REVERSED", "reversed"])
    def test_status_lookup_unsuccessful_transfer(self, final_status):
        client, _ = _live(lambda r: httpx.Response(200, json={"data": {"status": final_status}}))
        status = client.check_status("PAYOUT_1")

        assert not status.success
        assert status.status == "FAILED"
        assert status.error_kind == "GATEWAY_REJECTED"

    @pytest.mark.parametrize("body", [["SUCCESS"], {"data": "SUCCESS"}])
    def test_status_lookup_unexpected_body(self, body):
        client, _ = _live(lambda r: httpx.Response(200, json=body))
        status = client.check_status("PAYOUT_1")

        assert not status.success
        assert status.status == "UNKNOWN"

    def test_status_lookup_failure(self):
        client, _ = _live(lambda r: httpx.Response(502))
        status = client.check_status("PAYOUT_1")

        assert not status.success
        assert status.status == "UNKNOWN"
