import json

import httpx

from swiftclaim.config import Settings
from swiftclaim.services.ledger_client import CLAIM_APPROVED, LedgerClient
from swiftclaim.state.results import LedgerEvent

EVENT = LedgerEvent(event_type=CLAIM_APPROVED, subject_id="claim-1", payload={"amount": 1000.0})


def _client(handler, contract="0xC0FFEE"):
    http = httpx.Client(base_url="https://ledger.test", transport=httpx.MockTransport(handler))
    return LedgerClient(contract_address=contract, http_client=http)


class TestDisabledLedger:

    def test_no_endpoint_means_disabled(self):
        client = LedgerClient.from_settings(Settings())
        assert not client.enabled

    def test_mock_receipt(self):
        receipt = LedgerClient().record(EVENT)

        assert receipt.mocked
        assert receipt.receipt_id.startswith("mock-tx-")


class TestEnabledLedger:

    def test_records_event(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.read()))
            return httpx.Response(200, json={"transactionHash": "0xabc"})

        receipt = _client(handler).record(EVENT)

        assert not receipt.mocked
        assert receipt.receipt_id == "0xabc"
        assert seen == [{
            "contract": "0xC0FFEE",
            "eventType": "CLAIM_APPROVED",
            "subjectId": "claim-1",
            "payload": {"amount": 1000.0},
        }]

    def test_unreachable_gives_mock_receipt(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        receipt = _client(refuse).record(EVENT)
        assert receipt.mocked

    def test_error_status_gives_mock_receipt(self):
        assert _client(lambda r: httpx.Response(500)).record(EVENT).mocked

    def test_missing_hash_gives_mock_receipt(self):
        assert _client(lambda r: httpx.Response(200, json={"ok": True})).record(EVENT).mocked
