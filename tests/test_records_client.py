import httpx
import pytest

from swiftclaim.config import Settings
from swiftclaim.services.records_client import (
    HttpRecordsClient,
    SandboxRecordsClient,
    build_records_client,
    is_valid_record_id,
)
from swiftclaim.state.results import RecordsErrorKind


def _http_client(handler):
    calls = []

    def recording(request):
        calls.append(request)
        return handler(request)

    http = httpx.Client(base_url="https://registry.test", transport=httpx.MockTransport(recording))
    return HttpRecordsClient("https://registry.test", http_client=http), calls


class TestRecordIdFormat:

    @pytest.mark.parametrize("record_id,expected", [
        ("ABDM123456789", True),
        ("ABDM000000000", True),
        ("ABDM12345678", False),
        ("ABDM1234567890", False),
        ("ABDM12345678X", False),
        ("abdm123456789", False),
        (" ABDM123456789", False),
        ("", False),
    ])
    def test_pattern(self, record_id, expected):
        assert is_valid_record_id(record_id) is expected


class TestSandboxRegistry:

    def test_known_patient(self):
        result = SandboxRecordsClient().fetch("ABDM987654321")

        assert result.found
        assert result.error_kind is None
        assert result.bundle.full_name == "Priya Sharma"
        assert result.bundle.medical_records[0]["diagnosis"] == "Appendicitis with Peritonitis"

    def test_unknown_patient(self):
        result = SandboxRecordsClient().fetch("ABDM000000001")

        assert not result.found
        assert result.bundle is None
        assert result.error_kind == RecordsErrorKind.NOT_FOUND

    def test_malformed_id(self):
        result = SandboxRecordsClient().fetch("ABDM1")
        assert result.error_kind == RecordsErrorKind.INVALID_ID

    def test_custom_records(self):
        client = SandboxRecordsClient({"ABDM111111111": {"patient_id": "ABDM111111111", "full_name": "Test"}})
        assert client.fetch("ABDM111111111").found
        assert not client.fetch("ABDM123456789").found


class TestHttpRegistry:

    def test_found(self):
        client, calls = _http_client(lambda r: httpx.Response(200, json={
            "data": {"full_name": "Rajesh Kumar", "medical_records": [{"diagnosis": "I21.9"}], "insurer_note": "x"},
        }))

        result = client.fetch("ABDM123456789")

        assert result.found
        assert result.bundle.patient_id == "ABDM123456789"
        assert result.bundle.full_name == "Rajesh Kumar"
        assert calls[0].url.path == "/patients/ABDM123456789/records"

    def test_unwrapped_payload(self):
        client, _ = _http_client(lambda r: httpx.Response(200, json={"patient_id": "ABDM123456789", "allergies": ["Latex"]}))
        assert client.fetch("ABDM123456789").bundle.allergies == ["Latex"]

    def test_not_found(self):
        client, _ = _http_client(lambda r: httpx.Response(404, json={"message": "no such patient"}))
        assert client.fetch("ABDM123456789").error_kind == RecordsErrorKind.NOT_FOUND

    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    def test_server_errors_are_unavailable(self, status):
        client, _ = _http_client(lambda r: httpx.Response(status))
        assert client.fetch("ABDM123456789").error_kind == RecordsErrorKind.UNAVAILABLE

    def test_timeout_is_unavailable(self):
        def hang(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = _http_client(hang)
        result = client.fetch("ABDM123456789")

        assert not result.found
        assert result.error_kind == RecordsErrorKind.UNAVAILABLE

    def test_malformed_payload_is_unavailable(self):
        client, _ = _http_client(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
        assert client.fetch("ABDM123456789").error_kind == RecordsErrorKind.UNAVAILABLE

    def test_malformed_id_never_calls_out(self):
        client, calls = _http_client(lambda r: httpx.Response(200, json={}))

        result = client.fetch("ABDM-123")

        assert result.error_kind == RecordsErrorKind.INVALID_ID
        assert calls == []


class TestBuild:

    def test_sandbox_without_url(self):
        assert isinstance(build_records_client(Settings()), SandboxRecordsClient)

    def test_http_with_url(self):
        client = build_records_client(Settings(records_base_url="https://registry.test"))
        assert isinstance(client, HttpRecordsClient)
