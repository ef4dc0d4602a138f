"""
Health record registry clients.

Record ids are the ABDM literal prefix followed by exactly nine digits. Malformed ids
are rejected locally, without a network call. Lookups never raise: every outcome is a
RecordsFetchResult whose error_kind keeps "no such patient" apart from "registry down".
"""

import re
from typing import Any, Dict, Optional

import httpx

from swiftclaim.config import Settings
from swiftclaim.state.claim_state import RecordBundle
from swiftclaim.state.results import RecordsErrorKind, RecordsFetchResult
from swiftclaim.utils.logger import logger

RECORD_ID_PREFIX = "ABDM"
RECORD_ID_RE = re.compile(rf"^{RECORD_ID_PREFIX}\d{{9}}$")

# Record id pattern per policy type. Every type currently files against the health registry.
RECORD_ID_PATTERNS = {
    "health": RECORD_ID_RE,
}


def record_pattern_for(policy_type: str) -> re.Pattern:
    return RECORD_ID_PATTERNS.get((policy_type or "").lower(), RECORD_ID_RE)


def is_valid_record_id(record_id: str, policy_type: str = "health") -> bool:
    return bool(record_id) and bool(record_pattern_for(policy_type).match(record_id))


class RecordsClient:
    """Base client: validates the id, then delegates to `_lookup`."""

    def fetch(self, record_id: str) -> RecordsFetchResult:
        if not isinstance(record_id, str) or not RECORD_ID_RE.match(record_id):
            logger.warning(f"[Records] Rejected malformed record id {record_id!r}")
            return RecordsFetchResult.failure(
                str(record_id),
                RecordsErrorKind.INVALID_ID,
                f"Expected {RECORD_ID_PREFIX} followed by 9 digits",
            )
        return self._lookup(record_id)

    def _lookup(self, record_id: str) -> RecordsFetchResult:
        raise NotImplementedError


# ============================================================
# Sandbox registry
# ============================================================

SAMPLE_RECORDS: Dict[str, Dict[str, Any]] = {
    "ABDM123456789": {
        "patient_id": "ABDM123456789",
        "full_name": "Rajesh Kumar",
        "date_of_birth": "1985-03-15",
        "gender": "Male",
        "medical_records": [
            {
                "record_id": "MR001",
                "hospital_name": "Apollo Hospital, Delhi",
                "admission_date": "2024-01-15",
                "discharge_date": "2024-01-20",
                "diagnosis": "Acute Myocardial Infarction",
                "icd10_code": "I21.9",
                "treatment": "Angioplasty with Stent Placement",
                "total_amount": 450000,
            },
            {
                "record_id": "MR002",
                "hospital_name": "Fortis Hospital, Mumbai",
                "admission_date": "2023-08-10",
                "discharge_date": "2023-08-15",
                "diagnosis": "Type 2 Diabetes with Complications",
                "icd10_code": "E11.9",
                "treatment": "Insulin Therapy and Dietary Management",
                "total_amount": 25000,
            },
        ],
        "current_medications": ["Metformin 500mg", "Aspirin 75mg", "Atorvastatin 20mg"],
        "allergies": ["Penicillin", "Shellfish"],
    },
    "ABDM987654321": {
        "patient_id": "ABDM987654321",
        "full_name": "Priya Sharma",
        "date_of_birth": "1990-07-22",
        "gender": "Female",
        "medical_records": [
            {
                "record_id": "MR003",
                "hospital_name": "Manipal Hospital, Bangalore",
                "admission_date": "2024-02-10",
                "discharge_date": "2024-02-15",
                "diagnosis": "Appendicitis with Peritonitis",
                "icd10_code": "K35.9",
                "treatment": "Laparoscopic Appendectomy",
                "total_amount": 180000,
            },
        ],
        "current_medications": ["Paracetamol 500mg"],
        "allergies": ["Latex"],
    },
}


class SandboxRecordsClient(RecordsClient):
    """In-process registry used when no live registry URL is configured."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self._records = dict(SAMPLE_RECORDS if records is None else records)

    def _lookup(self, record_id: str) -> RecordsFetchResult:
        data = self._records.get(record_id)
        if data is None:
            logger.info(f"[Records] {record_id} not found in sandbox registry")
            return RecordsFetchResult.failure(
                record_id, RecordsErrorKind.NOT_FOUND, "Patient not found in ABDM system"
            )
        return RecordsFetchResult.of(record_id, RecordBundle.model_validate(data))


# ============================================================
# Live registry
# ============================================================

class HttpRecordsClient(RecordsClient):

    def __init__(self, base_url: str, timeout: float = 10.0, http_client: Optional[httpx.Client] = None):
        self.base_url = base_url
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def _lookup(self, record_id: str) -> RecordsFetchResult:
        try:
            response = self._http.get(f"/patients/{record_id}/records")
        except httpx.HTTPError as e:
            logger.warning(f"[Records] Registry unreachable for {record_id}: {type(e).__name__}: {e}")
            return RecordsFetchResult.failure(record_id, RecordsErrorKind.UNAVAILABLE, str(e) or type(e).__name__)

        if response.status_code == 404:
            logger.info(f"[Records] {record_id} not found in registry")
            return RecordsFetchResult.failure(record_id, RecordsErrorKind.NOT_FOUND, "Patient not found")

        if response.status_code >= 400:
            logger.warning(f"[Records] Registry answered {response.status_code} for {record_id}")
            return RecordsFetchResult.failure(
                record_id, RecordsErrorKind.UNAVAILABLE, f"Registry error {response.status_code}"
            )

        try:
            payload = response.json()
            data = payload.get("data", payload)
            data.setdefault("patient_id", record_id)
            bundle = RecordBundle.model_validate(data)
        except Exception as e:
            logger.warning(f"[Records] Unreadable registry payload for {record_id}: {type(e).__name__}: {e}")
            return RecordsFetchResult.failure(record_id, RecordsErrorKind.UNAVAILABLE, "Malformed registry response")

        return RecordsFetchResult.of(record_id, bundle)


def build_records_client(settings: Settings) -> RecordsClient:
    if settings.records_base_url:
        logger.info(f"[Records] Using live registry at {settings.records_base_url}")
        return HttpRecordsClient(settings.records_base_url, timeout=settings.records_timeout_seconds)
    logger.info("[Records] RECORDS_BASE_URL not set. Using sandbox registry.")
    return SandboxRecordsClient()
