import json
from typing import Any, Dict, List, Optional

from swiftclaim.state.claim_state import Claim, DocumentRecord, Policy, RiskVerdict


def build_policy_from_db(row: Dict[str, Any]) -> Policy:
    return Policy(**row)


def build_claim_from_db(claim: Dict[str, Any], docs: Optional[List[Dict[str, Any]]] = None) -> Claim:
    """
    Rebuild a Claim from its DB row.
    The stored verdict JSON is revalidated so readers always see a typed RiskVerdict.
    """
    verdict = None
    raw_verdict = claim.get("risk_verdict_json")
    if raw_verdict:
        verdict = RiskVerdict.model_validate(json.loads(raw_verdict))

    return Claim(
        claim_id=claim["claim_id"],
        policy_id=claim["policy_id"],
        claimant_id=claim["claimant_id"],
        provider_id=claim["provider_id"],
        amount=claim["amount"],
        description=claim.get("description") or "",
        incident_date=claim["incident_date"],
        external_record_id=claim.get("external_record_id") or "",

        documents=[
            DocumentRecord(
                filename=d.get("filename") or "",
                content_type=d.get("content_type") or "application/octet-stream",
                size_bytes=d.get("size_bytes") or 0,
                doc_type=d.get("doc_type"),
                label=d.get("label"),
            ) for d in (docs or [])
        ],
        beneficiary_name=claim.get("beneficiary_name"),
        bank_account=claim.get("bank_account"),
        routing_code=claim.get("routing_code"),

        status=claim["status"],
        records_error=claim.get("records_error"),

        risk_verdict=verdict,
        fraud_score=claim.get("fraud_score"),
        risk_level=claim.get("risk_level"),
        ai_confidence=claim.get("ai_confidence"),

        provider_comments=claim.get("provider_comments"),
        approved_by=claim.get("approved_by"),
        approved_at=claim.get("approved_at"),
        rejected_by=claim.get("rejected_by"),
        rejected_at=claim.get("rejected_at"),

        payout_status=claim.get("payout_status"),
        payout_id=claim.get("payout_id"),
        payout_amount=claim.get("payout_amount"),
        payout_error=claim.get("payout_error"),

        created_at=claim.get("created_at"),
        updated_at=claim.get("updated_at"),
    )
