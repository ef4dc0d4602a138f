"""
Risk Analysis Client
====================

Asks the generative-AI backend for a fraud verdict on a claim and always hands back a
complete RiskVerdict. Parsing runs in three tiers:

1. strict JSON (direct, fenced block, first balanced object) with fraudScore + riskLevel
2. regex extraction of the headline fields from free text
3. the fixed conservative fallback verdict

Backend outages, timeouts and garbage answers all land in tier 3, so a claim is never
blocked because the AI was unavailable.
"""

import json
import re
from typing import Any, Dict, List, Optional

from swiftclaim.services.llm_client import LLMBackend
from swiftclaim.state.claim_state import AnalysisContext, RiskLevel, RiskVerdict, VerdictSource
from swiftclaim.utils.logger import logger
from swiftclaim.utils.safe_json import extract_json_object
from swiftclaim.utils.timeouts import run_with_timeout

FALLBACK_VERDICT = RiskVerdict(
    fraud_score=15,
    risk_level=RiskLevel.LOW,
    is_valid_claim=True,
    confidence=85,
    analysis={
        "overall": "Automated fraud analysis was unavailable. Claim forwarded for manual provider review."
    },
    red_flags=[],
    recommendations=["Review medical records and documents manually before deciding"],
    required_actions=["Provider review"],
    summary="AI analysis unavailable; conservative default verdict applied.",
    source=VerdictSource.FALLBACK,
)

# Defaults for fields the free-text tier could not find.
TEXT_DEFAULTS = {
    "fraud_score": 25,
    "risk_level": RiskLevel.LOW,
    "is_valid_claim": True,
    "confidence": 75,
}

FRAUD_SCORE_RE = re.compile(r"fraud[\s_-]*score[\"'*\s:=]*(\d{1,3})", re.IGNORECASE)
RISK_LEVEL_RE = re.compile(r"risk[\s_-]*level[\"'*\s:=]*(LOW|MEDIUM|HIGH|CRITICAL)", re.IGNORECASE)
IS_VALID_RE = re.compile(r"is[\s_-]*valid[\s_-]*claim[\"'*\s:=]*(true|false|yes|no)", re.IGNORECASE)
CONFIDENCE_RE = re.compile(r"confidence[\"'*\s:=]*(\d{1,3})", re.IGNORECASE)

RATE_LIMIT_MARKERS = ("resource_exhausted", "rate limit", "quota exceeded")

PROMPT_TEMPLATE = """
You are an expert medical insurance fraud detection AI. Analyze this insurance claim for fraud and validity.

CLAIM DETAILS:
- Claim Amount: ₹{amount}
- Policy Type: {policy_type}
- Coverage Amount: ₹{coverage}
- Incident Date: {incident_date}
- Claim Description: {description}

MEDICAL RECORDS (ABDM):
{records}

USER UPLOADED DOCUMENTS:
{documents}

Respond ONLY with a JSON object in exactly this format:
{{
  "fraudScore": 0-100,
  "riskLevel": "LOW|MEDIUM|HIGH|CRITICAL",
  "isValidClaim": true/false,
  "confidence": 0-100,
  "analysis": {{
    "medicalConsistency": "...",
    "amountValidation": "...",
    "documentAuthenticity": "...",
    "timelineValidation": "...",
    "policyCompliance": "..."
  }},
  "redFlags": ["..."],
  "recommendations": ["..."],
  "requiredActions": ["..."],
  "summary": "..."
}}

Focus on:
1. Medical record consistency between ABDM records and the claim description
2. Claim amount reasonableness vs the treatment in the records
3. Timeline validation (incident date vs admission and discharge dates)
4. Document completeness
5. Policy coverage compliance
""".strip()


# ============================================================
# Sanitizers
# ============================================================

def _to_bool(v, default: bool = True) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"true", "yes", "y", "1"}:
            return True
        if s in {"false", "no", "n", "0"}:
            return False
    if isinstance(v, (int, float)):
        return bool(v)
    return default


def _clamp_score(v, default: int) -> int:
    try:
        score = int(round(float(v)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(0, min(100, score))


def _tier_for_score(score: int) -> RiskLevel:
    if score < 30:
        return RiskLevel.LOW
    if score < 60:
        return RiskLevel.MEDIUM
    if score < 80:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _risk_level(v, score: int) -> RiskLevel:
    try:
        return RiskLevel(str(v).strip().upper())
    except ValueError:
        return _tier_for_score(score)


def _str_list(v) -> List[str]:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [str(x) for x in v if x is not None and str(x).strip()]
    return [str(v)] if str(v).strip() else []


def _breakdown(v) -> Dict[str, str]:
    if isinstance(v, dict):
        return {str(k): str(val) for k, val in v.items() if val is not None}
    if isinstance(v, str) and v.strip():
        return {"overall": v.strip()}
    return {}


def verdict_from_payload(data: Dict[str, Any]) -> RiskVerdict:
    score = _clamp_score(data.get("fraudScore"), TEXT_DEFAULTS["fraud_score"])
    analysis = _breakdown(data.get("analysis"))
    summary = data.get("summary")
    if not summary:
        summary = analysis.get("overall", "")

    return RiskVerdict(
        fraud_score=score,
        risk_level=_risk_level(data.get("riskLevel"), score),
        is_valid_claim=_to_bool(data.get("isValidClaim"), default=True),
        confidence=_clamp_score(data.get("confidence"), TEXT_DEFAULTS["confidence"]),
        analysis=analysis,
        red_flags=_str_list(data.get("redFlags")),
        recommendations=_str_list(data.get("recommendations")),
        required_actions=_str_list(data.get("requiredActions")),
        summary=str(summary),
        source=VerdictSource.LLM,
    )


def verdict_from_text(text: str) -> Optional[RiskVerdict]:
    """Best-effort field extraction from a non-JSON answer. None if no headline field is present."""
    score_m = FRAUD_SCORE_RE.search(text)
    level_m = RISK_LEVEL_RE.search(text)
    valid_m = IS_VALID_RE.search(text)
    conf_m = CONFIDENCE_RE.search(text)

    if not any([score_m, level_m, valid_m]):
        return None

    score = _clamp_score(score_m.group(1), TEXT_DEFAULTS["fraud_score"]) if score_m else TEXT_DEFAULTS["fraud_score"]
    level = RiskLevel(level_m.group(1).upper()) if level_m else TEXT_DEFAULTS["risk_level"]
    is_valid = _to_bool(valid_m.group(1)) if valid_m else TEXT_DEFAULTS["is_valid_claim"]
    confidence = _clamp_score(conf_m.group(1), TEXT_DEFAULTS["confidence"]) if conf_m else TEXT_DEFAULTS["confidence"]

    snippet = text.strip()
    return RiskVerdict(
        fraud_score=score,
        risk_level=level,
        is_valid_claim=is_valid,
        confidence=confidence,
        analysis={"overall": snippet[:500]},
        red_flags=[],
        recommendations=["Review claim details"],
        required_actions=["Standard verification"],
        summary=snippet[:200] + ("..." if len(snippet) > 200 else ""),
        source=VerdictSource.TEXT,
    )


# ============================================================
# Client
# ============================================================

class RiskAnalysisClient:

    def __init__(self, backend: Optional[LLMBackend], timeout: float = 30.0):
        self._backend = backend
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self._backend is not None

    def build_prompt(self, context: AnalysisContext) -> str:
        records = context.records.model_dump(mode="json") if context.records else {}
        documents = [d.model_dump(mode="json") for d in context.documents]
        return PROMPT_TEMPLATE.format(
            amount=f"{context.claim_amount:,.2f}",
            policy_type=context.policy_type or "Health Insurance",
            coverage=f"{context.coverage_amount:,.2f}",
            incident_date=context.incident_date.isoformat(),
            description=context.description,
            records=json.dumps(records, indent=2, ensure_ascii=False),
            documents=json.dumps(documents, indent=2, ensure_ascii=False),
        )

    def parse(self, raw: Any) -> RiskVerdict:
        if not raw or not isinstance(raw, str):
            logger.warning(f"[RiskClient] Empty or non-string response ({type(raw).__name__}). Using fallback verdict.")
            return FALLBACK_VERDICT

        parsed = extract_json_object(raw)
        if parsed is not None and "fraudScore" in parsed and "riskLevel" in parsed:
            return verdict_from_payload(parsed)

        if parsed is None and any(x in raw.lower() for x in RATE_LIMIT_MARKERS):
            logger.warning("[RiskClient] AI backend reported a rate limit. Using fallback verdict.")
            return FALLBACK_VERDICT

        verdict = verdict_from_text(raw)
        if verdict is not None:
            logger.warning("[RiskClient] Response was not structured JSON, extracted fields from text.")
            return verdict

        logger.warning(f"[RiskClient] Unparseable response, using fallback verdict. Snippet: {raw[:300]!r}")
        return FALLBACK_VERDICT

    def analyze(self, context: AnalysisContext) -> RiskVerdict:
        if self._backend is None:
            logger.warning(f"[RiskClient] No AI backend configured. Fallback verdict for claim {context.claim_id}.")
            return FALLBACK_VERDICT

        prompt = self.build_prompt(context)

        try:
            raw = run_with_timeout(self._backend, self.timeout, prompt)
        except TimeoutError as e:
            logger.warning(f"[RiskClient] AI backend timed out for claim {context.claim_id}: {e}")
            return FALLBACK_VERDICT
        except Exception as e:
            logger.warning(f"[RiskClient] AI backend failed for claim {context.claim_id}: {type(e).__name__}: {e}")
            return FALLBACK_VERDICT

        try:
            verdict = self.parse(raw)
        except Exception as e:
            logger.warning(f"[RiskClient] Could not interpret answer for claim {context.claim_id}: {type(e).__name__}: {e}")
            return FALLBACK_VERDICT

        logger.info(
            f"[RiskClient] Claim {context.claim_id}: fraud_score={verdict.fraud_score} "
            f"risk={verdict.risk_level.value} valid={verdict.is_valid_claim} source={verdict.source.value}"
        )
        return verdict
