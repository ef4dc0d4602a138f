"""
Claim Workflow
==============

Owns the claim status state machine. It is the only writer of claims.status:

    SUBMITTED ─┬─> ANALYSIS_PENDING ─┬─> RECORDS_FETCH_FAILED ─┬─> (retry) ANALYSIS_PENDING
               │                     │                         └─> APPROVED | REJECTED (manual)
               │                     ├─> AUTO_REJECTED
               │                     └─> PENDING_PROVIDER_REVIEW ─> APPROVED | REJECTED
    APPROVED tracks payout_status: INITIATED ─> SETTLED | FAILED (FAILED ─> INITIATED on manual retry)

Every status write is a conditional update keyed on the expected prior status, so two
concurrent requests on one claim cannot both succeed. Decisions are committed before any
payout call. Records, AI, payout and ledger outages are absorbed here and never raised.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from swiftclaim.db.sqlite_store import ClaimStore, utc_now
from swiftclaim.errors import (
    AlreadyProcessed,
    ClaimNotFound,
    DuplicateClaim,
    InvalidAction,
    InvalidAmount,
    InvalidBankDetails,
    InvalidClaimState,
    InvalidRecordReference,
    NotAuthorized,
    PolicyInactive,
    PolicyNotFound,
    WorkflowFailure,
)
from swiftclaim.graph.analysis_graph import as_analysis_state, build_analysis_graph
from swiftclaim.services import ledger_client as ledger_events
from swiftclaim.services import notifier as categories
from swiftclaim.services.ledger_client import LedgerClient
from swiftclaim.services.notifier import Notifier
from swiftclaim.services.payout_client import PayoutClient, new_payout_id, validate_bank_account
from swiftclaim.services.records_client import RecordsClient, is_valid_record_id
from swiftclaim.services.risk_client import RiskAnalysisClient
from swiftclaim.state.analysis_state import AnalysisState
from swiftclaim.state.claim_state import (
    TERMINAL_CLAIM_STATUSES,
    AnalysisOutcome,
    BankDetails,
    Claim,
    ClaimPayoutStatus,
    ClaimStatus,
    DocumentRecord,
    PayoutRecord,
    Policy,
    PolicyStatus,
)
from swiftclaim.state.results import LedgerEvent, PayoutRequest, PayoutResult
from swiftclaim.utils.documents import classify_document
from swiftclaim.utils.logger import logger
from swiftclaim.utils.state_builder import build_claim_from_db, build_policy_from_db

ANALYZABLE_STATUSES = (ClaimStatus.SUBMITTED, ClaimStatus.RECORDS_FETCH_FAILED)
DECIDABLE_STATUSES = (ClaimStatus.PENDING_PROVIDER_REVIEW, ClaimStatus.RECORDS_FETCH_FAILED)
# NULL means approved but no attempt was recorded
RETRYABLE_PAYOUT_STATUSES = (ClaimPayoutStatus.FAILED, None)

APPROVE = "approve"
REJECT = "reject"


def _values(statuses: Iterable[ClaimStatus]) -> tuple:
    return tuple(s.value for s in statuses)


def _payout_values(statuses: Iterable[Optional[ClaimPayoutStatus]]) -> tuple:
    return tuple(s.value if s is not None else None for s in statuses)


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class ClaimWorkflow:

    def __init__(
        self,
        store: ClaimStore,
        records_client: RecordsClient,
        risk_client: RiskAnalysisClient,
        payout_client: PayoutClient,
        ledger_client: LedgerClient,
        notifier: Notifier,
    ):
        self.store = store
        self.records_client = records_client
        self.risk_client = risk_client
        self.payout_client = payout_client
        self.ledger_client = ledger_client
        self.notifier = notifier
        self._analysis_graph = build_analysis_graph(records_client, risk_client)

    # ============================================================
    # Reads
    # ============================================================

    def get_claim(self, claim_id: str) -> Claim:
        row, docs = self.store.fetch_claim_and_docs(claim_id)
        if not row:
            raise ClaimNotFound(f"Claim {claim_id} not found", {"claim_id": claim_id})
        return build_claim_from_db(row, docs)

    def list_claims(self, claimant_id: Optional[str] = None, provider_id: Optional[str] = None) -> List[Claim]:
        return [self.get_claim(cid) for cid in self.store.list_claims(claimant_id, provider_id)]

    def list_payouts(self, claim_id: str) -> List[PayoutRecord]:
        self.get_claim(claim_id)
        return [PayoutRecord(**row) for row in self.store.list_payouts(claim_id)]

    def notifications(self, user_id: str) -> List[Dict[str, Any]]:
        return self.store.list_notifications(user_id)

    def _policy(self, policy_id: str) -> Optional[Policy]:
        row = self.store.fetch_policy(policy_id)
        return build_policy_from_db(row) if row else None

    # ============================================================
    # Best-effort side effects
    # ============================================================

    def _notarize(self, event_type: str, subject_id: str, **payload):
        try:
            receipt = self.ledger_client.record(
                LedgerEvent(event_type=event_type, subject_id=subject_id, payload=payload)
            )
        except Exception as e:
            logger.warning(f"[Workflow] Ledger call for {event_type} on {subject_id} failed: {type(e).__name__}: {e}")
            return None
        if receipt.mocked:
            logger.debug(f"[Workflow] {event_type} on {subject_id} has a mock ledger receipt {receipt.receipt_id}")
        return receipt

    def _state_error(self, claim_id: str, operation: str):
        """Error for a claim that is not (or no longer) in a status `operation` accepts."""
        claim = self.get_claim(claim_id)
        if claim.status in TERMINAL_CLAIM_STATUSES:
            return AlreadyProcessed(
                f"Claim {claim_id} was already processed ({claim.status.value})",
                {"claim_id": claim_id, "status": claim.status.value},
            )
        return InvalidClaimState(
            f"Cannot {operation} claim {claim_id} in status {claim.status.value}",
            {"claim_id": claim_id, "status": claim.status.value},
        )

    # ============================================================
    # Submit
    # ============================================================

    def submit(
        self,
        policy_id: str,
        claimant_id: str,
        amount: float,
        incident_date: Union[date, str],
        description: str,
        external_record_id: str,
        documents: Optional[List[Union[DocumentRecord, Dict[str, Any]]]] = None,
        bank_details: Optional[Union[BankDetails, Dict[str, Any]]] = None,
    ) -> Claim:
        incident_date = _as_date(incident_date)

        # 1. Policy
        policy = self._policy(policy_id)
        if policy is None or policy.holder_id != claimant_id:
            raise PolicyNotFound(
                f"No policy {policy_id} held by {claimant_id}",
                {"policy_id": policy_id, "claimant_id": claimant_id},
            )
        if policy.status != PolicyStatus.ACTIVE:
            raise PolicyInactive(
                f"Policy {policy_id} is {policy.status.value}",
                {"policy_id": policy_id, "status": policy.status.value},
            )
        if not policy.covers(incident_date):
            raise PolicyInactive(
                f"Incident date {incident_date.isoformat()} is outside the policy validity window",
                {
                    "policy_id": policy_id,
                    "incident_date": incident_date.isoformat(),
                    "start_date": policy.start_date.isoformat(),
                    "end_date": policy.end_date.isoformat(),
                },
            )

        # 2. One open claim per policy
        existing = self.store.find_open_claim(policy_id)
        if existing:
            raise DuplicateClaim(policy_id, existing)

        # 3. Amount
        if not (0 < amount <= policy.coverage_amount):
            raise InvalidAmount(
                f"Claim amount must be greater than 0 and at most ₹{policy.coverage_amount:,.2f}",
                {"amount": amount, "coverage_amount": policy.coverage_amount},
            )

        # 4. Record reference
        if not is_valid_record_id(external_record_id, policy.policy_type):
            raise InvalidRecordReference(
                f"Invalid health record id {external_record_id!r}: expected ABDM followed by 9 digits",
                {"external_record_id": external_record_id, "policy_type": policy.policy_type},
            )

        # 5. Bank details (optional at submission)
        bank = None
        if bank_details is not None:
            bank = self._validated_bank_details(bank_details)

        docs = []
        for d in documents or []:
            doc = d if isinstance(d, DocumentRecord) else DocumentRecord(**d)
            if not doc.doc_type:
                doc = doc.model_copy(update={
                    "doc_type": classify_document(doc.filename, doc.content_type, doc.label or "")
                })
            docs.append(doc.model_dump())

        claim_id = str(uuid.uuid4())
        now = utc_now()
        row = {
            "claim_id": claim_id,
            "policy_id": policy.policy_id,
            "claimant_id": claimant_id,
            "provider_id": policy.provider_id,
            "amount": float(amount),
            "description": description,
            "incident_date": incident_date.isoformat(),
            "external_record_id": external_record_id,
            "beneficiary_name": bank.beneficiary_name if bank else None,
            "bank_account": bank.bank_account if bank else None,
            "routing_code": bank.routing_code if bank else None,
            "status": ClaimStatus.SUBMITTED.value,
            "created_at": now,
            "updated_at": now,
        }

        # Re-checks the open claim under BEGIN IMMEDIATE and may raise DuplicateClaim
        self.store.create_claim(row, docs)
        logger.info(f"[Workflow] Claim {claim_id} submitted against {policy_id} for ₹{amount:,.2f}")

        self.notifier.notify(
            policy.provider_id,
            "New claim submitted",
            f"Claim {claim_id} for ₹{amount:,.2f} was submitted against policy {policy_id}.",
            categories.NEW_CLAIM,
            claim_id,
        )
        self._notarize(
            ledger_events.CLAIM_SUBMITTED, claim_id,
            policy_id=policy_id, amount=float(amount), claimant_id=claimant_id,
        )

        return self.get_claim(claim_id)

    @staticmethod
    def _validated_bank_details(bank_details: Union[BankDetails, Dict[str, Any]]) -> BankDetails:
        try:
            bank = bank_details if isinstance(bank_details, BankDetails) else BankDetails(**bank_details)
        except (TypeError, ValueError) as e:
            raise InvalidBankDetails("Incomplete bank details", {"reason": str(e)}) from e

        reason = validate_bank_account(bank.bank_account, bank.routing_code)
        if reason is None and not bank.beneficiary_name.strip():
            reason = "Beneficiary name is required"
        if reason:
            raise InvalidBankDetails(reason, {"routing_code": bank.routing_code})
        return bank

    # ============================================================
    # Analysis
    # ============================================================

    def run_analysis(self, claim_id: str) -> AnalysisOutcome:
        claim = self.get_claim(claim_id)
        prior = claim.status

        if prior not in ANALYZABLE_STATUSES:
            raise self._state_error(claim_id, "analyze")

        if not self.store.transition_claim(claim_id, (prior.value,), ClaimStatus.ANALYSIS_PENDING.value):
            raise self._state_error(claim_id, "analyze")

        logger.info(f"[Workflow] Claim {claim_id}: {prior.value} → ANALYSIS_PENDING")

        try:
            policy = self._policy(claim.policy_id)
            if policy is None:
                raise RuntimeError(f"policy {claim.policy_id} disappeared")

            final = as_analysis_state(
                self._analysis_graph.invoke(AnalysisState(claim=claim, policy=policy))
            )
            self._persist_analysis(claim_id, final)
        except Exception as e:
            self.store.transition_claim(claim_id, (ClaimStatus.ANALYSIS_PENDING.value,), prior.value)
            logger.error(f"[Workflow] Analysis of claim {claim_id} failed, reverted to {prior.value}: {type(e).__name__}: {e}")
            raise WorkflowFailure(
                f"Analysis of claim {claim_id} failed unexpectedly",
                {"claim_id": claim_id, "error": type(e).__name__},
            ) from e

        updated = self.get_claim(claim_id)
        self._after_analysis(updated)

        return AnalysisOutcome(claim=updated, verdict=updated.risk_verdict, records_error=updated.records_error)

    def _persist_analysis(self, claim_id: str, final: AnalysisState):
        pending = (ClaimStatus.ANALYSIS_PENDING.value,)

        if final.next_status == ClaimStatus.RECORDS_FETCH_FAILED:
            ok = self.store.transition_claim(
                claim_id, pending, ClaimStatus.RECORDS_FETCH_FAILED.value,
                records_error=final.records_error or "UNAVAILABLE",
            )
        else:
            verdict = final.verdict
            if verdict is None or final.next_status is None:
                raise RuntimeError("analysis finished without a verdict")
            ok = self.store.transition_claim(
                claim_id, pending, final.next_status.value,
                risk_verdict_json=verdict.model_dump_json(by_alias=True),
                fraud_score=verdict.fraud_score,
                risk_level=verdict.risk_level.value,
                ai_confidence=verdict.confidence,
                records_error=None,
            )

        if not ok:
            raise RuntimeError(f"claim {claim_id} left ANALYSIS_PENDING during analysis")

        logger.info(f"[Workflow] Claim {claim_id}: ANALYSIS_PENDING → {final.next_status.value}")

    def _after_analysis(self, claim: Claim):
        if claim.status == ClaimStatus.RECORDS_FETCH_FAILED:
            self.notifier.notify(
                claim.provider_id,
                "Medical records unavailable",
                f"Health records for claim {claim.claim_id} could not be fetched "
                f"({claim.records_error}). Manual review required.",
                categories.RECORDS_UNAVAILABLE,
                claim.claim_id,
            )
            return

        verdict = claim.risk_verdict
        if claim.status == ClaimStatus.AUTO_REJECTED:
            reason = verdict.summary or "The claim did not pass automated validity checks."
            self.notifier.notify(
                claim.claimant_id,
                "Claim rejected",
                f"Your claim {claim.claim_id} was rejected after automated review. {reason}",
                categories.CLAIM_AUTO_REJECTED,
                claim.claim_id,
            )
            self._notarize(
                ledger_events.CLAIM_AUTO_REJECTED, claim.claim_id,
                fraud_score=verdict.fraud_score, risk_level=verdict.risk_level.value,
            )
            return

        self.notifier.notify(
            claim.provider_id,
            "Claim ready for review",
            f"Claim {claim.claim_id} is ready for review. Risk level: {verdict.risk_level.value}, "
            f"fraud score: {verdict.fraud_score}/100.",
            categories.CLAIM_READY_FOR_REVIEW,
            claim.claim_id,
        )
        self._notarize(
            ledger_events.CLAIM_VERIFIED, claim.claim_id,
            fraud_score=verdict.fraud_score, risk_level=verdict.risk_level.value,
            source=verdict.source.value,
        )

    # ============================================================
    # Provider decision
    # ============================================================

    def decide(self, claim_id: str, decider_id: str, action: str, comments: str = "") -> Claim:
        claim = self.get_claim(claim_id)

        action = (action or "").strip().lower()
        if action not in (APPROVE, REJECT):
            raise InvalidAction(
                f"Unknown action {action!r}: expected 'approve' or 'reject'",
                {"action": action},
            )

        if decider_id != claim.provider_id:
            raise NotAuthorized(
                f"{decider_id} is not the provider for claim {claim_id}",
                {"claim_id": claim_id, "decider_id": decider_id},
            )

        if claim.status not in DECIDABLE_STATUSES:
            raise self._state_error(claim_id, action)

        if action == REJECT:
            return self._reject(claim, decider_id, comments)
        return self._approve(claim, decider_id, comments)

    def _reject(self, claim: Claim, decider_id: str, comments: str) -> Claim:
        won = self.store.transition_claim(
            claim.claim_id,
            _values(DECIDABLE_STATUSES),
            ClaimStatus.REJECTED.value,
            provider_comments=comments,
            rejected_by=decider_id,
            rejected_at=utc_now(),
        )
        if not won:
            raise self._state_error(claim.claim_id, REJECT)

        logger.info(f"[Workflow] Claim {claim.claim_id} rejected by {decider_id}")

        self.notifier.notify(
            claim.claimant_id,
            "Claim rejected",
            f"Your claim {claim.claim_id} was rejected by the provider."
            + (f" Comments: {comments}" if comments else ""),
            categories.CLAIM_REJECTED,
            claim.claim_id,
        )
        self._notarize(ledger_events.CLAIM_REJECTED, claim.claim_id, decided_by=decider_id)

        return self.get_claim(claim.claim_id)

    def _approve(self, claim: Claim, decider_id: str, comments: str) -> Claim:
        # Approval is durable before any money moves
        won = self.store.transition_claim(
            claim.claim_id,
            _values(DECIDABLE_STATUSES),
            ClaimStatus.APPROVED.value,
            provider_comments=comments,
            approved_by=decider_id,
            approved_at=utc_now(),
            payout_amount=claim.amount,
        )
        if not won:
            raise self._state_error(claim.claim_id, APPROVE)

        logger.info(f"[Workflow] Claim {claim.claim_id} approved by {decider_id} for ₹{claim.amount:,.2f}")

        self.notifier.notify(
            claim.claimant_id,
            "Claim approved",
            f"Your claim {claim.claim_id} was approved for ₹{claim.amount:,.2f}. Payout is being processed.",
            categories.CLAIM_APPROVED,
            claim.claim_id,
        )
        self._notarize(
            ledger_events.CLAIM_APPROVED, claim.claim_id,
            decided_by=decider_id, amount=claim.amount,
        )

        try:
            self._disburse(self.get_claim(claim.claim_id), expected=(None,))
        except Exception as e:
            # The approval stands; payout_status says whether to retry (NULL) or refresh (INITIATED)
            logger.error(
                f"[Workflow] Payout bookkeeping for approved claim {claim.claim_id} failed: {type(e).__name__}: {e}"
            )
        return self.get_claim(claim.claim_id)

    # ============================================================
    # Payout
    # ============================================================

    def _disburse(self, claim: Claim, expected: tuple, **claim_fields) -> bool:
        """
        One payout attempt. Claims the payout slot (payout_status `expected` -> INITIATED)
        and appends the attempt before any money moves, then calls the gateway and
        records FAILED or waits for confirmation. Returns False if the slot was taken.
        The claim stays APPROVED whatever happens here.
        """
        target = claim.model_copy(update=claim_fields)
        payout_id = new_payout_id(claim.claim_id)
        request = PayoutRequest(
            claim_id=claim.claim_id,
            payout_id=payout_id,
            amount=claim.payout_amount or claim.amount,
            beneficiary_name=target.beneficiary_name,
            bank_account=target.bank_account,
            routing_code=target.routing_code,
        )

        started = self.store.begin_payout(
            expected,
            PayoutRecord(
                payout_id=payout_id,
                claim_id=claim.claim_id,
                amount=request.amount,
                bank_account=request.bank_account,
                routing_code=request.routing_code,
                status="INITIATED",
            ),
            **claim_fields,
        )
        if not started:
            logger.info(f"[Workflow] Payout for claim {claim.claim_id} is already in progress")
            return False

        try:
            result = self.payout_client.initiate(request)
        except Exception as e:
            logger.error(f"[Workflow] Payout client raised for claim {claim.claim_id}: {type(e).__name__}: {e}")
            result = PayoutResult(success=False, payout_id=payout_id, error_kind="GATEWAY_ERROR", message=str(e))

        if not result.success:
            error_kind = result.error_kind or "GATEWAY_ERROR"
            self.store.update_payout_status(payout_id, "FAILED", error_kind=error_kind)
            if self.store.transition_payout(
                claim.claim_id, (ClaimPayoutStatus.INITIATED.value,), ClaimPayoutStatus.FAILED.value,
                payout_error=error_kind,
            ):
                self._payout_failed(claim, error_kind, result.message)
            return True

        self.store.update_payout_status(payout_id, "INITIATED", result.utr or result.transfer_id)
        logger.info(f"[Workflow] Payout {payout_id} initiated for claim {claim.claim_id}")

        self._confirm_payout(claim, result.transfer_id or payout_id, payout_id)
        return True

    def _confirm_payout(self, claim: Claim, transfer_id: str, payout_id: str):
        try:
            status = self.payout_client.check_status(transfer_id)
        except Exception as e:
            logger.warning(f"[Workflow] Payout status check for {payout_id} failed: {type(e).__name__}: {e}")
            return

        if status.status == "SUCCESS":
            if self.store.transition_payout(
                claim.claim_id, (ClaimPayoutStatus.INITIATED.value,), ClaimPayoutStatus.SETTLED.value
            ):
                self.store.update_payout_status(payout_id, "SUCCESS", status.utr)
                logger.info(f"[Workflow] Payout {payout_id} settled for claim {claim.claim_id}")
                self.notifier.notify(
                    claim.claimant_id,
                    "Payout settled",
                    f"₹{(claim.payout_amount or claim.amount):,.2f} for claim {claim.claim_id} "
                    f"was transferred to your account.",
                    categories.PAYOUT_SETTLED,
                    claim.claim_id,
                )
                self._notarize(
                    ledger_events.CLAIM_PAID, claim.claim_id,
                    payout_id=payout_id, amount=claim.payout_amount or claim.amount,
                )
        elif status.status == "FAILED":
            if self.store.transition_payout(
                claim.claim_id, (ClaimPayoutStatus.INITIATED.value,), ClaimPayoutStatus.FAILED.value,
                payout_error=status.error_kind or "GATEWAY_REJECTED",
            ):
                self.store.update_payout_status(payout_id, "FAILED", error_kind=status.error_kind or "GATEWAY_REJECTED")
                self._payout_failed(claim, status.error_kind or "GATEWAY_REJECTED", status.message)
        else:
            self.store.update_payout_status(payout_id, "PENDING")

    def _payout_failed(self, claim: Claim, error_kind: str, message: Optional[str]):
        logger.warning(f"[Workflow] Payout failed for claim {claim.claim_id}: {error_kind} {message or ''}".rstrip())
        self.notifier.notify(
            claim.claimant_id,
            "Payout failed",
            f"Your claim {claim.claim_id} is approved, but the transfer failed ({error_kind}). "
            f"Our team will retry the payout.",
            categories.PAYOUT_FAILED,
            claim.claim_id,
        )
        self.notifier.notify(
            claim.provider_id,
            "Payout failed",
            f"Payout for approved claim {claim.claim_id} failed ({error_kind}). Manual retry required.",
            categories.PAYOUT_FAILED,
            claim.claim_id,
        )

    def retry_payout(
        self,
        claim_id: str,
        requester_id: str,
        bank_details: Optional[Union[BankDetails, Dict[str, Any]]] = None,
    ) -> Claim:
        claim = self.get_claim(claim_id)

        if requester_id != claim.provider_id:
            raise NotAuthorized(
                f"{requester_id} is not the provider for claim {claim_id}",
                {"claim_id": claim_id, "requester_id": requester_id},
            )

        if claim.status != ClaimStatus.APPROVED or claim.payout_status not in RETRYABLE_PAYOUT_STATUSES:
            raise InvalidClaimState(
                f"Payout for claim {claim_id} can only be retried when no transfer is in flight",
                {
                    "claim_id": claim_id,
                    "status": claim.status.value,
                    "payout_status": claim.payout_status.value if claim.payout_status else None,
                },
            )

        fields: Dict[str, Any] = {}
        if bank_details is not None:
            bank = self._validated_bank_details(bank_details)
            fields.update(
                beneficiary_name=bank.beneficiary_name,
                bank_account=bank.bank_account,
                routing_code=bank.routing_code,
            )

        logger.info(f"[Workflow] Retrying payout for claim {claim_id} on request of {requester_id}")
        if not self._disburse(claim, expected=_payout_values(RETRYABLE_PAYOUT_STATUSES), **fields):
            raise AlreadyProcessed(
                f"Payout for claim {claim_id} is already being retried",
                {"claim_id": claim_id},
            )
        return self.get_claim(claim_id)

    def refresh_payout(self, claim_id: str) -> Claim:
        claim = self.get_claim(claim_id)
        if claim.status != ClaimStatus.APPROVED or claim.payout_status != ClaimPayoutStatus.INITIATED:
            raise InvalidClaimState(
                f"Claim {claim_id} has no payout in flight",
                {
                    "claim_id": claim_id,
                    "status": claim.status.value,
                    "payout_status": claim.payout_status.value if claim.payout_status else None,
                },
            )

        self._confirm_payout(claim, claim.payout_id, claim.payout_id)
        return self.get_claim(claim_id)
