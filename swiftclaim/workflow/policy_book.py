import uuid
from datetime import date, datetime, timezone
from typing import Optional, Union

from swiftclaim.db.sqlite_store import ClaimStore
from swiftclaim.errors import InvalidPolicy, PolicyNotFound
from swiftclaim.services import ledger_client as ledger_events
from swiftclaim.services.ledger_client import LedgerClient
from swiftclaim.state.claim_state import Policy, PolicyStatus
from swiftclaim.state.results import LedgerEvent
from swiftclaim.utils.logger import logger
from swiftclaim.utils.state_builder import build_policy_from_db

# Once a policy lands here it never changes again.
FINAL_POLICY_STATUSES = (PolicyStatus.EXPIRED, PolicyStatus.CANCELLED)


def new_policy_id() -> str:
    year = datetime.now(timezone.utc).year
    return f"POL-{year}-{uuid.uuid4().hex[:8].upper()}"


class PolicyBook:
    """Registers policies and guards their status changes."""

    def __init__(self, store: ClaimStore, ledger_client: LedgerClient):
        self.store = store
        self.ledger_client = ledger_client

    def get(self, policy_id: str) -> Policy:
        row = self.store.fetch_policy(policy_id)
        if not row:
            raise PolicyNotFound(f"Policy {policy_id} not found", {"policy_id": policy_id})
        return build_policy_from_db(row)

    def register(
        self,
        holder_id: str,
        provider_id: str,
        coverage_amount: float,
        start_date: Union[date, str],
        end_date: Union[date, str],
        policy_type: str = "health",
        premium: float = 0.0,
        policy_id: Optional[str] = None,
    ) -> Policy:
        if not holder_id or not provider_id:
            raise InvalidPolicy("Holder and provider are required")
        if not coverage_amount or coverage_amount <= 0:
            raise InvalidPolicy("Coverage amount must be positive", {"coverage_amount": coverage_amount})
        if premium is None or premium < 0:
            raise InvalidPolicy("Premium cannot be negative", {"premium": premium})

        try:
            policy = Policy(
                policy_id=policy_id or new_policy_id(),
                holder_id=holder_id,
                provider_id=provider_id,
                policy_type=(policy_type or "health").lower(),
                coverage_amount=float(coverage_amount),
                premium=float(premium),
                start_date=start_date,
                end_date=end_date,
                status=PolicyStatus.ACTIVE,
            )
        except ValueError as e:
            raise InvalidPolicy("Invalid policy dates", {"reason": str(e)}) from e

        if policy.end_date < policy.start_date:
            raise InvalidPolicy(
                "Policy end date is before its start date",
                {"start_date": policy.start_date.isoformat(), "end_date": policy.end_date.isoformat()},
            )

        if self.store.fetch_policy(policy.policy_id):
            raise InvalidPolicy(f"Policy {policy.policy_id} already exists", {"policy_id": policy.policy_id})

        self.store.upsert_policy(policy)
        logger.info(f"[PolicyBook] Registered {policy.policy_id} for {holder_id} (cover ₹{policy.coverage_amount:,.2f})")

        self._notarize(
            ledger_events.POLICY_CREATED, policy.policy_id,
            holder_id=holder_id, provider_id=provider_id, coverage_amount=policy.coverage_amount,
        )
        return self.get(policy.policy_id)

    def change_status(self, policy_id: str, status: Union[PolicyStatus, str]) -> Policy:
        try:
            new_status = PolicyStatus(str(getattr(status, "value", status)).upper())
        except ValueError as e:
            raise InvalidPolicy(f"Unknown policy status {status!r}", {"status": str(status)}) from e

        policy = self.get(policy_id)
        if policy.status == new_status:
            return policy

        if policy.status in FINAL_POLICY_STATUSES:
            raise InvalidPolicy(
                f"Policy {policy_id} is {policy.status.value} and can no longer change",
                {"policy_id": policy_id, "status": policy.status.value},
            )

        if not self.store.update_policy_status(policy_id, new_status.value, expected=(policy.status.value,)):
            raise InvalidPolicy(
                f"Policy {policy_id} changed concurrently, reload and retry",
                {"policy_id": policy_id},
            )

        logger.info(f"[PolicyBook] {policy_id}: {policy.status.value} → {new_status.value}")
        self._notarize(
            ledger_events.POLICY_STATUS_CHANGED, policy_id,
            previous=policy.status.value, status=new_status.value,
        )
        return self.get(policy_id)

    def _notarize(self, event_type: str, subject_id: str, **payload):
        try:
            self.ledger_client.record(LedgerEvent(event_type=event_type, subject_id=subject_id, payload=payload))
        except Exception as e:
            logger.warning(f"[PolicyBook] Ledger call for {event_type} on {subject_id} failed: {type(e).__name__}: {e}")
