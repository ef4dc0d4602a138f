from typing import Optional

from swiftclaim.db.sqlite_store import ClaimStore
from swiftclaim.utils.logger import logger

NEW_CLAIM = "new_claim"
CLAIM_READY_FOR_REVIEW = "claim_ready_for_review"
RECORDS_UNAVAILABLE = "records_unavailable"
CLAIM_AUTO_REJECTED = "claim_auto_rejected"
CLAIM_APPROVED = "claim_approved"
CLAIM_REJECTED = "claim_rejected"
PAYOUT_FAILED = "payout_failed"
PAYOUT_SETTLED = "payout_settled"


class Notifier:
    """Inbox writer. Delivery is fire-and-forget: failures are logged, never raised."""

    def __init__(self, store: ClaimStore):
        self._store = store

    def notify(self, user_id: str, title: str, message: str, category: str, related_id: Optional[str] = None):
        try:
            self._store.insert_notification(user_id, title, message, category, related_id)
        except Exception as e:
            logger.error(f"[Notifier] Could not notify {user_id} ({category}): {type(e).__name__}: {e}")
