"""
Ledger client for notarizing policy and claim lifecycle events.

The ledger is telemetry: a disabled client (no endpoint configured) and a failing
client both answer with a mock receipt, so callers never branch on ledger health.
"""

import time
from typing import Any, Dict, Optional

import httpx

from swiftclaim.config import Settings
from swiftclaim.state.results import LedgerEvent, LedgerReceipt
from swiftclaim.utils.logger import logger

POLICY_CREATED = "POLICY_CREATED"
POLICY_STATUS_CHANGED = "POLICY_STATUS_CHANGED"
CLAIM_SUBMITTED = "CLAIM_SUBMITTED"
CLAIM_VERIFIED = "CLAIM_VERIFIED"
CLAIM_AUTO_REJECTED = "CLAIM_AUTO_REJECTED"
CLAIM_APPROVED = "CLAIM_APPROVED"
CLAIM_REJECTED = "CLAIM_REJECTED"
CLAIM_PAID = "CLAIM_PAID"


def _mock_receipt() -> LedgerReceipt:
    return LedgerReceipt(receipt_id=f"mock-tx-{int(time.time() * 1000)}", mocked=True)


class LedgerClient:

    def __init__(
        self,
        endpoint: Optional[str] = None,
        contract_address: Optional[str] = None,
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.contract_address = contract_address
        self._http = None

        if not endpoint and http_client is None:
            logger.info("[Ledger] No ledger endpoint configured. Ledger disabled, receipts will be mocked.")
            return

        try:
            self._http = http_client or httpx.Client(base_url=endpoint, timeout=timeout)
        except Exception as e:
            logger.warning(f"[Ledger] Could not initialize ledger client, running disabled: {type(e).__name__}: {e}")
            self._http = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        return cls(
            endpoint=settings.ledger_url,
            contract_address=settings.ledger_contract_address,
            timeout=settings.ledger_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self._http is not None

    def record(self, event: LedgerEvent) -> LedgerReceipt:
        if self._http is None:
            return _mock_receipt()

        body: Dict[str, Any] = {
            "contract": self.contract_address,
            "eventType": event.event_type,
            "subjectId": event.subject_id,
            "payload": event.payload,
        }

        try:
            response = self._http.post("/events", json=body)
            response.raise_for_status()
            data = response.json()
            tx_hash = data.get("transactionHash") or data.get("receiptId")
            if not tx_hash:
                raise ValueError("ledger response carried no transaction hash")
        except Exception as e:
            logger.warning(
                f"[Ledger] {event.event_type} for {event.subject_id} not recorded, using mock receipt: "
                f"{type(e).__name__}: {e}"
            )
            return _mock_receipt()

        logger.info(f"[Ledger] {event.event_type} for {event.subject_id} recorded: {tx_hash}")
        return LedgerReceipt(receipt_id=str(tx_hash), mocked=False)
