"""
Payout client for claim settlements.

Sandbox mode fabricates a successful transfer without any network call. Production
mode talks to the Cashfree-style payout gateway. Neither mode raises: failures come
back as PayoutResult(success=False, error_kind=...).
"""

import re
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx

from swiftclaim.config import Settings
from swiftclaim.state.results import PayoutRequest, PayoutResult
from swiftclaim.utils.logger import logger

IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_RE = re.compile(r"^\d{9,18}$")

# Gateway statuses that end a transfer without moving money
FAILED_TRANSFER_STATUSES = frozenset({"FAILED", "REJECTED", "ERROR", "REVERSED"})


def validate_bank_account(bank_account: Optional[str], routing_code: Optional[str]) -> Optional[str]:
    """Return a reason string when the details are unusable, None when they look valid."""
    if not bank_account or not routing_code:
        return "Account number and IFSC code are required"
    if not ACCOUNT_RE.match(bank_account):
        return "Invalid account number (expected 9-18 digits)"
    if not IFSC_RE.match(routing_code):
        return "Invalid IFSC code format"
    return None


def new_payout_id(claim_id: str) -> str:
    return f"PAYOUT_{claim_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def _transfer_body(response: httpx.Response, nested_only: bool = False) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Top-level body and its transfer object. Raises ValueError on an unexpected shape."""
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"unexpected gateway body of type {type(body).__name__}")
    data = body.get("data") or ({} if nested_only else body)
    if not isinstance(data, dict):
        raise ValueError(f"unexpected transfer data of type {type(data).__name__}")
    return body, data


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class PayoutClient:

    def __init__(
        self,
        live: bool = False,
        base_url: str = "",
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 15.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.live = live
        self.client_id = client_id
        self.client_secret = client_secret
        self._http = None
        if live:
            self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayoutClient":
        if settings.payout_live:
            logger.info(f"[PayoutClient] Production gateway at {settings.payout_base_url}")
        else:
            logger.info("[PayoutClient] Sandbox mode. Transfers are simulated.")
        return cls(
            live=settings.payout_live,
            base_url=settings.payout_base_url,
            client_id=settings.payout_client_id,
            client_secret=settings.payout_client_secret,
            timeout=settings.payout_timeout_seconds,
        )

    def _headers(self, request_id: Optional[str] = None) -> dict:
        headers = {
            "X-Client-Id": self.client_id or "",
            "X-Client-Secret": self.client_secret or "",
            "Content-Type": "application/json",
        }
        if request_id:
            headers["X-Request-Id"] = request_id
        return headers

    # ============================================================
    # Initiate
    # ============================================================

    def initiate(self, request: PayoutRequest) -> PayoutResult:
        payout_id = request.payout_id or new_payout_id(request.claim_id)

        if request.amount <= 0:
            return PayoutResult(
                success=False, payout_id=payout_id,
                error_kind="INVALID_AMOUNT", message="Payout amount must be positive",
            )

        reason = validate_bank_account(request.bank_account, request.routing_code)
        if reason or not request.beneficiary_name:
            return PayoutResult(
                success=False, payout_id=payout_id,
                error_kind="INVALID_BANK_DETAILS", message=reason or "Beneficiary name is required",
            )

        if not self.live:
            utr = f"MOCK_UTR_{int(time.time() * 1000)}"
            logger.info(f"[PayoutClient] Sandbox transfer {payout_id} for ₹{request.amount:,.2f}")
            return PayoutResult(
                success=True, payout_id=payout_id, transfer_id=payout_id,
                status="SUCCESS", utr=utr, message="Transfer initiated successfully",
            )

        payload = {
            "beneId": f"BENE_{request.claim_id}",
            "amount": request.amount,
            "transferId": payout_id,
            "transferMode": "banktransfer",
            "remarks": f"Insurance claim settlement for claim {request.claim_id}",
            "bankAccount": request.bank_account,
            "ifsc": request.routing_code,
            "beneName": request.beneficiary_name,
            "purpose": request.purpose,
        }

        try:
            response = self._http.post("/v1/transfers", json=payload, headers=self._headers(payout_id))
            response.raise_for_status()
            body, data = _transfer_body(response, nested_only=True)
        except httpx.TimeoutException as e:
            logger.error(f"[PayoutClient] Gateway timeout for {payout_id}: {e}")
            return PayoutResult(success=False, payout_id=payout_id, error_kind="TIMEOUT", message=str(e))
        except httpx.HTTPStatusError as e:
            logger.error(f"[PayoutClient] Gateway rejected {payout_id}: {e.response.status_code}")
            return PayoutResult(
                success=False, payout_id=payout_id,
                error_kind="GATEWAY_REJECTED", message=f"HTTP {e.response.status_code}",
            )
        except Exception as e:
            logger.error(f"[PayoutClient] Gateway error for {payout_id}: {type(e).__name__}: {e}")
            return PayoutResult(success=False, payout_id=payout_id, error_kind="GATEWAY_ERROR", message=str(e))

        status = str(data.get("status") or body.get("status") or "PENDING").upper()
        if status in FAILED_TRANSFER_STATUSES:
            return PayoutResult(
                success=False, payout_id=payout_id, transfer_id=payout_id, status="FAILED",
                error_kind="GATEWAY_REJECTED", message=_opt_str(body.get("message")),
            )

        return PayoutResult(
            success=True,
            payout_id=payout_id,
            transfer_id=_opt_str(data.get("transferId")) or payout_id,
            status="SUCCESS" if status == "SUCCESS" else "PENDING",
            utr=_opt_str(data.get("utr")),
            message=_opt_str(body.get("message")),
        )

    # ============================================================
    # Status
    # ============================================================

    def check_status(self, transfer_id: str) -> PayoutResult:
        if not self.live:
            return PayoutResult(
                success=True, payout_id=transfer_id, transfer_id=transfer_id,
                status="SUCCESS", utr=f"MOCK_UTR_{int(time.time() * 1000)}",
            )

        try:
            response = self._http.get(f"/v1/transfers/{transfer_id}", headers=self._headers())
            response.raise_for_status()
            _, data = _transfer_body(response)
        except Exception as e:
            logger.warning(f"[PayoutClient] Status check failed for {transfer_id}: {type(e).__name__}: {e}")
            return PayoutResult(
                success=False, payout_id=transfer_id, transfer_id=transfer_id,
                status="UNKNOWN", error_kind="STATUS_UNAVAILABLE", message=str(e),
            )

        status = str(data.get("status") or "PENDING").upper()
        if status in FAILED_TRANSFER_STATUSES:
            logger.warning(f"[PayoutClient] Transfer {transfer_id} ended as {status}")
            return PayoutResult(
                success=False, payout_id=transfer_id, transfer_id=transfer_id, status="FAILED",
                error_kind="GATEWAY_REJECTED", message=f"Transfer {status.lower()}",
            )

        return PayoutResult(
            success=True,
            payout_id=transfer_id,
            transfer_id=transfer_id,
            status=status,
            utr=_opt_str(data.get("utr")),
        )
