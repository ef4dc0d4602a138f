"""
Claim workflow error hierarchy.

Validation and consistency failures are raised as named exceptions, each carrying a
stable code, a human-readable message, a details dict and the HTTP status the API
layer should answer with. Dependency outages are never raised from here: every client
returns a result object instead.
"""

from typing import Any, Dict, Optional

__all__ = [
    "ClaimWorkflowError",
    "PolicyNotFound",
    "PolicyInactive",
    "InvalidPolicy",
    "DuplicateClaim",
    "InvalidAmount",
    "InvalidRecordReference",
    "InvalidBankDetails",
    "ClaimNotFound",
    "NotAuthorized",
    "InvalidAction",
    "AlreadyProcessed",
    "InvalidClaimState",
    "WorkflowFailure",
]


class ClaimWorkflowError(Exception):
    """
    Base exception for all claim workflow errors.

    Attributes:
        code: Deterministic error code
        message: Human-readable description, safe to show to claimants
        details: Extra context (ids, limits, offending values)
        http_status: Status code the HTTP layer maps this error to
    """

    code: str = "WORKFLOW_FAILURE"
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# ============================================================
# Validation errors
# ============================================================

class PolicyNotFound(ClaimWorkflowError):
    """Policy does not exist, or is not held by the claimant."""

    code = "POLICY_NOT_FOUND"
    http_status = 404


class PolicyInactive(ClaimWorkflowError):
    """Policy is not active, or the incident date is outside its validity window."""

    code = "POLICY_INACTIVE"
    http_status = 422


class InvalidPolicy(ClaimWorkflowError):
    """Policy definition is malformed (coverage, window) or the change is not allowed."""

    code = "INVALID_POLICY"
    http_status = 422


class DuplicateClaim(ClaimWorkflowError):
    """Another claim against the same policy is still in flight."""

    code = "DUPLICATE_CLAIM"
    http_status = 409

    def __init__(self, policy_id: str, existing_claim_id: str) -> None:
        super().__init__(
            f"Policy {policy_id} already has an open claim ({existing_claim_id})",
            {"policy_id": policy_id, "existing_claim_id": existing_claim_id},
        )
        self.existing_claim_id = existing_claim_id


class InvalidAmount(ClaimWorkflowError):
    code = "INVALID_AMOUNT"
    http_status = 422


class InvalidRecordReference(ClaimWorkflowError):
    code = "INVALID_RECORD_REFERENCE"
    http_status = 422


class InvalidBankDetails(ClaimWorkflowError):
    code = "INVALID_BANK_DETAILS"
    http_status = 422


# ============================================================
# Lookup / authorization errors
# ============================================================

class ClaimNotFound(ClaimWorkflowError):
    code = "CLAIM_NOT_FOUND"
    http_status = 404


class NotAuthorized(ClaimWorkflowError):
    code = "NOT_AUTHORIZED"
    http_status = 403


class InvalidAction(ClaimWorkflowError):
    code = "INVALID_ACTION"
    http_status = 422


# ============================================================
# Consistency errors
# ============================================================

class AlreadyProcessed(ClaimWorkflowError):
    """The claim already reached a terminal status, or a concurrent request won the race."""

    code = "ALREADY_PROCESSED"
    http_status = 409


class InvalidClaimState(ClaimWorkflowError):
    """The claim is in flight but not in a status that allows this operation."""

    code = "INVALID_CLAIM_STATE"
    http_status = 409


# ============================================================
# Fatal
# ============================================================

class WorkflowFailure(ClaimWorkflowError):
    """Unexpected failure; the operation left no partial state behind."""

    code = "WORKFLOW_FAILURE"
    http_status = 500
