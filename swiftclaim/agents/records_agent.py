from typing import Any, Dict

from swiftclaim.services.records_client import RecordsClient
from swiftclaim.utils.logger import logger


class RecordsAgent:
    """Fetches the claimant's medical history from the health-record registry."""

    def __init__(self, records_client: RecordsClient):
        self.records_client = records_client

    def run(self, state) -> Dict[str, Any]:
        claim = state.claim
        result = self.records_client.fetch(claim.external_record_id)

        if not result.found:
            logger.warning(
                f"[RecordsAgent] Claim {claim.claim_id}: records fetch failed "
                f"({result.error_kind.value}): {result.error}"
            )
            return {
                "records_result": result,
                "records_error": result.error_kind.value,
            }

        logger.info(
            f"[RecordsAgent] Claim {claim.claim_id}: fetched "
            f"{len(result.bundle.medical_records)} medical record(s)"
        )
        return {"records_result": result, "records_error": None}
