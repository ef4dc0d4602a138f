from typing import Optional, Tuple

from swiftclaim.config import Settings
from swiftclaim.db.sqlite_store import ClaimStore
from swiftclaim.services.ledger_client import LedgerClient
from swiftclaim.services.llm_client import build_llm_backend
from swiftclaim.services.notifier import Notifier
from swiftclaim.services.payout_client import PayoutClient
from swiftclaim.services.records_client import build_records_client
from swiftclaim.services.risk_client import RiskAnalysisClient
from swiftclaim.workflow.claim_workflow import ClaimWorkflow
from swiftclaim.workflow.policy_book import PolicyBook


def build_workflow(settings: Optional[Settings] = None) -> Tuple[ClaimWorkflow, PolicyBook]:
    """Construct every client once and wire them into the workflow and policy book."""
    settings = settings or Settings.from_env()

    store = ClaimStore(settings.db_path)
    store.init_db()

    ledger = LedgerClient.from_settings(settings)

    workflow = ClaimWorkflow(
        store=store,
        records_client=build_records_client(settings),
        risk_client=RiskAnalysisClient(build_llm_backend(settings), timeout=settings.llm_timeout_seconds),
        payout_client=PayoutClient.from_settings(settings),
        ledger_client=ledger,
        notifier=Notifier(store),
    )
    return workflow, PolicyBook(store, ledger)
