"""Runtime configuration for the SwiftClaim backend."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(BASE_DIR, ".."))

DEFAULT_DB_PATH = os.path.join(PROJECT_ROOT, "data", "claims.db")
DEFAULT_PAYOUT_BASE_URL = "https://sandbox.cashfree.com/payout"


class Settings(BaseModel):
    db_path: str = DEFAULT_DB_PATH

    # AI fraud scorer
    google_api_key: Optional[str] = None
    llm_model: str = "gemini-2.0-flash"
    llm_timeout_seconds: float = 30.0

    # Health record registry
    records_base_url: Optional[str] = None
    records_timeout_seconds: float = 10.0

    # Payout gateway
    payout_mode: str = "sandbox"
    payout_base_url: str = DEFAULT_PAYOUT_BASE_URL
    payout_client_id: Optional[str] = None
    payout_client_secret: Optional[str] = None
    payout_timeout_seconds: float = 15.0

    # Ledger gateway
    ledger_url: Optional[str] = None
    ledger_contract_address: Optional[str] = None
    ledger_timeout_seconds: float = 5.0

    @property
    def payout_live(self) -> bool:
        return self.payout_mode.strip().lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        def _float(name: str, default: float) -> float:
            raw = os.getenv(name)
            return float(raw) if raw else default

        return cls(
            db_path=os.getenv("CLAIMS_DB_PATH", DEFAULT_DB_PATH),
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL", "gemini-2.0-flash"),
            llm_timeout_seconds=_float("LLM_TIMEOUT_SECONDS", 30.0),
            records_base_url=os.getenv("RECORDS_BASE_URL") or None,
            records_timeout_seconds=_float("RECORDS_TIMEOUT_SECONDS", 10.0),
            payout_mode=os.getenv("PAYOUT_MODE", "sandbox"),
            payout_base_url=os.getenv("PAYOUT_BASE_URL", DEFAULT_PAYOUT_BASE_URL),
            payout_client_id=os.getenv("PAYOUT_CLIENT_ID") or None,
            payout_client_secret=os.getenv("PAYOUT_CLIENT_SECRET") or None,
            payout_timeout_seconds=_float("PAYOUT_TIMEOUT_SECONDS", 15.0),
            ledger_url=os.getenv("LEDGER_URL") or None,
            ledger_contract_address=os.getenv("LEDGER_CONTRACT_ADDRESS") or None,
            ledger_timeout_seconds=_float("LEDGER_TIMEOUT_SECONDS", 5.0),
        )
