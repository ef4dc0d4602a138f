import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from swiftclaim.errors import DuplicateClaim
from swiftclaim.state.claim_state import OPEN_CLAIM_STATUSES, PayoutRecord, Policy
from swiftclaim.utils.logger import logger

_OPEN_STATUS_SQL = ", ".join(f"'{s.value}'" for s in OPEN_CLAIM_STATUSES)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


class ClaimStore:
    """
    SQLite persistence for policies, claims, documents, payouts and notifications.

    Every public method runs in its own short-lived connection. Status changes go
    through conditional updates so concurrent requests on one claim cannot both win.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)

    # ============================================================
    # CONNECTION
    # ============================================================

    def _connect(self):
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def db_conn(self):
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ============================================================
    # TABLE COLUMN HELPERS
    # ============================================================

    @staticmethod
    def _table_columns(conn, table: str) -> set:
        cols = set()
        for row in conn.execute(f"PRAGMA table_info({table});").fetchall():
            cols.add(row[1])
        return cols

    def _ensure_claims_extra_columns(self, conn):
        extra = {
            # Risk analysis
            "risk_verdict_json": "TEXT",
            "fraud_score": "INTEGER",
            "risk_level": "TEXT",
            "ai_confidence": "INTEGER",
            "records_error": "TEXT",
            # Provider decision
            "provider_comments": "TEXT",
            "approved_by": "TEXT",
            "approved_at": "TEXT",
            "rejected_by": "TEXT",
            "rejected_at": "TEXT",
            # Payout
            "payout_id": "TEXT",
            "payout_status": "TEXT",
            "payout_amount": "REAL",
            "payout_error": "TEXT",
            "updated_at": "TEXT",
        }
        cols = self._table_columns(conn, "claims")
        for name, col_type in extra.items():
            if name not in cols:
                conn.execute(f"ALTER TABLE claims ADD COLUMN {name} {col_type};")

    # ============================================================
    # INIT DATABASE
    # ============================================================

    def init_db(self):
        logger.info(f"[DB] Using: {self.db_path}")

        with self.db_conn() as conn:
            conn.executescript("""
            CREATE TABLE IF NOT EXISTS policies (
                policy_id TEXT PRIMARY KEY,
                holder_id TEXT NOT NULL,
                provider_id TEXT NOT NULL,
                policy_type TEXT NOT NULL,
                coverage_amount REAL NOT NULL,
                premium REAL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT
            );

            CREATE TABLE IF NOT EXISTS claims (
                claim_id TEXT PRIMARY KEY,
                policy_id TEXT NOT NULL REFERENCES policies(policy_id),
                claimant_id TEXT NOT NULL,
                provider_id TEXT NOT NULL,
                amount REAL NOT NULL,
                description TEXT,
                incident_date TEXT NOT NULL,
                external_record_id TEXT,
                beneficiary_name TEXT,
                bank_account TEXT,
                routing_code TEXT,
                status TEXT NOT NULL,
                created_at TEXT
            );

            CREATE TABLE IF NOT EXISTS claim_documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                claim_id TEXT NOT NULL,
                filename TEXT,
                content_type TEXT,
                size_bytes INTEGER,
                doc_type TEXT,
                label TEXT,
                FOREIGN KEY(claim_id)
                    REFERENCES claims(claim_id)
                    ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS payouts (
                payout_id TEXT PRIMARY KEY,
                claim_id TEXT NOT NULL REFERENCES claims(claim_id),
                amount REAL NOT NULL,
                bank_account TEXT,
                routing_code TEXT,
                status TEXT NOT NULL,
                transfer_ref TEXT,
                error_kind TEXT,
                created_at TEXT
            );

            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                title TEXT,
                message TEXT,
                category TEXT,
                related_id TEXT,
                is_read INTEGER DEFAULT 0,
                created_at TEXT
            );
            """)

            self._ensure_claims_extra_columns(conn)

            conn.execute(f"""
            CREATE UNIQUE INDEX IF NOT EXISTS ux_claims_open_policy
            ON claims(policy_id)
            WHERE status IN ({_OPEN_STATUS_SQL})
            """)

    # ============================================================
    # POLICY OPERATIONS
    # ============================================================

    def upsert_policy(self, policy: Policy):
        with self.db_conn() as conn:
            conn.execute("""
            INSERT INTO policies (
              policy_id, holder_id, provider_id, policy_type,
              coverage_amount, premium, start_date, end_date, status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(policy_id) DO UPDATE SET
              holder_id=excluded.holder_id,
              provider_id=excluded.provider_id,
              policy_type=excluded.policy_type,
              coverage_amount=excluded.coverage_amount,
              premium=excluded.premium,
              start_date=excluded.start_date,
              end_date=excluded.end_date,
              status=excluded.status
            """, (
              policy.policy_id,
              policy.holder_id,
              policy.provider_id,
              policy.policy_type,
              policy.coverage_amount,
              policy.premium,
              policy.start_date.isoformat(),
              policy.end_date.isoformat(),
              policy.status.value,
              policy.created_at or utc_now(),
            ))

    def fetch_policy(self, policy_id: str) -> Optional[Dict[str, Any]]:
        with self.db_conn() as conn:
            row = conn.execute(
                "SELECT * FROM policies WHERE policy_id=?",
                (policy_id,)
            ).fetchone()
            return dict(row) if row else None

    def update_policy_status(self, policy_id: str, status: str, expected: Tuple[str, ...]) -> bool:
        with self.db_conn() as conn:
            cur = conn.execute(
                f"UPDATE policies SET status=? WHERE policy_id=? AND status IN ({_placeholders(expected)})",
                [status, policy_id, *expected]
            )
            return cur.rowcount == 1

    # ============================================================
    # CLAIM OPERATIONS
    # ============================================================

    @staticmethod
    def _open_claim_id(conn, policy_id: str) -> Optional[str]:
        row = conn.execute(
            f"SELECT claim_id FROM claims WHERE policy_id=? AND status IN ({_OPEN_STATUS_SQL}) LIMIT 1",
            (policy_id,)
        ).fetchone()
        return row["claim_id"] if row else None

    def find_open_claim(self, policy_id: str) -> Optional[str]:
        with self.db_conn() as conn:
            return self._open_claim_id(conn, policy_id)

    def create_claim(self, claim: Dict[str, Any], docs: List[Dict[str, Any]]):
        """
        Insert a claim and its document metadata in one transaction.

        The open-claim check runs under BEGIN IMMEDIATE, and the partial unique
        index on open claims rejects anything that slips past it.
        """
        policy_id = claim["policy_id"]

        with self.db_conn() as conn:
            conn.execute("BEGIN IMMEDIATE")

            existing = self._open_claim_id(conn, policy_id)
            if existing:
                raise DuplicateClaim(policy_id, existing)

            cols = list(claim.keys())
            try:
                conn.execute(
                    f"INSERT INTO claims ({', '.join(cols)}) VALUES ({_placeholders(cols)})",
                    [claim[c] for c in cols]
                )
            except sqlite3.IntegrityError:
                existing = self._open_claim_id(conn, policy_id)
                if existing:
                    raise DuplicateClaim(policy_id, existing)
                raise

            if docs:
                conn.executemany("""
                INSERT INTO claim_documents (
                  claim_id, filename, content_type, size_bytes, doc_type, label
                ) VALUES (?, ?, ?, ?, ?, ?)
                """, [(
                    claim["claim_id"],
                    d.get("filename"),
                    d.get("content_type"),
                    d.get("size_bytes", 0),
                    d.get("doc_type"),
                    d.get("label"),
                ) for d in docs])

    def fetch_claim_and_docs(self, claim_id: str):
        with self.db_conn() as conn:
            c = conn.execute(
                "SELECT * FROM claims WHERE claim_id=?",
                (claim_id,)
            ).fetchone()

            if not c:
                return None, []

            docs = conn.execute("""
                SELECT id, filename, content_type,
                       size_bytes, doc_type, label
                FROM claim_documents
                WHERE claim_id=?
                ORDER BY id ASC
            """, (claim_id,)).fetchall()

            return dict(c), [dict(d) for d in docs]

    def list_claims(self, claimant_id: Optional[str] = None, provider_id: Optional[str] = None):
        clauses, params = [], []
        if claimant_id:
            clauses.append("claimant_id=?")
            params.append(claimant_id)
        if provider_id:
            clauses.append("provider_id=?")
            params.append(provider_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self.db_conn() as conn:
            rows = conn.execute(
                f"SELECT claim_id FROM claims {where} ORDER BY created_at DESC",
                params
            ).fetchall()
        return [r["claim_id"] for r in rows]

    def transition_claim(self, claim_id: str, from_statuses: Tuple[str, ...], to_status: str, **fields) -> bool:
        """Compare-and-set on claims.status. Returns False if the claim was not in `from_statuses`."""
        fields["status"] = to_status
        fields.setdefault("updated_at", utc_now())

        cols = ", ".join([f"{k}=?" for k in fields.keys()])
        vals = list(fields.values()) + [claim_id, *from_statuses]

        with self.db_conn() as conn:
            cur = conn.execute(
                f"UPDATE claims SET {cols} WHERE claim_id=? AND status IN ({_placeholders(from_statuses)})",
                vals
            )
            return cur.rowcount == 1

    @staticmethod
    def _payout_cas(conn, claim_id: str, from_payout: Tuple[Optional[str], ...], to_payout: str, fields: Dict[str, Any]) -> bool:
        fields = dict(fields, payout_status=to_payout)
        fields.setdefault("updated_at", utc_now())

        concrete = [s for s in from_payout if s is not None]
        conds = []
        if None in from_payout:
            conds.append("payout_status IS NULL")
        if concrete:
            conds.append(f"payout_status IN ({_placeholders(concrete)})")

        cols = ", ".join([f"{k}=?" for k in fields.keys()])
        vals = list(fields.values()) + [claim_id, *concrete]

        cur = conn.execute(
            f"UPDATE claims SET {cols} WHERE claim_id=? AND status='APPROVED' AND ({' OR '.join(conds)})",
            vals
        )
        return cur.rowcount == 1

    def transition_payout(
        self,
        claim_id: str,
        from_payout: Tuple[Optional[str], ...],
        to_payout: str,
        **fields,
    ) -> bool:
        """Compare-and-set on claims.payout_status for an APPROVED claim. None matches NULL."""
        with self.db_conn() as conn:
            return self._payout_cas(conn, claim_id, from_payout, to_payout, fields)

    def begin_payout(self, from_payout: Tuple[Optional[str], ...], record: PayoutRecord, **fields) -> bool:
        """
        Claims the payout slot and records the attempt in one transaction.
        Moves payout_status from `from_payout` to INITIATED with the attempt's payout_id,
        then appends `record`. Returns False, writing nothing, if the slot was taken.
        """
        fields.update(payout_id=record.payout_id, payout_error=None)
        with self.db_conn() as conn:
            if not self._payout_cas(conn, record.claim_id, from_payout, "INITIATED", fields):
                return False
            self._insert_payout(conn, record)
            return True

    # ============================================================
    # PAYOUT ATTEMPTS (append-only)
    # ============================================================

    @staticmethod
    def _insert_payout(conn, record: PayoutRecord):
        conn.execute("""
        INSERT INTO payouts (
          payout_id, claim_id, amount, bank_account, routing_code,
          status, transfer_ref, error_kind, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
          record.payout_id,
          record.claim_id,
          record.amount,
          record.bank_account,
          record.routing_code,
          record.status,
          record.transfer_ref,
          record.error_kind,
          record.created_at or utc_now(),
        ))

    def update_payout_status(
        self,
        payout_id: str,
        status: str,
        transfer_ref: Optional[str] = None,
        error_kind: Optional[str] = None,
    ):
        with self.db_conn() as conn:
            conn.execute(
                "UPDATE payouts SET status=?, transfer_ref=COALESCE(?, transfer_ref), "
                "error_kind=COALESCE(?, error_kind) WHERE payout_id=?",
                (status, transfer_ref, error_kind, payout_id)
            )

    def list_payouts(self, claim_id: str) -> List[Dict[str, Any]]:
        with self.db_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM payouts WHERE claim_id=? ORDER BY created_at ASC, rowid ASC",
                (claim_id,)
            ).fetchall()
            return [dict(r) for r in rows]

    # ============================================================
    # NOTIFICATIONS
    # ============================================================

    def insert_notification(self, user_id: str, title: str, message: str, category: str, related_id: Optional[str]):
        with self.db_conn() as conn:
            conn.execute("""
            INSERT INTO notifications (user_id, title, message, category, related_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """, (user_id, title, message, category, related_id, utc_now()))

    def list_notifications(self, user_id: str) -> List[Dict[str, Any]]:
        with self.db_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM notifications WHERE user_id=? ORDER BY id ASC",
                (user_id,)
            ).fetchall()
            return [dict(r) for r in rows]
