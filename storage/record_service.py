"""Relational persistence for leads, contracts, reviews and notifications.

SQLite-backed. Every write that belongs to one logical step (a contract
with its AI review, a status change with its audit event) runs in a
single transaction. Structured columns are stored as msgspec-encoded JSON.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import msgspec
from loguru import logger

from contractgen.error_handling import PersistenceError, handle_errors
from contractgen.models import (
    ContractData,
    ContractRecord,
    ContractReviewRecord,
    Lead,
    NotificationRecord,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS leads (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT '',
    whatsapp_number TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    price_range TEXT NOT NULL DEFAULT '',
    property_type TEXT NOT NULL DEFAULT '',
    timeline TEXT NOT NULL DEFAULT '',
    property_size_sqm REAL,
    property_condition TEXT,
    urgency_reason TEXT,
    decision_authority TEXT,
    status TEXT NOT NULL DEFAULT 'new',
    contract_status TEXT,
    contract_generated_at TEXT,
    manual_contract_review INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contracts (
    id TEXT PRIMARY KEY,
    lead_id TEXT NOT NULL,
    contract_reference TEXT NOT NULL,
    contract_type TEXT NOT NULL,
    template_id TEXT NOT NULL,
    generation_time_ms INTEGER NOT NULL,
    ai_confidence_score INTEGER NOT NULL,
    legal_risk_score INTEGER NOT NULL,
    contract_data TEXT NOT NULL,
    document_url TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'generated',
    auto_approved INTEGER NOT NULL DEFAULT 0,
    expedited INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contract_ai_reviews (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id TEXT NOT NULL UNIQUE,
    confidence_score INTEGER NOT NULL,
    risk_factors TEXT NOT NULL DEFAULT '[]',
    recommendations TEXT NOT NULL DEFAULT '[]',
    warnings TEXT NOT NULL DEFAULT '[]',
    compliance_check TEXT NOT NULL DEFAULT '{}',
    manual_review_required INTEGER NOT NULL DEFAULT 0,
    source TEXT NOT NULL DEFAULT 'ai',
    specialist_notes TEXT,
    approved_by TEXT,
    approved_at TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (contract_id) REFERENCES contracts(id)
);

CREATE TABLE IF NOT EXISTS contract_notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id TEXT NOT NULL,
    lead_id TEXT NOT NULL,
    type TEXT NOT NULL,
    delivery_method TEXT NOT NULL,
    recipient_type TEXT NOT NULL,
    recipient TEXT NOT NULL,
    message TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contract_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    event_data TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contracts_lead_id ON contracts(lead_id);
CREATE INDEX IF NOT EXISTS idx_contracts_status ON contracts(status);
CREATE INDEX IF NOT EXISTS idx_events_contract_id ON contract_events(contract_id);
"""

_LEAD_COLUMNS = (
    "id", "name", "email", "whatsapp_number", "location", "price_range", "property_type",
    "timeline", "property_size_sqm", "property_condition", "urgency_reason",
    "decision_authority", "status", "contract_status",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(value: Any) -> str:
    return msgspec.json.encode(value).decode("utf-8")


class ContractRecordService:
    """SQLite store for the contract pipeline."""

    def __init__(self, db_path: str = "contract_generator.db"):
        """Initialize the record service and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_database_exists()
        logger.info("ContractRecordService initialized", db_path=db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Connection scoped to one transaction: commit on success, rollback on error."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_database_exists(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        logger.debug("Database schema initialized")

    @staticmethod
    def _log_event(conn: sqlite3.Connection, contract_id: str, event_type: str, event_data: Dict[str, Any]):
        conn.execute(
            "INSERT INTO contract_events (contract_id, event_type, event_data, timestamp) VALUES (?, ?, ?, ?)",
            (contract_id, event_type, _json(event_data), _now()),
        )

    # Leads

    @handle_errors(PersistenceError)
    def upsert_lead(self, lead: Lead) -> Lead:
        now = _now()
        values = [getattr(lead, column) for column in _LEAD_COLUMNS]
        placeholders = ", ".join("?" for _ in _LEAD_COLUMNS)
        updates = ", ".join(f"{column} = excluded.{column}" for column in _LEAD_COLUMNS[1:])
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO leads ({', '.join(_LEAD_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({placeholders}, ?, ?) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}, updated_at = excluded.updated_at",
                (*values, now, now),
            )
        return lead

    @handle_errors(PersistenceError)
    def get_lead(self, lead_id: str) -> Optional[Lead]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_LEAD_COLUMNS)} FROM leads WHERE id = ?", (lead_id,)
            ).fetchone()
        if row is None:
            return None
        return Lead(**{column: row[column] for column in _LEAD_COLUMNS})

    @handle_errors(PersistenceError)
    def get_lead_contract_state(self, lead_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT contract_status, contract_generated_at, manual_contract_review FROM leads WHERE id = ?",
                (lead_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "contract_status": row["contract_status"],
            "contract_generated_at": row["contract_generated_at"],
            "manual_contract_review": bool(row["manual_contract_review"]),
        }

    @handle_errors(PersistenceError)
    def update_lead_contract_status(
        self,
        lead_id: str,
        contract_status: str,
        manual_review: Optional[bool] = None,
        generated_at: Optional[datetime] = None
    ) -> bool:
        """Set the lead's contract status; returns False when the lead does not exist."""
        assignments = ["contract_status = ?", "updated_at = ?"]
        params: List[Any] = [contract_status, _now()]
        if manual_review is not None:
            assignments.append("manual_contract_review = ?")
            params.append(int(manual_review))
        if generated_at is not None:
            assignments.append("contract_generated_at = ?")
            params.append(generated_at.isoformat())

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE leads SET {', '.join(assignments)} WHERE id = ?", (*params, lead_id)
            )
        return cursor.rowcount > 0

    # Contracts

    @handle_errors(PersistenceError)
    def save_contract(
        self,
        record: ContractRecord,
        review: ContractReviewRecord,
        approval_data: Optional[Dict[str, Any]] = None
    ) -> ContractRecord:
        """Insert a contract, its AI review and its audit events in one transaction.

        The record is stored with its final status. When ``approval_data`` is
        given an ``approval_decided`` event records the move out of ``generated``.
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO contracts (
                    id, lead_id, contract_reference, contract_type, template_id,
                    generation_time_ms, ai_confidence_score, legal_risk_score,
                    contract_data, document_url, status, auto_approved, expedited,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.lead_id,
                    record.contract_data.contract_id,
                    record.contract_type,
                    record.template_id,
                    record.generation_time_ms,
                    record.ai_confidence_score,
                    record.legal_risk_score,
                    _json(record.contract_data),
                    record.document_url,
                    record.status,
                    int(record.auto_approved),
                    int(record.expedited),
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            conn.execute(
                """
                INSERT INTO contract_ai_reviews (
                    contract_id, confidence_score, risk_factors, recommendations, warnings,
                    compliance_check, manual_review_required, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    review.confidence_score,
                    _json(review.risk_factors),
                    _json(review.recommendations),
                    _json(review.warnings),
                    _json(review.compliance_check),
                    int(review.manual_review_required),
                    review.source,
                    _now(),
                ),
            )
            self._log_event(conn, record.id, "contract_created", {
                "lead_id": record.lead_id,
                "status": record.status,
                "contract_reference": record.contract_data.contract_id,
            })
            if approval_data is not None:
                self._log_event(conn, record.id, "approval_decided", {
                    "from": "generated",
                    "to": record.status,
                    **approval_data,
                })

        logger.info("Contract persisted", contract_id=record.id, lead_id=record.lead_id)
        return record

    @handle_errors(PersistenceError)
    def update_contract_status(
        self,
        contract_id: str,
        expected_status: str,
        new_status: str,
        event_type: str = "status_changed",
        event_data: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Compare-and-set the contract status and log the change.

        Returns False when the contract is missing or no longer in ``expected_status``.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE contracts SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (new_status, _now(), contract_id, expected_status),
            )
            if cursor.rowcount == 0:
                return False
            self._log_event(conn, contract_id, event_type, {
                "from": expected_status,
                "to": new_status,
                **(event_data or {}),
            })
        return True

    def _row_to_contract(self, row: sqlite3.Row) -> ContractRecord:
        return ContractRecord(
            id=row["id"],
            lead_id=row["lead_id"],
            contract_type=row["contract_type"],
            template_id=row["template_id"],
            generation_time_ms=row["generation_time_ms"],
            ai_confidence_score=row["ai_confidence_score"],
            legal_risk_score=row["legal_risk_score"],
            contract_data=msgspec.json.decode(row["contract_data"], type=ContractData),
            document_url=row["document_url"],
            status=row["status"],
            auto_approved=bool(row["auto_approved"]),
            expedited=bool(row["expedited"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @handle_errors(PersistenceError)
    def get_contract(self, contract_id: str) -> Optional[ContractRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM contracts WHERE id = ?", (contract_id,)).fetchone()
        return self._row_to_contract(row) if row else None

    @handle_errors(PersistenceError)
    def list_contracts(
        self,
        lead_id: Optional[str] = None,
        status: Optional[str] = None,
        contract_type: Optional[str] = None,
        limit: Optional[int] = 50,
        offset: int = 0
    ) -> List[ContractRecord]:
        """Contracts matching the filters, newest first. ``limit=None`` returns every match."""
        clauses, params = [], []
        for column, value in (("lead_id", lead_id), ("status", status), ("contract_type", contract_type)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM contracts {where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (*params, -1 if limit is None else limit, offset),
            ).fetchall()
        return [self._row_to_contract(row) for row in rows]

    @handle_errors(PersistenceError)
    def count_contracts_by_status(self) -> Dict[str, int]:
        with self._connect() as conn:
            rows = conn.execute("SELECT status, COUNT(*) AS n FROM contracts GROUP BY status").fetchall()
        return {row["status"]: row["n"] for row in rows}

    # Reviews

    @handle_errors(PersistenceError)
    def get_review(self, contract_id: str) -> Optional[ContractReviewRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM contract_ai_reviews WHERE contract_id = ?", (contract_id,)
            ).fetchone()
        if row is None:
            return None
        return ContractReviewRecord(
            contract_id=row["contract_id"],
            confidence_score=row["confidence_score"],
            risk_factors=msgspec.json.decode(row["risk_factors"], type=List[str]),
            recommendations=msgspec.json.decode(row["recommendations"], type=List[str]),
            warnings=msgspec.json.decode(row["warnings"], type=List[str]),
            compliance_check=msgspec.json.decode(row["compliance_check"]),
            manual_review_required=bool(row["manual_review_required"]),
            source=row["source"],
            specialist_notes=row["specialist_notes"],
            approved_by=row["approved_by"],
            approved_at=datetime.fromisoformat(row["approved_at"]) if row["approved_at"] else None,
        )

    @handle_errors(PersistenceError)
    def record_review_decision(
        self,
        contract_id: str,
        specialist_notes: Optional[str],
        approved_by: Optional[str],
        approved_at: Optional[datetime],
        manual_review_required: bool
    ) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE contract_ai_reviews
                SET specialist_notes = COALESCE(?, specialist_notes),
                    approved_by = ?, approved_at = ?, manual_review_required = ?
                WHERE contract_id = ?
                """,
                (
                    specialist_notes,
                    approved_by,
                    approved_at.isoformat() if approved_at else None,
                    int(manual_review_required),
                    contract_id,
                ),
            )
        return cursor.rowcount > 0

    # Notifications and audit events

    @handle_errors(PersistenceError)
    def insert_notification(self, notification: NotificationRecord) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO contract_notifications (
                    contract_id, lead_id, type, delivery_method, recipient_type,
                    recipient, message, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification.contract_id,
                    notification.lead_id,
                    notification.type,
                    notification.delivery_method,
                    notification.recipient_type,
                    notification.recipient,
                    notification.message,
                    notification.status,
                    _now(),
                ),
            )
        return cursor.lastrowid

    @handle_errors(PersistenceError)
    def list_notifications(self, contract_id: str) -> List[NotificationRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM contract_notifications WHERE contract_id = ? ORDER BY id", (contract_id,)
            ).fetchall()
        return [
            NotificationRecord(
                contract_id=row["contract_id"],
                lead_id=row["lead_id"],
                type=row["type"],
                delivery_method=row["delivery_method"],
                recipient_type=row["recipient_type"],
                recipient=row["recipient"],
                message=row["message"],
                status=row["status"],
            )
            for row in rows
        ]

    @handle_errors(PersistenceError)
    def get_events(self, contract_id: str) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT event_type, event_data, timestamp FROM contract_events WHERE contract_id = ? ORDER BY id",
                (contract_id,),
            ).fetchall()
        return [
            {
                "event_type": row["event_type"],
                "event_data": msgspec.json.decode(row["event_data"]),
                "timestamp": row["timestamp"],
            }
            for row in rows
        ]
