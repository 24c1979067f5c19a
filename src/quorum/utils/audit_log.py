"""
Audit Log

Every audit, failed ones included, is handed to an AuditLog after the report
is assembled. The SQLite implementation keeps two layers:

- JSON: data/logs/audits/<audit_id>.json (the full serialized report)
- SQLite: audits table (one summary row per audit, for querying)

Storage problems surface as PersistenceError. The audit engine catches and
logs them so a broken log never fails an audit.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from quorum.config import config
from quorum.errors import PersistenceError
from quorum.models.report import AuditReport

logger = logging.getLogger(__name__)


class AuditLog(ABC):
    """persistence collaborator: record(report) and read back by audit id"""

    @abstractmethod
    def record(self, report: AuditReport) -> None:
        """store one report. raises persistenceerror on storage failure."""

    @abstractmethod
    def get(self, audit_id: str) -> Optional[Dict[str, Any]]:
        """serialized report for an audit id, or none"""


class InMemoryAuditLog(AuditLog):
    """keeps serialized reports in a dict (tests and dry runs)"""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def record(self, report: AuditReport) -> None:
        with self._lock:
            self._records[report.audit_id] = report.to_dict()

    def get(self, audit_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._records.get(audit_id)

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SQLiteAuditLog(AuditLog):
    """
    Dual-layer audit log (JSON file per audit + SQLite summary table)

    Usage:
        audit_log = SQLiteAuditLog()
        audit_log.record(report)
        audit_log.get(report.audit_id)
    """

    def __init__(self, db_path: Optional[Path] = None, json_dir: Optional[Path] = None):
        self.db_path = Path(db_path or config.AUDIT_LOG_DB_PATH)
        self.json_dir = Path(json_dir or config.AUDITS_DIR)
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.json_dir.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot initialize audit log at {self.db_path}: {exc}") from exc

    def _init_database(self):
        """Initialize SQLite database with the audits table"""
        with sqlite3.connect(str(self.db_path)) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS audits (
                    audit_id TEXT PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    report_type TEXT,
                    contract_name TEXT,
                    overall_score INTEGER,
                    risk_level TEXT,
                    vulnerability_count INTEGER,
                    agents_used TEXT,
                    failed_agents TEXT,
                    execution_time_ms INTEGER,
                    error TEXT,
                    json_path TEXT
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_audits_status ON audits(status)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_audits_contract ON audits(contract_name)")
            conn.commit()

    def record(self, report: AuditReport) -> None:
        data = report.to_dict()
        json_path = self.json_dir / f"{report.audit_id}.json"
        try:
            with self._lock:
                with open(json_path, 'w', encoding="utf-8") as f:
                    json.dump(data, f, indent=2, default=str)

                with sqlite3.connect(str(self.db_path)) as conn:
                    cursor = conn.cursor()
                    cursor.execute("""
                        INSERT OR REPLACE INTO audits
                        (audit_id, timestamp, status, report_type, contract_name, overall_score, risk_level,
                         vulnerability_count, agents_used, failed_agents, execution_time_ms, error, json_path)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        report.audit_id,
                        data["timestamp"],
                        data["status"],
                        data["type"],
                        report.contract_info.get("name"),
                        data["overallScore"],
                        data["riskLevel"],
                        len(report.vulnerabilities),
                        json.dumps(list(report.agents_used)),
                        json.dumps(list(report.failed_agents)),
                        report.execution_time_ms,
                        report.error,
                        str(json_path),
                    ))
                    conn.commit()
        except (OSError, sqlite3.Error, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to record audit {report.audit_id}: {exc}") from exc
        logger.debug(f"[audit_log] recorded {report.audit_id} ({data['status']})")

    def get(self, audit_id: str) -> Optional[Dict[str, Any]]:
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                row = conn.execute("SELECT json_path FROM audits WHERE audit_id = ?", (audit_id,)).fetchone()
            if row is None:
                return None
            with open(row[0], 'r', encoding="utf-8") as f:
                return json.load(f)
        except (OSError, sqlite3.Error, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read audit {audit_id}: {exc}") from exc

    def list_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """summary rows, newest first"""
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    "SELECT audit_id, timestamp, status, contract_name, overall_score, risk_level "
                    "FROM audits ORDER BY timestamp DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to list audits: {exc}") from exc


class NullAuditLog(AuditLog):
    def record(self, report: AuditReport) -> None:
        return None

    def get(self, audit_id: str) -> Optional[Dict[str, Any]]:
        return None


def create_audit_log(backend: Optional[str] = None) -> AuditLog:
    """audit log for the configured backend (sqlite | memory | off)"""
    backend = (backend or config.AUDIT_LOG_BACKEND).lower()
    if backend == "memory":
        return InMemoryAuditLog()
    if backend == "off":
        return NullAuditLog()
    if backend == "sqlite":
        return SQLiteAuditLog()
    raise ValueError(f"Unknown audit log backend: {backend!r}")
