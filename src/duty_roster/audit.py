"""
Audit history for the Duty Roster system

Every schedule mutation leaves a human-readable log line. Recording is
fire-and-forget: a failing sink is logged and never blocks the mutation
that triggered it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from .storage import read_json, write_json

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SWAP = "SWAP"
    GENERATE = "GENERATE"
    CLEAR = "CLEAR"


@dataclass
class HistoryLog:
    id: str
    timestamp: str  # ISO string
    user_email: str
    action: str
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "userEmail": self.user_email,
            "action": self.action,
            "details": self.details
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryLog':
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            user_email=data.get("userEmail", ""),
            action=data["action"],
            details=data.get("details", "")
        )


class AuditSink:
    """Base sink: builds the log entry and shields callers from write failures"""

    def record(self, action: AuditAction, details: str, actor: str) -> Optional[HistoryLog]:
        log = HistoryLog(
            id=str(uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_email=actor,
            action=AuditAction(action).value,
            details=details
        )
        try:
            self._write(log)
        except Exception as e:
            logger.error(f"Error adding history log: {e}", exc_info=True)
            return None
        return log

    def _write(self, log: HistoryLog):
        raise NotImplementedError

    def get_history_logs(self, limit: int = 50) -> List[HistoryLog]:
        return []


class NullAuditSink(AuditSink):
    """Sink used when no history backend is configured"""

    def _write(self, log: HistoryLog):
        logger.debug(f"{log.action}: {log.details}")


class MemoryAuditSink(AuditSink):

    def __init__(self):
        self.logs: List[HistoryLog] = []

    def _write(self, log: HistoryLog):
        self.logs.append(log)

    def get_history_logs(self, limit: int = 50) -> List[HistoryLog]:
        return sorted(reversed(self.logs), key=lambda log: log.timestamp, reverse=True)[:limit]


class JsonHistorySink(AuditSink):
    """History collection stored as a JSON list"""

    def __init__(self, history_file: str):
        self.history_file = Path(history_file)

    def _read_all(self) -> List[Dict[str, Any]]:
        try:
            return read_json(self.history_file)
        except FileNotFoundError:
            return []

    def _write(self, log: HistoryLog):
        logs = self._read_all()
        logs.append(log.to_dict())
        write_json(self.history_file, logs)

    def get_history_logs(self, limit: int = 50) -> List[HistoryLog]:
        """Newest first"""
        try:
            logs = [HistoryLog.from_dict(item) for item in self._read_all()]
        except Exception as e:
            logger.error(f"Error fetching history logs: {e}", exc_info=True)
            return []
        return sorted(reversed(logs), key=lambda log: log.timestamp, reverse=True)[:limit]
