"""
Audit Logging for the job-search agents

This module provides structured logging for autonomous operations:
- Cycle reports (one JSON document per user cycle)
- Outbound and inbound communications
- Instruction proposals and their review
- Errors caught at the cycle boundary

Each log category is stored in a separate file for easy filtering and analysis.
"""

import json
import logging
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

CATEGORIES = ["cycles", "communications", "governance", "errors"]

SENSITIVE_KEYS = [
    "password",
    "api_key",
    "token",
    "secret",
    "salary",
    "ssn",
    "phone",
]


class AuditLogger:
    """
    Audit logging system for the agent orchestrator.

    Features:
    - Separate log files per category
    - Structured JSON lines
    - Automatic log rotation
    - Sensitive data filtering
    """

    def __init__(self, audit_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the audit logger.

        Args:
            audit_config: The ``audit`` config section (see Config.get_audit_config)
        """
        self.audit_config = audit_config or {}
        self.enabled = self.audit_config.get("enabled", True)
        self.logs_dir = Path(self.audit_config.get("logs_dir", "logs"))

        self.loggers: Dict[str, logging.Logger] = {}
        if self.enabled:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            self._setup_loggers()

    def _log_file(self, category: str) -> Path:
        log_files = self.audit_config.get("logs", {}) or {}
        return Path(log_files.get(category, self.logs_dir / f"{category}.log"))

    def _setup_loggers(self):
        """Set up separate loggers for each log category."""
        log_level = getattr(logging, self.audit_config.get("log_level", "INFO"))
        log_format = self.audit_config.get(
            "format", "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
        )
        date_format = self.audit_config.get("date_format", "%Y-%m-%d %H:%M:%S")

        retention = self.audit_config.get("retention", {}) or {}
        max_bytes = retention.get("max_size_mb", 50) * 1024 * 1024
        backup_count = retention.get("backup_count", 10)

        for category in CATEGORIES:
            logger = logging.getLogger(f"audit.{category}")
            logger.setLevel(log_level)
            logger.propagate = False

            # Remove existing handlers
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()

            handler = RotatingFileHandler(
                self._log_file(category),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
            logger.addHandler(handler)

            self.loggers[category] = logger

    def _should_log(self, event_type: str) -> bool:
        """Check if this event type should be logged."""
        if not self.enabled:
            return False

        log_events = self.audit_config.get("log_events", {}) or {}
        return log_events.get(event_type, True)

    def _sanitize_data(self, data: Dict) -> Dict:
        """Remove sensitive data from logs if configured."""
        if self.audit_config.get("include_sensitive", False):
            return data

        sanitized = {}
        for key, value in data.items():
            if any(sens in key.lower() for sens in SENSITIVE_KEYS):
                sanitized[key] = "***REDACTED***"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_data(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized

    def _write(self, category: str, data: Dict[str, Any], level: int = logging.INFO):
        data = {"timestamp": datetime.now().isoformat(), **data}
        self.loggers[category].log(level, json.dumps(self._sanitize_data(data), default=str))

    def log_cycle(self, report: Dict[str, Any]):
        """Log a finished cycle report (CycleReport.to_dict())."""
        if not self._should_log("cycles"):
            return
        self._write("cycles", {"event": "cycle_report", **report})

    def log_communication(
        self,
        user_id: str,
        direction: str,
        kind: str,  # "submission", "follow_up", "incoming_email", "notification"
        success: bool,
        application_id: Optional[str] = None,
        job_id: Optional[str] = None,
        subject: Optional[str] = None,
        counterpart: Optional[str] = None,
        error: Optional[str] = None,
    ):
        """Log a sent or received message."""
        if not self._should_log("communications"):
            return

        self._write(
            "communications",
            {
                "event": "communication",
                "user_id": user_id,
                "direction": direction,
                "kind": kind,
                "success": success,
                "application_id": application_id,
                "job_id": job_id,
                "subject": subject,
                "counterpart": counterpart,
                "error": error,
            },
        )

    def log_governance(
        self,
        event: str,  # "proposed", "approved", "rejected", "instruction_created", ...
        user_id: str,
        change_id: Optional[str] = None,
        instruction_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        proposed_by: Optional[str] = None,
        feedback: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ):
        """Log an instruction governance event."""
        if not self._should_log("governance"):
            return

        self._write(
            "governance",
            {
                "event": event,
                "user_id": user_id,
                "change_id": change_id,
                "instruction_id": instruction_id,
                "agent_type": agent_type,
                "proposed_by": proposed_by,
                "feedback": feedback,
                "metadata": metadata or {},
            },
        )

    def log_error(
        self,
        error_type: str,
        error_message: str,
        operation: str,
        user_id: Optional[str] = None,
        stacktrace: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ):
        """Log an error event."""
        if not self._should_log("errors"):
            return

        self._write(
            "errors",
            {
                "event": "error",
                "error_type": error_type,
                "error_message": error_message,
                "operation": operation,
                "user_id": user_id,
                "stacktrace": stacktrace,
                "metadata": metadata or {},
            },
            level=logging.ERROR,
        )

    def read_events(
        self,
        category: str,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Retrieve events of one category from the log file.

        Args:
            category: One of CATEGORIES
            user_id: Filter by user ID
            start_date: Filter by start date

        Returns:
            List of events, oldest first
        """
        events = []
        try:
            with open(self._log_file(category), "r", encoding="utf-8") as f:
                for line in f:
                    if " | " not in line:
                        continue
                    try:
                        data = json.loads(line.split(" | ", 3)[-1].strip())
                        if user_id and data.get("user_id") != user_id:
                            continue
                        if start_date and datetime.fromisoformat(data["timestamp"]) < start_date:
                            continue
                        events.append(data)
                    except (json.JSONDecodeError, KeyError, ValueError):
                        continue
        except FileNotFoundError:
            pass

        return events

    def get_statistics(self, days: int = 7) -> Dict[str, Any]:
        """
        Get cycle statistics for the last N days.

        Args:
            days: Number of days to analyze

        Returns:
            Dictionary with statistics
        """
        start_date = datetime.now() - timedelta(days=days)
        cycles = self.read_events("cycles", start_date=start_date)

        stats = {
            "period_days": days,
            "total_cycles": len(cycles),
            "cycles_without_progress": sum(1 for c in cycles if not c.get("made_progress")),
            "failures_by_kind": {},
        }
        for cycle in cycles:
            for phase in cycle.get("phases", []):
                for failure in phase.get("failures", []):
                    kind = failure.get("error_kind", "unknown")
                    stats["failures_by_kind"][kind] = stats["failures_by_kind"].get(kind, 0) + 1

        return stats


# Global audit logger instance
_audit_logger = None


def get_audit_logger(audit_config: Optional[Dict[str, Any]] = None) -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger(audit_config)
    return _audit_logger
