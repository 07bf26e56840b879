"""
Cycle Report - per-phase outcome log for one orchestrator cycle.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.base import format_datetime, new_id, utcnow

logger = logging.getLogger(__name__)


class CyclePhase(Enum):
    """Phases of one cycle, in execution order."""

    SEARCH = "search"
    DRAFT = "draft"
    SEND = "send"
    INBOX = "inbox"
    SCHEDULE = "schedule"
    PROPOSE = "propose"


class PhaseStatus(Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class PhaseFailure:
    """One failure recorded inside a phase."""

    phase: CyclePhase
    error_kind: str
    message: str
    item_id: Optional[str] = None

    @classmethod
    def from_exception(
        cls, phase: CyclePhase, exc: BaseException, item_id: Optional[str] = None
    ) -> "PhaseFailure":
        return cls(
            phase=phase,
            error_kind=getattr(exc, "kind", type(exc).__name__),
            message=str(exc),
            item_id=item_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "error_kind": self.error_kind,
            "message": self.message,
            "item_id": self.item_id,
        }


@dataclass
class PhaseReport:
    """Outcome of one phase."""

    phase: CyclePhase
    status: PhaseStatus = PhaseStatus.COMPLETED
    items_in: int = 0
    items_out: int = 0
    failures: List[PhaseFailure] = field(default_factory=list)
    note: str = ""
    duration_seconds: Optional[float] = None

    def add_failure(self, exc: BaseException, item_id: Optional[str] = None) -> PhaseFailure:
        failure = PhaseFailure.from_exception(self.phase, exc, item_id)
        self.failures.append(failure)
        return failure

    def finalize(self) -> "PhaseReport":
        """Derive the final status from item counts and recorded failures.

        Phases that were skipped, cancelled or already failed keep their status.
        """
        if self.status != PhaseStatus.COMPLETED:
            return self
        if self.failures and self.items_out == 0 and self.items_in > 0:
            self.status = PhaseStatus.FAILED
        elif self.failures:
            self.status = PhaseStatus.PARTIAL
        return self

    @property
    def produced_output(self) -> bool:
        return self.status in (PhaseStatus.COMPLETED, PhaseStatus.PARTIAL) and self.items_out > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "status": self.status.value,
            "items_in": self.items_in,
            "items_out": self.items_out,
            "failures": [f.to_dict() for f in self.failures],
            "note": self.note,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class CycleReport:
    """Structured log of one cycle for one user."""

    user_id: str
    cycle_id: str = field(default_factory=lambda: new_id("cycle"))
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    phases: List[PhaseReport] = field(default_factory=list)
    error: Optional[str] = None
    _phase_started: float = field(default=0.0, repr=False)

    def start_phase(self, phase: CyclePhase, items_in: int = 0) -> PhaseReport:
        report = PhaseReport(phase=phase, items_in=items_in)
        self.phases.append(report)
        self._phase_started = time.monotonic()
        return report

    def end_phase(self, report: PhaseReport) -> PhaseReport:
        report.duration_seconds = round(time.monotonic() - self._phase_started, 3)
        report.finalize()
        logger.info(
            f"[CycleReport] {self.user_id} {report.phase.value}: {report.status.value} "
            f"(in={report.items_in}, out={report.items_out}, failures={len(report.failures)})"
        )
        return report

    def mark_cancelled(self, phase: CyclePhase) -> PhaseReport:
        report = PhaseReport(phase=phase, status=PhaseStatus.CANCELLED, note="cancelled")
        self.phases.append(report)
        return report

    def complete(self, error: Optional[str] = None):
        self.completed_at = utcnow()
        self.error = error

    def phase(self, phase: CyclePhase) -> Optional[PhaseReport]:
        for report in self.phases:
            if report.phase == phase:
                return report
        return None

    @property
    def failures(self) -> List[PhaseFailure]:
        return [f for report in self.phases for f in report.failures]

    @property
    def made_progress(self) -> bool:
        """Whether the cycle moved the user's search forward.

        True when some phase produced output. A cycle with nothing to do
        also counts, as long as no phase failed and it was not cancelled
        before running anything.
        """
        if any(report.produced_output for report in self.phases):
            return True
        if any(report.status == PhaseStatus.FAILED for report in self.phases):
            return False
        return any(report.status != PhaseStatus.CANCELLED for report in self.phases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "user_id": self.user_id,
            "started_at": format_datetime(self.started_at),
            "completed_at": format_datetime(self.completed_at),
            "made_progress": self.made_progress,
            "error": self.error,
            "phases": [report.to_dict() for report in self.phases],
        }
