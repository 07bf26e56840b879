"""
Orchestrator Agent: runs one search → draft → send → inbox → schedule → propose cycle per user.
"""

import json
import logging
import threading
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from agents.base_agent import BaseAgent
from agents.communication_agent import CommunicationAgent
from agents.draft_agent import DraftAgent
from agents.scheduling_agent import SchedulingAgent
from agents.search_agent import SearchAgent
from core.config import Config
from core.cycle_report import CyclePhase, CycleReport, PhaseReport, PhaseStatus
from core.decision_engine import DecisionEngine
from core.errors import AgentError, ValidationError
from governance.instruction_governance import InstructionGovernance
from governance.instruction_store import InstructionStore
from llm.llm_client import GenerationOptions, LLMClient, extract_json_object
from llm.prompts import PromptTemplates
from models import (
    AgentInstruction,
    AgentType,
    Application,
    Communication,
    Direction,
    EmailType,
    Interview,
    Job,
    ProposedInstructionChange,
    UserProfile,
)
from models.base import utcnow
from storage.base import Repository
from utils.audit_logger import AuditLogger

logger = logging.getLogger(__name__)

IMPROVEMENT_OPTIONS = GenerationOptions(
    temperature=0.4, max_tokens=800, system_prompt=PromptTemplates.INSTRUCTION_IMPROVEMENT_SYSTEM
)


@dataclass
class _CycleState:
    """Data handed from one phase to the next within a cycle."""

    new_jobs: List[Job] = field(default_factory=list)
    drafts: List[Application] = field(default_factory=list)
    incoming: List[Communication] = field(default_factory=list)


class OrchestratorAgent(BaseAgent):
    """Controller that sequences the capability agents for one user at a time."""

    def __init__(
        self,
        store: Repository,
        search_agent: SearchAgent,
        draft_agent: DraftAgent,
        communication_agent: CommunicationAgent,
        scheduling_agent: SchedulingAgent,
        instruction_store: InstructionStore,
        governance: InstructionGovernance,
        llm_client: LLMClient,
        config: Optional[Config] = None,
        decision_engine: Optional[DecisionEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize Orchestrator.

        Args:
            store: Entity repository
            search_agent: Finds new jobs
            draft_agent: Drafts applications
            communication_agent: Sends and reads email
            scheduling_agent: Books interviews
            instruction_store: Active instructions per agent type
            governance: Proposal workflow for instruction changes
            llm_client: Text-generation client for improvement proposals
            config: Configuration instance
            decision_engine: Cadence and autonomy policy
            audit_logger: Optional audit logger
            clock: Returns the current UTC time
        """
        super().__init__(name="OrchestratorAgent", store=store, role="orchestrator")
        self.search_agent = search_agent
        self.draft_agent = draft_agent
        self.communication_agent = communication_agent
        self.scheduling_agent = scheduling_agent
        self.instruction_store = instruction_store
        self.governance = governance
        self.llm_client = llm_client
        self.decision_engine = decision_engine or DecisionEngine(config)
        self.audit_logger = audit_logger
        self.clock = clock

        orchestrator_config = config.get_orchestrator_config() if config else {}
        self.metrics_window_days = orchestrator_config.get("metrics_window_days", 30)

        self._phases = [
            (CyclePhase.SEARCH, self._search_phase),
            (CyclePhase.DRAFT, self._draft_phase),
            (CyclePhase.SEND, self._send_phase),
            (CyclePhase.INBOX, self._inbox_phase),
            (CyclePhase.SCHEDULE, self._schedule_phase),
            (CyclePhase.PROPOSE, self._propose_phase),
        ]

    def run_cycle(self, user_id: str, cancel_event: Optional[threading.Event] = None) -> bool:
        """Run one cycle for a user.

        Args:
            user_id: User whose entities the cycle touches
            cancel_event: Set to stop before the next phase

        Returns:
            False only if no phase made progress
        """
        return self.run_cycle_with_report(user_id, cancel_event).made_progress

    def run_cycle_with_report(
        self, user_id: str, cancel_event: Optional[threading.Event] = None
    ) -> CycleReport:
        """Run one cycle and return its per-phase report. Never raises."""
        report = CycleReport(user_id=user_id, started_at=self.clock())
        state = _CycleState()
        self.log(f"Starting cycle {report.cycle_id} for {user_id}")

        current = None
        try:
            for phase, handler in self._phases:
                if cancel_event is not None and cancel_event.is_set():
                    report.mark_cancelled(phase)
                    logger.info(f"[OrchestratorAgent] Cycle cancelled before {phase.value}")
                    continue

                current = phase
                phase_report = report.start_phase(phase)
                self._run_phase(user_id, phase, handler, state, phase_report)
                report.end_phase(phase_report)
            report.complete()
        except Exception as e:
            # Failures outside a phase handler (reporting, bookkeeping)
            self._record_unexpected(user_id, current, e)
            report.complete(error=f"{type(e).__name__}: {e}")

        self.log(
            f"Cycle {report.cycle_id} for {user_id} finished "
            f"(progress={report.made_progress}, failures={len(report.failures)})"
        )
        if self.audit_logger:
            self.audit_logger.log_cycle(report.to_dict())
        return report

    def _run_phase(
        self,
        user_id: str,
        phase: CyclePhase,
        handler: Callable[[str, _CycleState, PhaseReport], None],
        state: _CycleState,
        phase_report: PhaseReport,
    ):
        try:
            handler(user_id, state, phase_report)
        except AgentError as e:
            logger.error(f"[OrchestratorAgent] {phase.value} phase failed for {user_id}: {e}")
            phase_report.status = PhaseStatus.FAILED
            phase_report.add_failure(e)
        except Exception as e:
            self._record_unexpected(user_id, phase, e)
            phase_report.status = PhaseStatus.FAILED
            phase_report.add_failure(e)

    def _record_unexpected(self, user_id: str, phase: Optional[CyclePhase], error: Exception):
        phase_name = phase.value if phase else "cycle"
        logger.exception(
            f"[OrchestratorAgent] Unexpected error in {phase_name} for {user_id}: {error}"
        )
        if self.audit_logger:
            self.audit_logger.log_error(
                type(error).__name__,
                str(error),
                f"cycle.{phase_name}",
                user_id=user_id,
                stacktrace=traceback.format_exc(),
            )

    # Phases

    def _search_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        criteria = self.store.active_criteria(user_id)
        if criteria is None:
            report.status = PhaseStatus.SKIPPED
            report.note = "no active job criteria"
            return

        instruction = self.instruction_store.get_active(user_id, AgentType.SEARCH)
        jobs, failures = self.search_agent.search_with_report(criteria, instruction)
        for item_id, error in failures:
            report.add_failure(error, item_id)

        report.items_in = len(jobs) + len(failures)
        report.items_out = len(jobs)
        state.new_jobs = jobs

    def _draft_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        if not state.new_jobs:
            report.status = PhaseStatus.SKIPPED
            report.note = "no new jobs"
            return

        resume = self.store.get_resume(user_id)
        if resume is None:
            raise ValidationError(f"No resume on file for {user_id}")

        instruction = self.instruction_store.get_active(user_id, AgentType.DRAFT)
        report.items_in = len(state.new_jobs)
        for job in state.new_jobs:
            try:
                state.drafts.append(self.draft_agent.draft(job, resume, instruction))
            except AgentError as e:
                logger.warning(f"[OrchestratorAgent] Draft failed for job {job.id}: {e}")
                report.add_failure(e, job.id)
        report.items_out = len(state.drafts)

    def _send_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        profile = self.store.get_or_none(UserProfile, user_id)
        auto_send, reason = self.decision_engine.should_auto_send(profile)
        if not auto_send:
            report.status = PhaseStatus.SKIPPED
            report.note = reason
            return

        submitted_ids = set()
        for application in state.drafts:
            report.items_in += 1
            try:
                self.communication_agent.submit_application(application)
                submitted_ids.add(application.id)
                report.items_out += 1
            except AgentError as e:
                logger.warning(f"[OrchestratorAgent] Submit failed for {application.id}: {e}")
                report.add_failure(e, application.id)

        instruction = self.instruction_store.get_active(user_id, AgentType.COMMUNICATION)
        for application in self.store.applications_in_flight(user_id):
            if application.id in submitted_ids:
                continue
            if not self.communication_agent.is_follow_up_due(application):
                continue
            report.items_in += 1
            try:
                self.communication_agent.send_follow_up(application, instruction)
                report.items_out += 1
            except AgentError as e:
                logger.warning(f"[OrchestratorAgent] Follow-up failed for {application.id}: {e}")
                report.add_failure(e, application.id)

    def _inbox_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        incoming, failures = self.communication_agent.check_inbox_with_report(user_id)
        for item_id, error in failures:
            report.add_failure(error, item_id)

        report.items_in = len(incoming) + len(failures)
        report.items_out = len(incoming)
        state.incoming = incoming

    def _schedule_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        invitations = [c for c in state.incoming if self.is_interview_invite(c)]
        if not invitations:
            report.status = PhaseStatus.SKIPPED
            report.note = "no interview invitations"
            return

        report.items_in = len(invitations)
        for communication in invitations:
            try:
                self._schedule_invitation(communication)
                report.items_out += 1
            except AgentError as e:
                logger.warning(
                    f"[OrchestratorAgent] Could not schedule from {communication.id}: {e}"
                )
                report.add_failure(e, communication.id)

    def _schedule_invitation(self, communication: Communication) -> Interview:
        if not communication.job_id:
            raise ValidationError(f"Invitation {communication.id} is not linked to a known job")

        job = self.store.get(Job, communication.job_id)
        interview = self.scheduling_agent.schedule_from_communication(job, communication)

        with self.store.transaction() as tx:
            if job.mark_interviewing():
                tx.update(job)
            if communication.application_id:
                application = tx.get(Application, communication.application_id)
                if application.mark_under_review():
                    tx.update(application)
        return interview

    @staticmethod
    def is_interview_invite(communication: Communication) -> bool:
        classification = communication.classification
        return classification is not None and classification.is_interview_invitation

    def _propose_phase(self, user_id: str, state: _CycleState, report: PhaseReport):
        now = self.clock()
        proposals = self.store.find(ProposedInstructionChange, user_id=user_id)
        should_propose, reason = self.decision_engine.should_propose_improvements(proposals, now)
        if not should_propose:
            report.status = PhaseStatus.SKIPPED
            report.note = reason
            return

        pending_for = {p.agent_instruction_id for p in proposals if p.is_pending}
        candidates = [
            i for i in self.instruction_store.active_instructions(user_id) if i.id not in pending_for
        ]
        if not candidates:
            report.status = PhaseStatus.SKIPPED
            report.note = "no instructions without a pending change"
            return

        metrics = self.compute_metrics(user_id, now)
        report.items_in = len(candidates)
        for instruction in candidates:
            try:
                if self._propose_improvement(instruction, metrics):
                    report.items_out += 1
            except AgentError as e:
                logger.warning(
                    f"[OrchestratorAgent] No proposal for {instruction.agent_type.value}: {e}"
                )
                report.add_failure(e, instruction.id)

    def _propose_improvement(self, instruction: AgentInstruction, metrics: Dict[str, Any]) -> bool:
        prompt = PromptTemplates.INSTRUCTION_IMPROVEMENT.format(
            agent_type=instruction.agent_type.value,
            current_instructions=instruction.instructions,
            window_days=self.metrics_window_days,
            metrics=json.dumps(metrics, indent=2),
        )
        suggestion = extract_json_object(self.llm_client.generate(prompt, IMPROVEMENT_OPTIONS))

        if not suggestion.get("should_change"):
            logger.debug(f"[OrchestratorAgent] No change suggested for {instruction.id}")
            return False

        proposed = suggestion.get("proposed_instructions")
        if not isinstance(proposed, str) or not proposed.strip():
            raise ValidationError("Suggestion lacks 'proposed_instructions'")

        self.governance.propose_change(
            instruction,
            proposed,
            suggestion.get("reason") or "Outcome-based improvement",
            metrics=metrics,
            proposed_by="controller",
        )
        return True

    def compute_metrics(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Outcome metrics over the configured window."""
        now = now or self.clock()
        since = now - timedelta(days=self.metrics_window_days)

        jobs = self.store.find(Job, lambda j: j.created_at >= since, user_id=user_id)
        drafts = self.store.find(Application, lambda a: a.created_at >= since, user_id=user_id)
        submissions = [a for a in drafts if a.submitted_at and a.submitted_at >= since]
        incoming = self.store.find(
            Communication,
            lambda c: c.occurred_at >= since,
            user_id=user_id,
            direction=Direction.INCOMING,
        )
        responses = [c for c in incoming if c.job_id]
        rejections = [
            c for c in incoming if c.classification and c.classification.email_type == EmailType.REJECTION
        ]
        interviews = self.store.find(Interview, lambda i: i.created_at >= since, user_id=user_id)

        return {
            "window_days": self.metrics_window_days,
            "jobs_found": len(jobs),
            "drafts": len(drafts),
            "submissions": len(submissions),
            "responses": len(responses),
            "interviews": len(interviews),
            "rejections": len(rejections),
            "response_rate": round(len(responses) / len(submissions), 2) if submissions else 0.0,
        }
