"""
Tests for the OrchestratorAgent cycle.
"""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import Mock

from agents.communication_agent import CommunicationAgent
from agents.draft_agent import DraftAgent
from agents.orchestrator_agent import OrchestratorAgent
from agents.scheduling_agent import SchedulingAgent
from agents.search_agent import SearchAgent
from core.cycle_report import CyclePhase, PhaseStatus
from core.errors import ProviderError, UnknownRecipientError, ValidationError
from governance import InstructionGovernance, InstructionStore
from llm.llm_client import LLMClient
from models import (
    AgentType,
    Application,
    ApplicationStatus,
    ChangeStatus,
    Communication,
    Direction,
    EmailClassification,
    EmailType,
    IncomingEmailMetadata,
    Interview,
    Job,
    JobCriteria,
    JobStatus,
    ProposedInstructionChange,
    Resume,
    UserProfile,
)
from storage.memory import InMemoryStore
from utils.audit_logger import AuditLogger

NOW = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)
SUGGESTION = {"should_change": True, "proposed_instructions": "Be more specific", "reason": "Few replies"}


def make_job(store=None, **kwargs):
    defaults = dict(user_id="u1", title="Engineer", company="Acme", job_link=f"https://acme.com/jobs/{kwargs.get('n', 1)}")
    kwargs.pop("n", None)
    defaults.update(kwargs)
    job = Job(**defaults)
    return store.add(job) if store else job


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def search_agent():
    agent = Mock(spec=SearchAgent)
    agent.search_with_report.return_value = ([], [])
    return agent


@pytest.fixture
def draft_agent():
    return Mock(spec=DraftAgent)


@pytest.fixture
def communication_agent():
    agent = Mock(spec=CommunicationAgent)
    agent.check_inbox_with_report.return_value = ([], [])
    agent.is_follow_up_due.return_value = False
    return agent


@pytest.fixture
def llm_client():
    client = Mock(spec=LLMClient)
    client.generate.return_value = json.dumps(SUGGESTION)
    return client


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def instruction_store(store):
    return InstructionStore(store)


@pytest.fixture
def governance(store):
    return InstructionGovernance(store, clock=lambda: NOW)


@pytest.fixture
def orchestrator(store, search_agent, draft_agent, communication_agent, instruction_store, governance, llm_client, audit):
    return OrchestratorAgent(
        store,
        search_agent,
        draft_agent,
        communication_agent,
        SchedulingAgent(store),
        instruction_store,
        governance,
        llm_client,
        audit_logger=audit,
        clock=lambda: NOW,
    )


def status_of(report, phase):
    return report.phase(phase).status


def test_empty_user_makes_trivial_progress(orchestrator, search_agent, audit):
    report = orchestrator.run_cycle_with_report("u1")

    assert report.made_progress
    assert status_of(report, CyclePhase.SEARCH) == PhaseStatus.SKIPPED
    assert status_of(report, CyclePhase.DRAFT) == PhaseStatus.SKIPPED
    assert status_of(report, CyclePhase.SEND) == PhaseStatus.SKIPPED
    assert status_of(report, CyclePhase.INBOX) == PhaseStatus.COMPLETED
    assert status_of(report, CyclePhase.SCHEDULE) == PhaseStatus.SKIPPED
    assert status_of(report, CyclePhase.PROPOSE) == PhaseStatus.SKIPPED
    search_agent.search_with_report.assert_not_called()
    audit.log_cycle.assert_called_once()
    assert audit.log_cycle.call_args[0][0]["user_id"] == "u1"


def test_search_failure_does_not_stop_cycle(orchestrator, store, search_agent, communication_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    search_agent.search_with_report.side_effect = ProviderError("down", provider="tavily", status_code=503)
    invite = Communication(user_id="u1", direction=Direction.INCOMING)
    communication_agent.check_inbox_with_report.return_value = ([invite], [])

    report = orchestrator.run_cycle_with_report("u1")

    search = report.phase(CyclePhase.SEARCH)
    assert search.status == PhaseStatus.FAILED
    assert search.failures[0].error_kind == "ProviderError"
    assert (status_of(report, CyclePhase.INBOX), report.phase(CyclePhase.INBOX).items_out) == (PhaseStatus.COMPLETED, 1)
    assert report.made_progress
    communication_agent.check_inbox_with_report.assert_called_with("u1")


def test_search_failure_with_empty_inbox_makes_no_progress(orchestrator, store, search_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    search_agent.search_with_report.side_effect = ProviderError("down", provider="tavily", status_code=503)

    assert orchestrator.run_cycle("u1") is False


def test_all_providers_down_makes_no_progress(orchestrator, store, search_agent, communication_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    search_agent.search_with_report.side_effect = ProviderError("down", provider="tavily", status_code=503)
    communication_agent.check_inbox_with_report.side_effect = ProviderError("expired", provider="gmail", status_code=401)

    report = orchestrator.run_cycle_with_report("u1")

    assert {p.phase.value: p.status.value for p in report.phases} == {
        "search": "failed",
        "draft": "skipped",
        "send": "skipped",
        "inbox": "failed",
        "schedule": "skipped",
        "propose": "skipped",
    }
    assert not report.made_progress
    assert orchestrator.run_cycle("u1") is False


def test_full_pipeline_with_item_failures(orchestrator, store, search_agent, draft_agent, communication_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    resume = store.add(Resume(user_id="u1", skills=["Python"]))
    store.add(UserProfile(user_id="u1", email="me@example.com", auto_send_applications=True, resume_id=resume.id))

    first, second, third = (make_job(store, n=n) for n in (1, 2, 3))
    search_agent.search_with_report.return_value = (
        [first, second, third],
        [("https://bad.example/jobs/9", ValidationError("bad verdict"))],
    )
    drafts = [Application(user_id="u1", job_id=first.id), Application(user_id="u1", job_id=third.id)]
    draft_agent.draft.side_effect = [drafts[0], ValidationError("empty letter"), drafts[1]]
    communication_agent.submit_application.side_effect = [Mock(), UnknownRecipientError("no email")]

    report = orchestrator.run_cycle_with_report("u1")

    search = report.phase(CyclePhase.SEARCH)
    assert (search.status, search.items_in, search.items_out) == (PhaseStatus.PARTIAL, 4, 3)
    draft = report.phase(CyclePhase.DRAFT)
    assert (draft.status, draft.items_out) == (PhaseStatus.PARTIAL, 2)
    assert draft.failures[0].item_id == second.id
    send = report.phase(CyclePhase.SEND)
    assert send.status == PhaseStatus.PARTIAL
    assert send.failures[0].error_kind == "UnknownRecipientError"
    assert send.failures[0].item_id == drafts[1].id
    assert [c[0][0] for c in communication_agent.submit_application.call_args_list] == drafts
    assert report.made_progress


def test_follow_ups_sent_when_due(orchestrator, store, communication_agent):
    store.add(UserProfile(user_id="u1", email="me@example.com", auto_send_applications=True))
    job = make_job(store)
    due = Application(user_id="u1", job_id=job.id)
    due.submit(at=NOW - timedelta(days=6))
    store.add(due)
    communication_agent.is_follow_up_due.return_value = True

    report = orchestrator.run_cycle_with_report("u1")

    send = report.phase(CyclePhase.SEND)
    assert (send.status, send.items_in, send.items_out) == (PhaseStatus.COMPLETED, 1, 1)
    sent_for = communication_agent.send_follow_up.call_args[0][0]
    assert sent_for.id == due.id


def test_send_skipped_without_auto_send(orchestrator, store, search_agent, draft_agent, communication_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    store.add(Resume(user_id="u1"))
    store.add(UserProfile(user_id="u1", email="me@example.com"))
    job = make_job(store)
    search_agent.search_with_report.return_value = ([job], [])
    draft_agent.draft.return_value = Application(user_id="u1", job_id=job.id)

    report = orchestrator.run_cycle_with_report("u1")

    assert status_of(report, CyclePhase.SEND) == PhaseStatus.SKIPPED
    assert "disabled" in report.phase(CyclePhase.SEND).note
    communication_agent.submit_application.assert_not_called()


def test_missing_resume_fails_draft_phase(orchestrator, store, search_agent, draft_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    search_agent.search_with_report.return_value = ([make_job(store)], [])

    report = orchestrator.run_cycle_with_report("u1")

    assert status_of(report, CyclePhase.DRAFT) == PhaseStatus.FAILED
    assert report.phase(CyclePhase.DRAFT).failures[0].error_kind == "ValidationError"
    draft_agent.draft.assert_not_called()


def test_interview_invitation_is_scheduled(orchestrator, store, communication_agent):
    job = make_job(store)
    job.mark_applied()
    store.update(job)
    application = Application(user_id="u1", job_id=job.id)
    application.submit(at=NOW - timedelta(days=3))
    store.add(application)

    when = NOW + timedelta(days=5)
    invite = Communication(
        user_id="u1",
        direction=Direction.INCOMING,
        job_id=job.id,
        application_id=application.id,
        metadata=IncomingEmailMetadata(
            sender="hr@acme.com",
            classification=EmailClassification(
                is_job_related=True, email_type=EmailType.INTERVIEW_INVITATION, interview_datetime=when
            ),
        ),
    )
    unlinked = Communication(
        user_id="u1",
        direction=Direction.INCOMING,
        metadata=IncomingEmailMetadata(
            sender="hr@other.com",
            classification=EmailClassification(
                is_job_related=True, email_type=EmailType.INTERVIEW_INVITATION, interview_datetime=when
            ),
        ),
    )
    communication_agent.check_inbox_with_report.return_value = ([invite, unlinked], [])

    report = orchestrator.run_cycle_with_report("u1")

    schedule = report.phase(CyclePhase.SCHEDULE)
    assert (schedule.status, schedule.items_in, schedule.items_out) == (PhaseStatus.PARTIAL, 2, 1)
    assert schedule.failures[0].item_id == unlinked.id
    interviews = store.find(Interview)
    assert len(interviews) == 1
    assert interviews[0].scheduled_at == when
    assert store.get(Job, job.id).status == JobStatus.INTERVIEWING
    assert store.get(Application, application.id).status == ApplicationStatus.UNDER_REVIEW


def test_controller_proposes_changes_for_review(orchestrator, store, instruction_store, llm_client):
    instruction_store.seed_defaults("u1")
    search_instruction = instruction_store.get_active("u1", AgentType.SEARCH)
    store.add(
        ProposedInstructionChange(
            user_id="u1",
            agent_instruction_id=search_instruction.id,
            agent_type=AgentType.SEARCH,
            current_instructions=search_instruction.instructions,
            proposed_instructions="Human edit",
            reason="manual",
            created_at=NOW - timedelta(days=30),
        )
    )
    active = instruction_store.active_instructions("u1")

    report = orchestrator.run_cycle_with_report("u1")

    propose = report.phase(CyclePhase.PROPOSE)
    assert propose.status == PhaseStatus.COMPLETED
    assert propose.items_in == len(active) - 1
    controller_changes = store.find(ProposedInstructionChange, proposed_by="controller")
    assert len(controller_changes) == len(active) - 1
    assert all(c.status == ChangeStatus.PENDING for c in controller_changes)
    assert search_instruction.id not in {c.agent_instruction_id for c in controller_changes}
    assert "jobs_found" in controller_changes[0].metrics
    # Live instructions are untouched until a human approves
    for instruction in instruction_store.active_instructions("u1"):
        assert instruction.instructions != "Be more specific"

    second = orchestrator.run_cycle_with_report("u1")
    assert status_of(second, CyclePhase.PROPOSE) == PhaseStatus.SKIPPED


def test_bad_suggestions_are_item_failures(orchestrator, instruction_store, llm_client):
    instruction_store.create("u1", AgentType.DRAFT, "Write formal letters")
    instruction_store.create("u1", AgentType.SEARCH, "Remote only")
    llm_client.generate.side_effect = [
        "not json",
        json.dumps({"should_change": True, "proposed_instructions": "Remote only", "reason": "same"}),
    ]

    report = orchestrator.run_cycle_with_report("u1")

    propose = report.phase(CyclePhase.PROPOSE)
    assert propose.status == PhaseStatus.FAILED
    assert sorted(f.error_kind for f in propose.failures) == ["GovernanceError", "ValidationError"]


def test_no_change_suggested(orchestrator, store, instruction_store, llm_client):
    instruction_store.create("u1", AgentType.DRAFT, "Write formal letters")
    llm_client.generate.return_value = json.dumps({"should_change": False})

    report = orchestrator.run_cycle_with_report("u1")

    propose = report.phase(CyclePhase.PROPOSE)
    assert (propose.status, propose.items_in, propose.items_out) == (PhaseStatus.COMPLETED, 1, 0)
    assert store.find(ProposedInstructionChange) == []


def test_cancel_before_start_makes_no_progress(orchestrator, communication_agent):
    cancel = threading.Event()
    cancel.set()

    assert not orchestrator.run_cycle("u1", cancel)
    communication_agent.check_inbox_with_report.assert_not_called()


def test_cancel_between_phases(orchestrator, store, search_agent, communication_agent):
    store.add(JobCriteria(user_id="u1", title="Engineer"))
    cancel = threading.Event()

    def search_then_cancel(criteria, instruction):
        cancel.set()
        return [], []

    search_agent.search_with_report.side_effect = search_then_cancel

    report = orchestrator.run_cycle_with_report("u1", cancel)

    assert status_of(report, CyclePhase.SEARCH) == PhaseStatus.COMPLETED
    for phase in (CyclePhase.DRAFT, CyclePhase.SEND, CyclePhase.INBOX, CyclePhase.SCHEDULE, CyclePhase.PROPOSE):
        assert status_of(report, phase) == PhaseStatus.CANCELLED
    assert report.made_progress
    communication_agent.check_inbox_with_report.assert_not_called()


def test_unexpected_error_is_contained(orchestrator, communication_agent, audit):
    communication_agent.check_inbox_with_report.side_effect = RuntimeError("kaboom")

    report = orchestrator.run_cycle_with_report("u1")

    inbox = report.phase(CyclePhase.INBOX)
    assert inbox.status == PhaseStatus.FAILED
    assert inbox.failures[0].error_kind == "RuntimeError"
    assert status_of(report, CyclePhase.PROPOSE) == PhaseStatus.SKIPPED
    audit.log_error.assert_called_once()
    assert audit.log_error.call_args[0][2] == "cycle.inbox"


def test_compute_metrics(orchestrator, store):
    job = make_job(store)
    make_job(store, n=2, created_at=NOW - timedelta(days=90))
    submitted = Application(user_id="u1", job_id=job.id, created_at=NOW - timedelta(days=10))
    submitted.submit(at=NOW - timedelta(days=10))
    store.add(submitted)
    store.add(Application(user_id="u1", job_id=job.id, created_at=NOW - timedelta(days=2)))
    store.add(
        Communication(
            user_id="u1",
            direction=Direction.INCOMING,
            job_id=job.id,
            sent_at=NOW - timedelta(days=1),
            metadata=IncomingEmailMetadata(
                sender="hr@acme.com",
                classification=EmailClassification(is_job_related=True, email_type=EmailType.REJECTION),
            ),
        )
    )

    metrics = orchestrator.compute_metrics("u1")

    assert metrics["jobs_found"] == 1
    assert metrics["drafts"] == 2
    assert metrics["submissions"] == 1
    assert metrics["responses"] == 1
    assert metrics["rejections"] == 1
    assert metrics["response_rate"] == 1.0
    assert metrics["window_days"] == 30
