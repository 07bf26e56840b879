"""
Unit tests for Draft Agent.
"""

import pytest
from unittest.mock import Mock

from agents.draft_agent import DraftAgent, matching_skills
from core.errors import ProviderError, ValidationError
from llm.llm_client import LLMClient
from models import AgentInstruction, AgentType, Application, ApplicationStatus, Education, Job, Resume
from storage.memory import InMemoryStore


@pytest.fixture
def mock_llm_client():
    client = Mock(spec=LLMClient)
    client.generate.return_value = "  Dear Hiring Manager,\n\nI would love to join Acme.  "
    return client


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def draft_agent(mock_llm_client, store):
    return DraftAgent(mock_llm_client, store)


@pytest.fixture
def job():
    return Job(
        user_id="u1",
        title="Backend Engineer",
        company="Acme",
        job_link="https://acme.com/careers/1",
        description="Build APIs",
        required_skills=["Python", "PostgreSQL"],
        preferred_skills=["AWS"],
    )


@pytest.fixture
def resume():
    return Resume(
        user_id="u1",
        skills=["python", "Go", "AWS"],
        experience_years=5,
        education=[Education(degree="BSc", field_of_study="Computer Science", school="MIT")],
    )


def test_draft_creates_stored_application(draft_agent, store, job, resume):
    application = draft_agent.draft(job, resume)

    assert application.status == ApplicationStatus.DRAFT
    assert application.cover_letter.startswith("Dear Hiring Manager")
    assert application.resume_id == resume.id
    assert application.metadata.generated_at is not None
    assert store.get(Application, application.id).job_id == job.id


def test_draft_snapshots_instruction(draft_agent, mock_llm_client, job, resume):
    instruction = AgentInstruction(user_id="u1", agent_type=AgentType.DRAFT, instructions="Keep it short")

    application = draft_agent.draft(job, resume, instruction)

    assert application.metadata.instruction_snapshot == "Keep it short"
    assert "Keep it short" in mock_llm_client.generate.call_args[0][0]


def test_prompt_contains_profile_details(job, resume):
    prompt = DraftAgent.build_prompt(job, resume, "")

    assert "Backend Engineer" in prompt
    assert "BSc in Computer Science from MIT" in prompt
    assert "python" in prompt


def test_empty_letter_is_rejected(draft_agent, mock_llm_client, store, job, resume):
    mock_llm_client.generate.return_value = "   "

    with pytest.raises(ValidationError):
        draft_agent.draft(job, resume)
    assert store.find(Application) == []


def test_provider_error_propagates(draft_agent, mock_llm_client, job, resume):
    mock_llm_client.generate.side_effect = ProviderError("rate limited", provider="anthropic", status_code=429)

    with pytest.raises(ProviderError):
        draft_agent.draft(job, resume)


def test_matching_skills_is_case_insensitive(job):
    assert matching_skills(["python", "Go", "aws"], job) == ["python", "aws"]
