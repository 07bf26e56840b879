"""
Unit tests for Search Agent.
"""

import json

import pytest
from unittest.mock import Mock

from agents.search_agent import SearchAgent, build_search_query, is_valid_job_posting, normalize_link
from core.config import Config
from core.errors import ProviderError
from llm.llm_client import LLMClient
from models import AgentInstruction, AgentType, Job, JobCriteria, JobStatus
from providers.search import SearchHit, SearchProvider
from storage.memory import InMemoryStore

LINKEDIN_URL = "https://www.linkedin.com/jobs/view/123"

MATCH = {
    "matches_criteria": True,
    "confidence_score": 0.9,
    "reason": "Good fit",
    "extracted_info": {
        "title": "Software Engineer",
        "company": "Acme",
        "location": "Remote",
        "salary_min": 130000,
        "salary_max": 160000,
        "job_type": "full-time",
        "required_skills": ["Python"],
        "preferred_skills": ["AWS"],
        "description": "Build services",
    },
}


def hit(url=LINKEDIN_URL, title="Software Engineer - Acme"):
    return SearchHit(title=title, url=url, content="We are hiring a software engineer.")


@pytest.fixture
def mock_search_provider():
    """Create a mock SearchProvider instance."""
    return Mock(spec=SearchProvider)


@pytest.fixture
def mock_llm_client():
    """Create a mock LLMClient instance."""
    client = Mock(spec=LLMClient)
    client.generate.return_value = json.dumps(MATCH)
    return client


@pytest.fixture
def mock_config():
    """Create a mock Config instance."""
    config = Mock(spec=Config)
    config.get_search_config.return_value = {
        "job_domains": ["linkedin.com"],
        "max_results": 5,
        "min_confidence": 0.5,
    }
    return config


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def search_agent(mock_search_provider, mock_llm_client, mock_config, store):
    """Create a SearchAgent instance."""
    return SearchAgent(mock_search_provider, mock_llm_client, mock_config, store)


@pytest.fixture
def criteria():
    return JobCriteria(user_id="u1", title="Software Engineer", min_salary=120000)


def test_search_creates_job_from_matching_verdict(search_agent, mock_search_provider, criteria, store):
    """A matching linkedin result becomes exactly one new Job."""
    mock_search_provider.search.return_value = [hit()]

    jobs = search_agent.search(criteria)

    assert len(jobs) == 1
    job = jobs[0]
    assert job.status == JobStatus.NEW
    assert job.title == "Software Engineer"
    assert job.company == "Acme"
    assert job.salary_min == 130000
    assert job.job_link == LINKEDIN_URL
    assert store.get(Job, job.id).company == "Acme"

    query, options = mock_search_provider.search.call_args[0]
    assert query == "Software Engineer $120,000+ salary"
    assert options.domain_allow_list == ["linkedin.com"]
    assert options.max_results == 5


def test_search_drops_malformed_verdicts(search_agent, mock_search_provider, mock_llm_client, criteria):
    mock_search_provider.search.return_value = [
        hit(url="https://www.linkedin.com/jobs/view/1"),
        hit(url="https://www.linkedin.com/jobs/view/2"),
        hit(url="https://www.linkedin.com/jobs/view/3"),
    ]
    mock_llm_client.generate.side_effect = [
        "not json at all",
        json.dumps({"confidence_score": 0.9}),
        json.dumps(MATCH),
    ]

    jobs, failures = search_agent.search_with_report(criteria)

    assert [j.job_link for j in jobs] == ["https://www.linkedin.com/jobs/view/3"]
    assert [url for url, _ in failures] == [
        "https://www.linkedin.com/jobs/view/1",
        "https://www.linkedin.com/jobs/view/2",
    ]
    assert all(e.kind == "ValidationError" for _, e in failures)


def test_search_never_returns_duplicate_links(search_agent, mock_search_provider, mock_llm_client, criteria):
    mock_search_provider.search.return_value = [
        hit(url=LINKEDIN_URL),
        hit(url=LINKEDIN_URL + "/?utm_source=feed"),
        hit(url=LINKEDIN_URL),
    ]

    jobs = search_agent.search(criteria)

    assert len(jobs) == 1
    assert mock_llm_client.generate.call_count == 1


def test_search_skips_already_stored_links(search_agent, mock_search_provider, mock_llm_client, criteria, store):
    store.add(Job(user_id="u1", title="Old", company="Acme", job_link=LINKEDIN_URL))
    mock_search_provider.search.return_value = [hit()]

    assert search_agent.search(criteria) == []
    mock_llm_client.generate.assert_not_called()


def test_search_filters_non_postings_and_low_confidence(
    search_agent, mock_search_provider, mock_llm_client, criteria
):
    mock_search_provider.search.return_value = [
        hit(url="https://example.com/blog/how-to-get-hired", title="Blog: tips for job hunting"),
        hit(),
    ]
    mock_llm_client.generate.return_value = json.dumps({**MATCH, "confidence_score": 0.2})

    assert search_agent.search(criteria) == []
    assert mock_llm_client.generate.call_count == 1


def test_search_propagates_provider_error(search_agent, mock_search_provider, criteria):
    mock_search_provider.search.side_effect = ProviderError("down", provider="tavily", status_code=503)

    with pytest.raises(ProviderError):
        search_agent.search(criteria)


def test_instruction_text_reaches_prompt(search_agent, mock_search_provider, mock_llm_client, criteria):
    mock_search_provider.search.return_value = [hit()]
    instruction = AgentInstruction(user_id="u1", agent_type=AgentType.SEARCH, instructions="Only remote roles")

    search_agent.search(criteria, instruction)

    prompt = mock_llm_client.generate.call_args[0][0]
    assert "Only remote roles" in prompt


def test_helpers():
    assert normalize_link("HTTPS://Jobs.Acme.com/role/1/?utm_campaign=x&id=7") == "https://jobs.acme.com/role/1?id=7"
    assert is_valid_job_posting(hit(url="https://acme.com/careers/42"))
    assert not is_valid_job_posting(SearchHit(title="", url=LINKEDIN_URL, content="x"))
    assert build_search_query(JobCriteria(user_id="u1")) == "job openings"
    assert (
        build_search_query(JobCriteria(user_id="u1", title="Engineer", keywords=("python",), location="Berlin"))
        == "Engineer python in Berlin"
    )
