"""
Search Agent: discovers job postings through web search and screens them with an LLM.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from agents.base_agent import BaseAgent
from core.config import DEFAULT_JOB_DOMAINS, Config
from core.errors import AgentError, ProviderError, ValidationError
from llm.llm_client import GenerationOptions, LLMClient, extract_json_object
from llm.prompts import PromptTemplates
from models import AgentInstruction, Job, JobCriteria
from providers.search import SearchHit, SearchOptions, SearchProvider
from storage.base import Repository

logger = logging.getLogger(__name__)

JOB_URL_PATTERNS = [
    "linkedin.com/jobs",
    "indeed.com/job",
    "glassdoor.com/job",
    "careers.",
    "jobs.",
    "/job/",
    "/careers/",
]
JOB_KEYWORDS = ["job", "career", "position", "opening", "hiring", "vacancy"]
BLOG_KEYWORDS = ["blog", "article", "news", "about", "tips", "guide", "how to"]

TRACKING_PARAMS = {"gclid", "fbclid", "refid", "trackingid", "trk", "ref", "src"}

ANALYSIS_OPTIONS = GenerationOptions(
    temperature=0.2, max_tokens=500, system_prompt=PromptTemplates.JOB_ANALYSIS_SYSTEM
)

# (item id, exception) pairs for candidates that failed analysis
ItemFailure = Tuple[str, AgentError]


def normalize_link(url: str) -> str:
    """Canonical form of a posting URL used for duplicate suppression."""
    parts = urlsplit(url.strip())
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS and not k.lower().startswith("utm_")
    ]
    path = parts.path.rstrip("/")
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, urlencode(query), "")
    )


def is_valid_job_posting(hit: SearchHit) -> bool:
    """Heuristic job-board filter applied before any LLM call."""
    if not hit.title or not hit.url or not hit.content:
        return False

    url = hit.url.lower()
    if any(pattern in url for pattern in JOB_URL_PATTERNS):
        return True

    title = hit.title.lower()
    if any(keyword in title for keyword in JOB_KEYWORDS):
        return not any(keyword in title for keyword in BLOG_KEYWORDS)

    return False


def build_search_query(criteria: JobCriteria) -> str:
    """Free-text query from criteria; omitted fields are skipped."""
    parts = []
    if criteria.title:
        parts.append(criteria.title)
    if criteria.keywords:
        parts.append(" ".join(k for k in criteria.keywords if k))
    if criteria.location:
        parts.append(f"in {criteria.location}")
    if criteria.job_type:
        parts.append(criteria.job_type)
    if criteria.min_salary:
        parts.append(f"${int(criteria.min_salary):,}+ salary")
    return " ".join(p for p in parts if p) or "job openings"


class SearchAgent(BaseAgent):
    """Agent responsible for discovering and screening job postings."""

    def __init__(
        self,
        search_provider: SearchProvider,
        llm_client: LLMClient,
        config: Optional[Config] = None,
        store: Optional[Repository] = None,
    ):
        """Initialize Search Agent.

        Args:
            search_provider: Web-search provider
            llm_client: Text-generation client used to screen results
            config: Configuration instance
            store: Repository for persisting new jobs (optional)
        """
        super().__init__(name="SearchAgent", store=store, role="search")
        self.search_provider = search_provider
        self.llm_client = llm_client

        search_config = config.get_search_config() if config else {}
        self.job_domains = search_config.get("job_domains") or DEFAULT_JOB_DOMAINS
        self.max_results = search_config.get("max_results", 20)
        self.min_confidence = search_config.get("min_confidence", 0.0)

    def search(
        self, criteria: JobCriteria, instruction: Optional[AgentInstruction] = None
    ) -> List[Job]:
        """Search for jobs matching the criteria.

        Args:
            criteria: The user's active job criteria
            instruction: Active search instruction (optional)

        Returns:
            New jobs in provider order, without duplicate links

        Raises:
            ProviderError: if the search provider fails
        """
        jobs, _ = self.search_with_report(criteria, instruction)
        return jobs

    def search_with_report(
        self, criteria: JobCriteria, instruction: Optional[AgentInstruction] = None
    ) -> Tuple[List[Job], List[ItemFailure]]:
        """Like ``search`` but also returns per-candidate failures."""
        query = build_search_query(criteria)
        hits = self.search_provider.search(
            query,
            SearchOptions(domain_allow_list=list(self.job_domains), max_results=self.max_results),
        )
        self.log(f"Query '{query}' returned {len(hits)} result(s)")

        jobs: List[Job] = []
        failures: List[ItemFailure] = []
        seen: Set[str] = set()

        for hit in hits:
            if not is_valid_job_posting(hit):
                logger.debug(f"[SearchAgent] Skipping non-posting {hit.url}")
                continue

            link = normalize_link(hit.url)
            if link in seen or self._already_stored(criteria.user_id, hit.url):
                logger.debug(f"[SearchAgent] Duplicate link {hit.url}")
                continue
            seen.add(link)

            try:
                verdict = self.analyze_posting(hit, criteria, instruction)
            except (ProviderError, ValidationError) as e:
                logger.warning(f"[SearchAgent] Dropping {hit.url}: {e}")
                failures.append((hit.url, e))
                continue

            if not verdict["matches_criteria"]:
                logger.debug(f"[SearchAgent] No match: {hit.url} ({verdict.get('reason')})")
                continue

            confidence = _as_float(verdict.get("confidence_score"))
            if confidence is not None and confidence < self.min_confidence:
                logger.debug(f"[SearchAgent] Low confidence {confidence} for {hit.url}")
                continue

            job = self._job_from_verdict(hit, verdict, criteria.user_id)
            self._save(job, is_new=True)
            jobs.append(job)

        self.log(f"{len(jobs)} matching job(s), {len(failures)} failure(s)")
        return jobs, failures

    def analyze_posting(
        self,
        hit: SearchHit,
        criteria: JobCriteria,
        instruction: Optional[AgentInstruction] = None,
    ) -> Dict[str, Any]:
        """Ask the LLM whether a posting matches the criteria.

        Raises:
            ProviderError: if generation fails
            ValidationError: if the verdict is not a JSON object with a
                boolean ``matches_criteria``
        """
        prompt = PromptTemplates.JOB_ANALYSIS.format(
            title=hit.title,
            content=hit.content,
            url=hit.url,
            criteria_title=criteria.title or "",
            keywords=PromptTemplates.format_list(criteria.keywords),
            location=criteria.location or "",
            min_salary=criteria.min_salary or "",
            job_type=criteria.job_type or "",
            required_skills=PromptTemplates.format_list(criteria.required_skills),
            preferred_skills=PromptTemplates.format_list(criteria.preferred_skills),
            additional_requirements=criteria.additional_requirements or "",
            instructions=PromptTemplates.format_instructions(
                instruction.instructions if instruction else ""
            ),
        )
        verdict = extract_json_object(self.llm_client.generate(prompt, ANALYSIS_OPTIONS))

        if not isinstance(verdict.get("matches_criteria"), bool):
            raise ValidationError("Verdict lacks a boolean 'matches_criteria'")
        if verdict["matches_criteria"] and not isinstance(verdict.get("extracted_info"), dict):
            raise ValidationError("Matching verdict lacks 'extracted_info'")
        return verdict

    def _already_stored(self, user_id: str, url: str) -> bool:
        return self.store is not None and self.store.job_by_link(user_id, url) is not None

    @staticmethod
    def _job_from_verdict(hit: SearchHit, verdict: Dict[str, Any], user_id: str) -> Job:
        info = verdict["extracted_info"]
        return Job(
            user_id=user_id,
            title=info.get("title") or hit.title,
            company=info.get("company") or "",
            job_link=hit.url,
            location=info.get("location"),
            description=info.get("description") or hit.content,
            salary_min=_as_float(info.get("salary_min")),
            salary_max=_as_float(info.get("salary_max")),
            job_type=info.get("job_type"),
            required_skills=list(info.get("required_skills") or []),
            preferred_skills=list(info.get("preferred_skills") or []),
            contact_email=info.get("contact_email"),
        )


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
