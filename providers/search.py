"""
Web-search provider contract and the Tavily adapter.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from core.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    """One raw search result."""

    title: str
    url: str
    content: str
    score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchHit":
        return cls(
            title=data.get("title") or "",
            url=data.get("url") or "",
            content=data.get("content") or "",
            score=data.get("score"),
        )


@dataclass(frozen=True)
class SearchOptions:
    domain_allow_list: List[str] = field(default_factory=list)
    max_results: int = 20


class SearchProvider(ABC):
    """Abstract web-search provider."""

    @abstractmethod
    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchHit]:
        """Run a query and return hits in provider order.

        Raises:
            ProviderError: if the provider is unreachable or rejects the request
        """


class TavilyClient(SearchProvider):
    """Client for the Tavily search API."""

    provider = "tavily"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com",
        timeout: int = 30,
        search_depth: str = "advanced",
    ):
        """Initialize Tavily client.

        Args:
            api_key: Tavily API key
            base_url: API base URL
            timeout: Request timeout in seconds
            search_depth: "basic" or "advanced"
        """
        if not api_key:
            raise ValueError("TAVILY_API_KEY is not configured")
        self.api_key = api_key
        self.api_url = f"{base_url.rstrip('/')}/search"
        self.timeout = timeout
        self.search_depth = search_depth

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchHit]:
        options = options or SearchOptions()
        payload = {
            "api_key": self.api_key,
            "query": query.strip() or "job openings",
            "search_depth": self.search_depth,
            "include_domains": list(options.domain_allow_list),
            "include_answer": False,
            "max_results": options.max_results,
        }

        try:
            response = requests.post(self.api_url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"[TavilyClient] Timeout after {self.timeout}s")
            raise ProviderError(f"Request timed out: {e}", provider=self.provider) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[TavilyClient] Request error: {e}")
            raise ProviderError(str(e), provider=self.provider) from e

        if not response.ok:
            raise ProviderError(
                f"Search request failed: {response.text[:200]}",
                provider=self.provider,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Search response was not JSON", provider=self.provider) from e

        hits = [SearchHit.from_dict(item) for item in data.get("results", [])]
        logger.info(f"[TavilyClient] {len(hits)} results for '{payload['query']}'")
        return hits
