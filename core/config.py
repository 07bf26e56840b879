"""
Configuration management for the job-search agents.
"""

import os
import yaml
from typing import Dict, Any, List, Optional
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_JOB_DOMAINS = [
    "linkedin.com",
    "indeed.com",
    "glassdoor.com",
    "monster.com",
    "careers.google.com",
    "jobs.lever.co",
    "greenhouse.io",
    "wellfound.com",
]

# Environment variable -> dot-separated config key
ENV_OVERRIDES = {
    "LLM_PROVIDER": "llm.provider",
    "LLM_MODEL_NAME": "llm.model_name",
    "LLM_BASE_URL": "llm.base_url",
    "ANTHROPIC_API_KEY": "llm.api_key",
    "ANTHROPIC_MODEL": "llm.model_name",
    "TAVILY_API_KEY": "search.api_key",
    "GMAIL_ACCESS_TOKEN": "mail.access_token",
    "AGENT_STORE_PATH": "storage.path",
}


class Config:
    """Manages application configuration from YAML and environment variables."""

    def __init__(self, config_path: str = "config.yaml", overrides: Optional[Dict[str, Any]] = None):
        """Initialize configuration.

        Args:
            config_path: Path to YAML configuration file
            overrides: Optional dictionary merged over the file contents
                (useful for tests and scripts)
        """
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._override_with_env()
        if overrides:
            self._merge(self.config, overrides)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if self.config_path.exists():
            with open(self.config_path, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def _override_with_env(self):
        """Override config values with environment variables."""
        for env_name, key_path in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                self.set(key_path, value)

    @classmethod
    def _merge(cls, base: Dict[str, Any], extra: Dict[str, Any]):
        for key, value in extra.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                cls._merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value by dot-separated key path.

        Args:
            key_path: Dot-separated path (e.g., "cadence.max_follow_ups")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self.config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any):
        """Set a configuration value by dot-separated key path."""
        keys = key_path.split(".")
        node = self.config
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_llm_config(self) -> Dict[str, Any]:
        """Get text-generation provider configuration."""
        return {
            "provider": self.get("llm.provider", "anthropic"),
            "model_name": self.get("llm.model_name", "claude-3-5-sonnet-latest"),
            "base_url": self.get("llm.base_url"),
            "api_key": self.get("llm.api_key"),
            "temperature": float(self.get("llm.temperature", 0.7)),
            "max_tokens": int(self.get("llm.max_tokens", 1024)),
            "timeout": int(self.get("llm.timeout", 60)),
        }

    def get_search_config(self) -> Dict[str, Any]:
        """Get web-search provider configuration."""
        return {
            "provider": self.get("search.provider", "tavily"),
            "api_key": self.get("search.api_key"),
            "base_url": self.get("search.base_url", "https://api.tavily.com"),
            "timeout": int(self.get("search.timeout", 30)),
            "max_results": int(self.get("search.max_results", 20)),
            "job_domains": list(self.get("search.job_domains", DEFAULT_JOB_DOMAINS)),
            "min_confidence": float(self.get("search.min_confidence", 0.0)),
        }

    def get_mail_config(self) -> Dict[str, Any]:
        """Get mail provider configuration."""
        return {
            "provider": self.get("mail.provider", "gmail"),
            "access_token": self.get("mail.access_token"),
            "base_url": self.get(
                "mail.base_url", "https://gmail.googleapis.com/gmail/v1/users/me"
            ),
            "processed_label": self.get("mail.processed_label", "processed"),
            "inbox_query": self.get(
                "mail.inbox_query", "in:inbox -label:processed newer_than:2d"
            ),
            "max_messages": int(self.get("mail.max_messages", 50)),
            "timeout": int(self.get("mail.timeout", 30)),
            "accounts": dict(self.get("mail.accounts") or {}),
        }

    def get_cadence_config(self) -> Dict[str, int]:
        """Get follow-up cadence policy."""
        return {
            "first_follow_up_days": int(self.get("cadence.first_follow_up_days", 5)),
            "follow_up_interval_days": int(self.get("cadence.follow_up_interval_days", 7)),
            "max_follow_ups": int(self.get("cadence.max_follow_ups", 3)),
        }

    def get_orchestrator_config(self) -> Dict[str, Any]:
        """Get cycle and proposal settings."""
        return {
            "proposal_interval_days": int(self.get("orchestrator.proposal_interval_days", 7)),
            "metrics_window_days": int(self.get("orchestrator.metrics_window_days", 30)),
            "cycle_interval_hours": float(self.get("orchestrator.cycle_interval_hours", 6)),
            "max_workers": int(self.get("orchestrator.max_workers", 4)),
            "users": list(self.get("orchestrator.users", []) or []),
        }

    def get_scheduling_config(self) -> Dict[str, Any]:
        return {
            "default_duration_minutes": int(
                self.get("scheduling.default_duration_minutes", 60)
            ),
            "default_interview_type": self.get("scheduling.default_interview_type", "video"),
        }

    def get_storage_config(self) -> Dict[str, Any]:
        return {
            "backend": self.get("storage.backend", "sqlite"),
            "path": self.get("storage.path", "data/store.db"),
        }

    def get_audit_config(self) -> Dict[str, Any]:
        return self.get("audit", {}) or {}

    @property
    def job_domains(self) -> List[str]:
        return self.get_search_config()["job_domains"]
