"""
Wiring for the autonomous job-search cycle.

CycleRunner builds the store, providers, agents and governance from a Config
and exposes the small surface the operator scripts use.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, List, Optional

from agents.communication_agent import CommunicationAgent
from agents.draft_agent import DraftAgent
from agents.orchestrator_agent import OrchestratorAgent
from agents.scheduling_agent import SchedulingAgent
from agents.search_agent import SearchAgent
from core.config import Config
from core.cycle_report import CycleReport
from core.decision_engine import DecisionEngine
from governance.instruction_governance import InstructionGovernance
from governance.instruction_store import InstructionStore
from llm.llm_client import LLMClient, create_llm_client
from models import ProposedInstructionChange
from providers.mail import GmailClient, MailProvider
from providers.search import SearchProvider, TavilyClient
from storage.base import Repository
from storage.sqlite_store import SqliteStore
from storage.memory import InMemoryStore
from utils.audit_logger import AuditLogger

logger = logging.getLogger(__name__)


def create_store(storage_config: Dict[str, Any]) -> Repository:
    """Build the configured repository."""
    backend = storage_config.get("backend", "sqlite")
    if backend == "memory":
        return InMemoryStore()
    if backend == "sqlite":
        return SqliteStore(storage_config["path"])
    raise ValueError(f"Unsupported storage backend: {backend}")


def create_search_provider(search_config: Dict[str, Any]) -> SearchProvider:
    provider = search_config.get("provider", "tavily")
    if provider == "tavily":
        return TavilyClient(
            api_key=search_config.get("api_key"),
            base_url=search_config.get("base_url") or "https://api.tavily.com",
            timeout=search_config.get("timeout", 30),
        )
    raise ValueError(f"Unsupported search provider: {provider}")


def create_mail_provider(mail_config: Dict[str, Any], user_id: Optional[str] = None) -> MailProvider:
    """Build the mailbox client for a user.

    When ``mail.accounts`` is non-empty each user must have an entry there; its
    keys override the top-level mail settings, and ``access_token_env`` names
    the environment variable holding that user's token.

    Raises:
        ValueError: if accounts are configured but none belongs to the user
    """
    accounts = mail_config.get("accounts") or {}
    if accounts and user_id is not None:
        if user_id not in accounts:
            raise ValueError(f"No mail account configured for user {user_id}")
        account = dict(accounts[user_id] or {})
        token_env = account.pop("access_token_env", None)
        if token_env:
            account["access_token"] = os.getenv(token_env)
        mail_config = {**mail_config, **account}

    provider = mail_config.get("provider", "gmail")
    if provider == "gmail":
        kwargs = {
            "access_token": mail_config.get("access_token"),
            "processed_label": mail_config.get("processed_label", "processed"),
            "timeout": mail_config.get("timeout", 30),
        }
        if mail_config.get("base_url"):
            kwargs["base_url"] = mail_config["base_url"]
        return GmailClient(**kwargs)
    raise ValueError(f"Unsupported mail provider: {provider}")


class CycleRunner:
    """Single wiring point for agents, providers, store and governance."""

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[Repository] = None,
        llm_client: Optional[LLMClient] = None,
        search_provider: Optional[SearchProvider] = None,
        mail_provider_factory: Optional[Callable[[str], MailProvider]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """Initialize the runner.

        Anything not passed in is built from the configuration.

        Args:
            config: Configuration instance (creates default if None)
            store: Entity repository
            llm_client: Text-generation client
            search_provider: Web-search provider
            mail_provider_factory: Builds the mailbox client for a user id
            audit_logger: Audit logger
        """
        if config is None:
            config = Config()
        self.config = config

        self.store = store or create_store(config.get_storage_config())
        self.llm_client = llm_client or create_llm_client(config.get_llm_config())
        self.search_provider = search_provider or create_search_provider(config.get_search_config())
        mail_config = config.get_mail_config()
        self.mail_provider_factory = mail_provider_factory or (
            lambda user_id: create_mail_provider(mail_config, user_id)
        )
        self.audit_logger = audit_logger or AuditLogger(config.get_audit_config())

        orchestrator_config = config.get_orchestrator_config()
        self.max_workers = orchestrator_config["max_workers"]
        self.cancel_event = threading.Event()

        self.decision_engine = DecisionEngine(config)
        self.instruction_store = InstructionStore(self.store, self.audit_logger)
        self.governance = InstructionGovernance(self.store, self.audit_logger)

        self.search_agent = SearchAgent(self.search_provider, self.llm_client, config, self.store)
        self.draft_agent = DraftAgent(self.llm_client, self.store)
        self.scheduling_agent = SchedulingAgent(self.store, config)

        # Mailboxes are per user, so each user gets its own orchestrator.
        self._orchestrators: Dict[str, OrchestratorAgent] = {}
        self._orchestrators_lock = threading.Lock()

        logger.info(f"[CycleRunner] Ready (llm={self.llm_client.provider}, workers={self.max_workers})")

    # Cycles

    def orchestrator_for(self, user_id: str) -> OrchestratorAgent:
        """Orchestrator wired to the user's own mailbox, built on first use."""
        with self._orchestrators_lock:
            orchestrator = self._orchestrators.get(user_id)
            if orchestrator is None:
                communication_agent = CommunicationAgent(
                    self.mail_provider_factory(user_id),
                    self.llm_client,
                    self.store,
                    config=self.config,
                    decision_engine=self.decision_engine,
                    audit_logger=self.audit_logger,
                )
                orchestrator = OrchestratorAgent(
                    self.store,
                    self.search_agent,
                    self.draft_agent,
                    communication_agent,
                    self.scheduling_agent,
                    self.instruction_store,
                    self.governance,
                    self.llm_client,
                    config=self.config,
                    decision_engine=self.decision_engine,
                    audit_logger=self.audit_logger,
                )
                self._orchestrators[user_id] = orchestrator
                logger.info(f"[CycleRunner] Wired mailbox for {user_id}")
            return orchestrator

    def run_cycle(self, user_id: str) -> bool:
        """Run one cycle for a user. False only when no phase made progress."""
        return self.orchestrator_for(user_id).run_cycle(user_id, self.cancel_event)

    def run_cycle_with_report(self, user_id: str) -> CycleReport:
        return self.orchestrator_for(user_id).run_cycle_with_report(user_id, self.cancel_event)

    def run_all(self, user_ids: Iterable[str]) -> Dict[str, bool]:
        """Run one cycle per user in parallel threads.

        Returns:
            Mapping of user id to the cycle's progress flag
        """
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return {}

        results: Dict[str, bool] = {}
        workers = max(1, min(self.max_workers, len(user_ids)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cycle") as executor:
            futures = {executor.submit(self.run_cycle, user_id): user_id for user_id in user_ids}
            for future in as_completed(futures):
                user_id = futures[future]
                try:
                    results[user_id] = future.result()
                except Exception as e:
                    logger.exception(f"[CycleRunner] Cycle for {user_id} crashed: {e}")
                    results[user_id] = False
        return results

    def cancel(self):
        """Stop running cycles at their next phase boundary."""
        logger.info("[CycleRunner] Cancellation requested")
        self.cancel_event.set()

    def reset(self):
        self.cancel_event.clear()

    # Governance

    def propose_change(
        self,
        instruction_id: str,
        proposed_instructions: str,
        reason: str,
        metrics: Optional[Dict[str, Any]] = None,
        proposed_by: str = "human",
    ) -> ProposedInstructionChange:
        instruction = self.instruction_store.get(instruction_id)
        return self.governance.propose_change(
            instruction, proposed_instructions, reason, metrics=metrics, proposed_by=proposed_by
        )

    def approve(self, change_id: str, feedback: Optional[str] = None) -> bool:
        return self.governance.approve(change_id, feedback)

    def reject(self, change_id: str, feedback: str) -> bool:
        return self.governance.reject(change_id, feedback)

    def pending_changes(self, user_id: Optional[str] = None) -> List[ProposedInstructionChange]:
        return self.governance.pending_changes(user_id)
