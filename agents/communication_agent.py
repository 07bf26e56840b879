"""
Communication Agent: inbox triage, application submission and follow-ups by email.
"""

import logging
from datetime import datetime
from email.utils import parseaddr
from typing import Any, Callable, Dict, List, Optional, Tuple

from agents.base_agent import BaseAgent
from core.config import Config
from core.decision_engine import DecisionEngine
from core.errors import (
    AgentError,
    CadenceError,
    IllegalTransitionError,
    ProviderError,
    UnknownRecipientError,
    ValidationError,
)
from llm.llm_client import GenerationOptions, LLMClient, extract_json_object
from llm.prompts import PromptTemplates
from models import (
    AgentInstruction,
    Application,
    ApplicationStatus,
    Communication,
    CommunicationStatus,
    CommunicationType,
    Direction,
    EmailClassification,
    FollowUpMetadata,
    IncomingEmailMetadata,
    Job,
    SubmissionMetadata,
    UserProfile,
)
from models.base import utcnow
from providers.mail import MailFilter, MailMessage, MailProvider
from storage.base import Repository
from utils.audit_logger import AuditLogger

logger = logging.getLogger(__name__)

CLASSIFICATION_OPTIONS = GenerationOptions(
    temperature=0.2, max_tokens=500, system_prompt=PromptTemplates.EMAIL_CLASSIFICATION_SYSTEM
)
FOLLOW_UP_OPTIONS = GenerationOptions(temperature=0.7, max_tokens=500)

# (provider message id, exception) pairs for messages that could not be handled
ItemFailure = Tuple[str, AgentError]


def parse_classification(data: Dict[str, Any]) -> EmailClassification:
    """Validate a classification verdict.

    Raises:
        ValidationError: if ``is_job_related`` is missing or not a boolean
    """
    if not isinstance(data.get("is_job_related"), bool):
        raise ValidationError("Classification lacks a boolean 'is_job_related'")

    classification = EmailClassification.from_dict(data)
    classification.urgency_level = max(1, min(5, classification.urgency_level))
    duration = classification.interview_duration_minutes
    try:
        classification.interview_duration_minutes = int(duration) if duration else None
    except (TypeError, ValueError):
        classification.interview_duration_minutes = None
    return classification


class CommunicationAgent(BaseAgent):
    """Agent responsible for all email traffic with companies."""

    def __init__(
        self,
        mail_provider: MailProvider,
        llm_client: LLMClient,
        store: Repository,
        config: Optional[Config] = None,
        decision_engine: Optional[DecisionEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize Communication Agent.

        Args:
            mail_provider: Mailbox access
            llm_client: Text-generation client for triage and follow-ups
            store: Entity repository
            config: Configuration instance
            decision_engine: Follow-up cadence policy
            audit_logger: Optional audit logger
            clock: Returns the current UTC time
        """
        super().__init__(name="CommunicationAgent", store=store, role="communication")
        self.mail_provider = mail_provider
        self.llm_client = llm_client
        self.decision_engine = decision_engine or DecisionEngine(config)
        self.audit_logger = audit_logger
        self.clock = clock

        mail_config = config.get_mail_config() if config else {}
        self.mail_filter = MailFilter(
            query=mail_config.get("inbox_query", MailFilter.query),
            max_results=mail_config.get("max_messages", MailFilter.max_results),
        )

    # Inbox

    def check_inbox(self, user_id: str) -> List[Communication]:
        """Record job-related inbox messages as incoming communications.

        Raises:
            ProviderError: if the mailbox cannot be listed
        """
        communications, _ = self.check_inbox_with_report(user_id)
        return communications

    def check_inbox_with_report(
        self, user_id: str
    ) -> Tuple[List[Communication], List[ItemFailure]]:
        """Like ``check_inbox`` but also returns per-message failures."""
        messages, unreadable = self.mail_provider.list_recent_with_report(self.mail_filter)
        own_addresses = self._own_addresses(user_id)
        self.log(f"Scanning {len(messages)} message(s) for {user_id}")

        communications: List[Communication] = []
        failures: List[ItemFailure] = list(unreadable)

        for message in messages:
            if message.sender_address in own_addresses:
                logger.debug(f"[CommunicationAgent] Skipping own message {message.id}")
                continue

            try:
                classification = self.classify_email(message)
                self.mail_provider.mark_processed(message.id)
            except (ProviderError, ValidationError) as e:
                logger.warning(f"[CommunicationAgent] Skipping message {message.id}: {e}")
                failures.append((message.id, e))
                continue

            if not classification.is_job_related:
                continue

            communication = self._record_incoming(user_id, message, classification)
            communications.append(communication)

        self.log(f"Recorded {len(communications)} job-related message(s)")
        return communications, failures

    def classify_email(self, message: MailMessage) -> EmailClassification:
        """Classify one email with the LLM.

        Raises:
            ProviderError: if generation fails
            ValidationError: if the verdict is malformed
        """
        prompt = PromptTemplates.EMAIL_CLASSIFICATION.format(
            sender=message.sender, subject=message.subject, content=message.body
        )
        response = self.llm_client.generate(prompt, CLASSIFICATION_OPTIONS)
        return parse_classification(extract_json_object(response))

    def _own_addresses(self, user_id: str) -> set:
        addresses = {self.mail_provider.get_own_address().lower()}
        profile = self.store.get_or_none(UserProfile, user_id)
        if profile and profile.email:
            addresses.add(profile.email.lower())
        addresses.discard("")
        return addresses

    def _record_incoming(
        self, user_id: str, message: MailMessage, classification: EmailClassification
    ) -> Communication:
        job = self._match_job(user_id, classification.company_name)
        application = self.store.latest_application_for_job(job.id) if job else None

        communication = Communication(
            user_id=user_id,
            direction=Direction.INCOMING,
            job_id=job.id if job else None,
            application_id=application.id if application else None,
            type=CommunicationType.EMAIL,
            status=CommunicationStatus.DELIVERED,
            content=message.body,
            sent_at=message.received_at or self.clock(),
            metadata=IncomingEmailMetadata(
                sender=message.sender,
                subject=message.subject,
                provider_message_id=message.id,
                classification=classification,
            ),
        )
        self.store.add(communication)

        logger.info(
            f"[CommunicationAgent] {classification.email_type.value} from "
            f"{classification.company_name or message.sender} "
            f"(job={communication.job_id}, application={communication.application_id})"
        )
        if self.audit_logger:
            self.audit_logger.log_communication(
                user_id,
                Direction.INCOMING.value,
                IncomingEmailMetadata.KIND,
                True,
                application_id=communication.application_id,
                job_id=communication.job_id,
                subject=message.subject,
                counterpart=message.sender_address,
            )
        return communication

    def _match_job(self, user_id: str, company_name: Optional[str]) -> Optional[Job]:
        """Most recent job whose company matches the classified company name."""
        if not company_name or not company_name.strip():
            return None
        wanted = company_name.strip().lower()
        jobs = self.store.find(
            Job,
            lambda j: j.company and (
                j.company.lower() == wanted or wanted in j.company.lower() or j.company.lower() in wanted
            ),
            user_id=user_id,
        )
        return max(jobs, key=lambda j: j.created_at) if jobs else None

    # Follow-ups

    def is_follow_up_due(self, application: Application) -> bool:
        ok, _ = self.decision_engine.follow_up_decision(
            application, self.store.communications_for_application(application.id), self.clock()
        )
        return ok

    def send_follow_up(
        self, application: Application, instruction: Optional[AgentInstruction] = None
    ) -> Communication:
        """Send the next follow-up email for a submitted application.

        Args:
            application: Application to follow up on
            instruction: Active communication instruction (optional)

        Returns:
            Outgoing Communication in ``sent`` status

        Raises:
            CadenceError: if a follow-up is not allowed yet (or any more)
            UnknownRecipientError: if no company address is known
            ProviderError: if generation or sending fails
        """
        now = self.clock()
        application = self.store.get(Application, application.id)
        communications = self.store.communications_for_application(application.id)

        ok, reason = self.decision_engine.follow_up_decision(application, communications, now)
        if not ok:
            raise CadenceError(f"Follow-up for {application.id} not allowed: {reason}")

        job = self.store.get(Job, application.job_id)
        recipient = self.resolve_recipient(application, job)
        follow_up_number = application.follow_up_count + 1

        prompt = PromptTemplates.FOLLOW_UP.format(
            title=job.title,
            company=job.company,
            application_date=application.submitted_at.strftime("%B %d, %Y"),
            follow_up_number=follow_up_number,
            days_since_application=application.days_since_submission(now),
            instructions=PromptTemplates.format_instructions(
                instruction.instructions if instruction else ""
            ),
        )
        content = self.llm_client.generate(prompt, FOLLOW_UP_OPTIONS).strip()
        if not content:
            raise ValidationError(f"Empty follow-up generated for {application.id}")

        subject = f"Follow-up: {job.title} Application"
        self._send(application, recipient, subject, content, "follow_up")

        previous = max((c.occurred_at for c in communications), default=None)
        communication = Communication(
            user_id=application.user_id,
            direction=Direction.OUTGOING,
            job_id=job.id,
            application_id=application.id,
            type=CommunicationType.EMAIL,
            content=content,
            metadata=FollowUpMetadata(
                recipient=recipient,
                subject=subject,
                follow_up_number=follow_up_number,
                previous_communication_at=previous,
            ),
        )
        communication.send(at=now)
        application.record_follow_up()

        with self.store.transaction() as tx:
            tx.add(communication)
            tx.update(application)

        self.log(f"Sent follow-up #{follow_up_number} for {application.id} to {recipient}")
        return communication

    def resolve_recipient(self, application: Application, job: Job) -> str:
        """Best-known company address for an application.

        Latest incoming sender for the application, then for the job, then
        the job's contact email.

        Raises:
            UnknownRecipientError: if none is known
        """
        for latest in (
            self.store.latest_incoming_for(application_id=application.id),
            self.store.latest_incoming_for(job_id=job.id),
        ):
            if latest and isinstance(latest.metadata, IncomingEmailMetadata):
                address = parseaddr(latest.metadata.sender)[1]
                if address:
                    return address
        if job.contact_email:
            return job.contact_email
        raise UnknownRecipientError(
            f"No company email known for application {application.id} ({job.company})"
        )

    # Submission

    def submit_application(self, application: Application) -> Communication:
        """Email a draft application to the company and mark it submitted.

        Raises:
            IllegalTransitionError: if the application is not a draft
            UnknownRecipientError: if no company address is known
            ProviderError: if sending fails
        """
        application = self.store.get(Application, application.id)
        if application.status != ApplicationStatus.DRAFT:
            raise IllegalTransitionError(
                "Application", application.id, "submit", application.status.value
            )

        job = self.store.get(Job, application.job_id)
        recipient = self.resolve_recipient(application, job)
        subject = f"Application: {job.title}"
        self._send(application, recipient, subject, application.cover_letter, "submission")

        now = self.clock()
        application.submit(channel="email", at=now)
        job_changed = job.mark_applied()

        communication = Communication(
            user_id=application.user_id,
            direction=Direction.OUTGOING,
            job_id=job.id,
            application_id=application.id,
            type=CommunicationType.EMAIL,
            content=application.cover_letter,
            metadata=SubmissionMetadata(recipient=recipient, subject=subject),
        )
        communication.send(at=now)

        with self.store.transaction() as tx:
            tx.update(application)
            if job_changed:
                tx.update(job)
            tx.add(communication)

        self.log(f"Submitted application {application.id} to {recipient}")
        return communication

    def _send(self, application: Application, recipient: str, subject: str, body: str, kind: str):
        try:
            self.mail_provider.send(recipient, subject, body)
        except ProviderError as e:
            if self.audit_logger:
                self.audit_logger.log_communication(
                    application.user_id,
                    Direction.OUTGOING.value,
                    kind,
                    False,
                    application_id=application.id,
                    job_id=application.job_id,
                    subject=subject,
                    counterpart=recipient,
                    error=str(e),
                )
            raise

        if self.audit_logger:
            self.audit_logger.log_communication(
                application.user_id,
                Direction.OUTGOING.value,
                kind,
                True,
                application_id=application.id,
                job_id=application.job_id,
                subject=subject,
                counterpart=recipient,
            )

    # Notifications

    def notify_user(self, user: UserProfile, message: str, subject: str = "Job Search Update") -> bool:
        """Best-effort status email to the user."""
        if not user.email:
            logger.warning(f"[CommunicationAgent] No email for user {user.user_id}")
            return False
        try:
            self.mail_provider.send(user.email, subject, message)
        except ProviderError as e:
            logger.error(f"[CommunicationAgent] Failed to notify {user.user_id}: {e}")
            return False

        logger.info(f"[CommunicationAgent] Notified {user.user_id}")
        return True
