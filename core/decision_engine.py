"""
Decision Engine - follow-up cadence and autonomous-action policy.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

from models import (
    Application,
    ApplicationStatus,
    Communication,
    ProposedInstructionChange,
    SubmissionMetadata,
    UserProfile,
)
from models.base import utcnow

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Decides when the agents may act without asking the user."""

    def __init__(self, config: Optional[Any] = None):
        """Initialize decision engine.

        Args:
            config: Optional Config instance for configuration
        """
        self.config = config

        if config:
            cadence = config.get_cadence_config()
            orchestrator = config.get_orchestrator_config()
            self.first_follow_up_days = cadence["first_follow_up_days"]
            self.follow_up_interval_days = cadence["follow_up_interval_days"]
            self.max_follow_ups = cadence["max_follow_ups"]
            self.proposal_interval_days = orchestrator["proposal_interval_days"]
        else:
            self.first_follow_up_days = 5
            self.follow_up_interval_days = 7
            self.max_follow_ups = 3
            self.proposal_interval_days = 7

        logger.info(
            f"[DecisionEngine] Initialized "
            f"(first={self.first_follow_up_days}d, interval={self.follow_up_interval_days}d, "
            f"max_follow_ups={self.max_follow_ups})"
        )

    def follow_up_decision(
        self,
        application: Application,
        communications: List[Communication],
        now: Optional[datetime] = None,
    ) -> tuple[bool, str]:
        """Decide if a follow-up email may be sent for an application.

        A follow-up is allowed when no communication exists yet and the
        first-follow-up delay has elapsed since submission, or when the most
        recent communication is older than the follow-up interval and the
        application is still under the follow-up cap.

        Args:
            application: Application being followed up
            communications: All communications recorded for the application
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            Tuple of (should_send: bool, reason: str)
        """
        now = now or utcnow()

        if application.status not in (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW):
            return False, f"Application status is '{application.status.value}'"

        if application.submitted_at is None:
            return False, "Application has no submission time"

        if application.follow_up_count >= self.max_follow_ups:
            return False, f"Follow-up limit reached ({application.follow_up_count}/{self.max_follow_ups})"

        # The submission email itself does not count as a prior communication.
        communications = [
            c for c in communications if not isinstance(c.metadata, SubmissionMetadata)
        ]
        if not communications:
            days = application.days_since_submission(now)
            if days >= self.first_follow_up_days:
                return True, f"No response {days} days after submission"
            return False, f"Too early for first follow-up ({days}/{self.first_follow_up_days} days)"

        latest = max(communications, key=lambda c: c.occurred_at)
        days_since_last = (now - latest.occurred_at).days
        if days_since_last >= self.follow_up_interval_days:
            return True, f"Last communication {days_since_last} days ago"

        return (
            False,
            f"Last communication too recent ({days_since_last}/{self.follow_up_interval_days} days)",
        )

    def should_auto_send(self, profile: Optional[UserProfile]) -> tuple[bool, str]:
        """Decide if drafted applications and follow-ups go out unattended.

        Args:
            profile: User profile (None when the user has not been set up)

        Returns:
            Tuple of (auto_send: bool, reason: str)
        """
        if profile is None:
            return False, "No user profile"
        if not profile.auto_send_applications:
            return False, "Auto-send disabled by user"
        if not profile.email:
            return False, "User has no email address"
        return True, "Auto-send enabled"

    def should_propose_improvements(
        self,
        proposals: List[ProposedInstructionChange],
        now: Optional[datetime] = None,
    ) -> tuple[bool, str]:
        """Decide if the controller should draft new instruction proposals.

        Args:
            proposals: All proposals ever made for the user
            now: Evaluation time

        Returns:
            Tuple of (should_propose: bool, reason: str)
        """
        now = now or utcnow()
        cutoff = now - timedelta(days=self.proposal_interval_days)
        recent = [p for p in proposals if p.created_at > cutoff]
        if recent:
            return False, f"{len(recent)} proposal(s) in the last {self.proposal_interval_days} days"
        return True, f"No proposals in the last {self.proposal_interval_days} days"
