"""
Tests for DecisionEngine.
"""

import pytest
from datetime import datetime, timedelta, timezone

from core.config import Config
from core.decision_engine import DecisionEngine
from models import (
    AgentType,
    Application,
    Communication,
    Direction,
    ProposedInstructionChange,
    SubmissionMetadata,
    UserProfile,
)

NOW = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)


def submitted(days_ago, follow_ups=0):
    application = Application(user_id="u1", job_id="job_1")
    application.submit(at=NOW - timedelta(days=days_ago))
    for _ in range(follow_ups):
        application.record_follow_up()
    return application


def outgoing(days_ago):
    return Communication(
        user_id="u1", direction=Direction.OUTGOING, sent_at=NOW - timedelta(days=days_ago)
    )


class TestFollowUpCadence:
    """Test follow-up cadence rules."""

    @pytest.fixture
    def engine(self):
        """Create DecisionEngine with default cadence."""
        return DecisionEngine()

    def test_first_follow_up_after_five_days(self, engine):
        should_send, reason = engine.follow_up_decision(submitted(6), [], NOW)

        assert should_send
        assert "6 days" in reason

    def test_first_follow_up_too_early(self, engine):
        should_send, reason = engine.follow_up_decision(submitted(4), [], NOW)

        assert not should_send
        assert "too early" in reason.lower()

    def test_interval_since_last_communication(self, engine):
        application = submitted(20)

        assert not engine.follow_up_decision(application, [outgoing(6)], NOW)[0]
        assert engine.follow_up_decision(application, [outgoing(7)], NOW)[0]

    def test_submission_email_does_not_delay_first_follow_up(self, engine):
        submission = Communication(
            user_id="u1",
            direction=Direction.OUTGOING,
            sent_at=NOW - timedelta(days=6),
            metadata=SubmissionMetadata(recipient="hr@acme.com", subject="Application"),
        )

        should_send, reason = engine.follow_up_decision(submitted(6), [submission], NOW)

        assert should_send
        assert "6 days after submission" in reason

    def test_latest_communication_wins(self, engine):
        should_send, _ = engine.follow_up_decision(submitted(30), [outgoing(20), outgoing(2)], NOW)

        assert not should_send

    def test_cap_checked_before_timing(self, engine):
        should_send, reason = engine.follow_up_decision(submitted(40, follow_ups=3), [], NOW)

        assert not should_send
        assert "limit" in reason.lower()

    def test_draft_is_never_followed_up(self, engine):
        draft = Application(user_id="u1", job_id="job_1")

        should_send, reason = engine.follow_up_decision(draft, [], NOW)

        assert not should_send
        assert "draft" in reason

    def test_config_overrides(self, tmp_path):
        config = Config(
            str(tmp_path / "config.yaml"),
            overrides={"cadence": {"first_follow_up_days": 2, "max_follow_ups": 1}},
        )
        engine = DecisionEngine(config)

        assert engine.follow_up_decision(submitted(3), [], NOW)[0]
        assert not engine.follow_up_decision(submitted(30, follow_ups=1), [], NOW)[0]
        assert engine.follow_up_interval_days == 7


class TestAutonomyPolicy:
    """Test auto-send and proposal policy."""

    @pytest.fixture
    def engine(self):
        return DecisionEngine()

    def test_auto_send_requires_opt_in(self, engine):
        assert not engine.should_auto_send(None)[0]
        assert not engine.should_auto_send(UserProfile(user_id="u1", email="me@x.com"))[0]
        assert not engine.should_auto_send(UserProfile(user_id="u1", auto_send_applications=True))[0]

        should_send, reason = engine.should_auto_send(
            UserProfile(user_id="u1", email="me@x.com", auto_send_applications=True)
        )
        assert should_send
        assert "enabled" in reason.lower()

    def test_proposals_respect_interval(self, engine):
        proposal = ProposedInstructionChange(
            user_id="u1",
            agent_instruction_id="instr_1",
            agent_type=AgentType.SEARCH,
            current_instructions="a",
            proposed_instructions="b",
            reason="r",
        )
        proposal.created_at = NOW - timedelta(days=3)
        assert not engine.should_propose_improvements([proposal], NOW)[0]

        proposal.created_at = NOW - timedelta(days=8)
        assert engine.should_propose_improvements([proposal], NOW)[0]
        assert engine.should_propose_improvements([], NOW)[0]
