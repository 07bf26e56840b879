"""
Tests for AuditLogger.
"""

import pytest

from utils.audit_logger import AuditLogger


@pytest.fixture
def audit(tmp_path):
    return AuditLogger({"logs_dir": str(tmp_path / "logs")})


def test_cycle_events_round_trip(audit):
    audit.log_cycle(
        {
            "cycle_id": "cycle_1",
            "user_id": "u1",
            "made_progress": False,
            "phases": [{"phase": "search", "failures": [{"error_kind": "ProviderError"}]}],
        }
    )
    audit.log_cycle({"cycle_id": "cycle_2", "user_id": "u2", "made_progress": True, "phases": []})

    events = audit.read_events("cycles", user_id="u1")
    assert [e["cycle_id"] for e in events] == ["cycle_1"]

    stats = audit.get_statistics(days=1)
    assert stats["total_cycles"] == 2
    assert stats["cycles_without_progress"] == 1
    assert stats["failures_by_kind"] == {"ProviderError": 1}


def test_sensitive_values_are_redacted(audit):
    audit.log_governance("proposed", "u1", metadata={"api_key": "sk-123", "reason": "fine"})

    event = audit.read_events("governance")[0]
    assert event["metadata"]["api_key"] == "***REDACTED***"
    assert event["metadata"]["reason"] == "fine"


def test_communication_keeps_recipient(audit):
    audit.log_communication("u1", "outgoing", "submission", True, counterpart="hr@acme.com")

    event = audit.read_events("communications")[0]
    assert event["counterpart"] == "hr@acme.com"
    assert event["success"] is True


def test_disabled_event_types(tmp_path):
    audit = AuditLogger({"logs_dir": str(tmp_path), "log_events": {"errors": False}})

    audit.log_error("RuntimeError", "boom", "cycle.inbox", user_id="u1")

    assert audit.read_events("errors") == []
