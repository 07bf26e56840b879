"""
Tests for CycleReport and PhaseReport.
"""

import json

from core.cycle_report import CyclePhase, CycleReport, PhaseReport, PhaseStatus
from core.errors import ProviderError, ValidationError


def test_finalize_derives_status():
    clean = PhaseReport(CyclePhase.SEARCH, items_in=2, items_out=2).finalize()
    assert clean.status == PhaseStatus.COMPLETED

    partial = PhaseReport(CyclePhase.DRAFT, items_in=2, items_out=1)
    partial.add_failure(ValidationError("empty"), "job_1")
    assert partial.finalize().status == PhaseStatus.PARTIAL

    failed = PhaseReport(CyclePhase.SEND, items_in=1, items_out=0)
    failed.add_failure(ProviderError("down", provider="gmail"), "app_1")
    assert failed.finalize().status == PhaseStatus.FAILED

    skipped = PhaseReport(CyclePhase.SCHEDULE, status=PhaseStatus.SKIPPED)
    assert skipped.finalize().status == PhaseStatus.SKIPPED


def test_failure_records_kind_and_item():
    report = PhaseReport(CyclePhase.INBOX)

    failure = report.add_failure(ProviderError("token expired", provider="gmail", status_code=401), "m1")

    assert failure.error_kind == "ProviderError"
    assert failure.item_id == "m1"
    assert "HTTP 401" in failure.message
    assert report.add_failure(KeyError("x")).error_kind == "KeyError"


def test_cycle_progress_and_serialization():
    report = CycleReport(user_id="u1")
    search = report.start_phase(CyclePhase.SEARCH, items_in=3)
    search.items_out = 3
    report.end_phase(search)
    report.mark_cancelled(CyclePhase.DRAFT)
    report.complete()

    assert report.made_progress
    assert report.phase(CyclePhase.DRAFT).status == PhaseStatus.CANCELLED
    assert report.phase(CyclePhase.PROPOSE) is None
    assert search.duration_seconds is not None

    data = json.loads(json.dumps(report.to_dict()))
    assert data["user_id"] == "u1"
    assert [p["status"] for p in data["phases"]] == ["completed", "cancelled"]
    assert data["completed_at"] is not None


def test_no_progress_when_everything_failed_or_cancelled():
    report = CycleReport(user_id="u1")
    failed = report.start_phase(CyclePhase.SEARCH)
    failed.status = PhaseStatus.FAILED
    report.end_phase(failed)
    report.mark_cancelled(CyclePhase.DRAFT)

    assert not report.made_progress
    assert report.failures == []


def test_skipped_phases_do_not_mask_failures():
    report = CycleReport(user_id="u1")
    search = report.start_phase(CyclePhase.SEARCH, items_in=1)
    search.add_failure(ProviderError("down", provider="tavily"))
    report.end_phase(search)
    report.phases.append(PhaseReport(CyclePhase.DRAFT, status=PhaseStatus.SKIPPED))
    inbox = report.start_phase(CyclePhase.INBOX)
    report.end_phase(inbox)

    assert search.status == PhaseStatus.FAILED
    assert inbox.status == PhaseStatus.COMPLETED
    assert not report.made_progress

    inbox.items_in = inbox.items_out = 1
    assert report.made_progress


def test_idle_cycle_counts_as_progress():
    report = CycleReport(user_id="u1")
    report.phases.append(PhaseReport(CyclePhase.SEARCH, status=PhaseStatus.SKIPPED))
    report.end_phase(report.start_phase(CyclePhase.INBOX))

    assert report.made_progress
