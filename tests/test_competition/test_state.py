"""Tests for competition pass state and messages."""

from __future__ import annotations

import pytest

from perflimits.competition.messages import MessageLog, MessageSeverity
from perflimits.competition.state import AnalysisState, CompetitionAnalysis


def test_severity_ordering() -> None:
    assert MessageSeverity.TEST_ERROR.is_error
    assert not MessageSeverity.TEST_ERROR.is_critical
    assert MessageSeverity.SETUP_ERROR.is_critical
    assert not MessageSeverity.WARNING.is_error
    assert MessageSeverity.SETUP_ERROR.label == "Setup Error"


def test_message_log_numbers_messages_and_tracks_highest_severity() -> None:
    log = MessageLog()
    log.write(1, MessageSeverity.INFORMATIONAL, "first")
    log.write(2, MessageSeverity.TEST_ERROR, "second", target="m:f")
    assert [m.message_number for m in log.messages] == [1, 2]
    assert log.highest_severity() is MessageSeverity.TEST_ERROR
    assert log.highest_severity(1) is MessageSeverity.INFORMATIONAL
    assert log.highest_severity(3) is None
    assert str(log.messages[1]) == "#2.2 Test Error [m:f]: second"


def test_prepare_for_run_consumes_a_run() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=5)
    analysis.prepare_for_run()
    assert analysis.run_number == 1
    assert analysis.runs_left == 0
    assert analysis.looks_like_last_run


def test_request_reruns_is_bounded_by_max_runs() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=3)
    analysis.prepare_for_run()
    assert analysis.request_reruns(10, "adjusted")
    assert analysis.runs_left == 2


def test_request_reruns_keeps_larger_pending_count() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=10)
    analysis.prepare_for_run()
    analysis.request_reruns(3, "adjusted")
    analysis.request_reruns(1, "failed")
    assert analysis.runs_left == 3


def test_request_reruns_after_limit_exhausts_budget() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=1)
    analysis.prepare_for_run()
    assert not analysis.request_reruns(1, "adjusted")
    assert analysis.rerun_budget_exhausted
    assert analysis.runs_left == 0
    assert analysis.has_errors_in_run()


def test_request_reruns_rejects_non_positive_count() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=3)
    with pytest.raises(ValueError):
        analysis.request_reruns(0, "nothing")


def test_safe_to_continue_flips_on_setup_error() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=3)
    analysis.prepare_for_run()
    analysis.write_message(MessageSeverity.TEST_ERROR, "out of limit")
    assert analysis.safe_to_continue
    analysis.write_message(MessageSeverity.SETUP_ERROR, "broken")
    assert not analysis.safe_to_continue


def test_result_passes_only_when_completed_cleanly() -> None:
    analysis = CompetitionAnalysis(max_runs_allowed=3)
    analysis.prepare_for_run()
    analysis.state = AnalysisState.COMPLETED
    assert analysis.to_result().passed

    analysis.write_message(MessageSeverity.TEST_ERROR, "out of limit")
    result = analysis.to_result()
    assert not result.passed
    assert result.run_count == 1
    assert result.to_dict()["messages"][0]["severity"] == "TEST_ERROR"
