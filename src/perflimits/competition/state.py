"""Pass state for one competition: run counters, messages and the final result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .messages import Message, MessageLog, MessageSeverity
from .types import CompetitionTarget

logger = logging.getLogger(__name__)


class AnalysisState(str, Enum):
    PREPARING = "preparing"
    CHECKING = "checking"
    ANNOTATING = "annotating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CompetitionResult:
    """Outcome of a competition pass, consumed by the CLI and test layers."""

    passed: bool
    run_count: int
    messages: tuple[Message, ...]
    targets: tuple[CompetitionTarget, ...] = ()
    annotation_log: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "passed": self.passed,
            "run_count": self.run_count,
            "messages": [message.to_dict() for message in self.messages],
            "targets": [target.to_dict() for target in self.targets],
            "annotation_log": self.annotation_log,
        }


@dataclass
class CompetitionAnalysis:
    """Mutable state shared by all runs of one pass."""

    max_runs_allowed: int
    targets: list[CompetitionTarget] = field(default_factory=list)
    run_number: int = 0
    runs_left: int = 1
    state: AnalysisState = AnalysisState.PREPARING
    rerun_budget_exhausted: bool = False
    annotation_log: str | None = None
    log: MessageLog = field(default_factory=MessageLog)

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.log.messages

    @property
    def looks_like_last_run(self) -> bool:
        return self.runs_left <= 0

    @property
    def run_limit_exceeded(self) -> bool:
        return self.run_number >= self.max_runs_allowed

    @property
    def safe_to_continue(self) -> bool:
        highest = self.log.highest_severity()
        return highest is None or not highest.is_critical

    @property
    def baseline(self) -> CompetitionTarget | None:
        return next((t for t in self.targets if t.is_baseline), None)

    def prepare_for_run(self) -> None:
        self.run_number += 1
        self.runs_left -= 1
        logger.debug("Starting run %d (%d left)", self.run_number, self.runs_left)

    def write_message(
        self, severity: MessageSeverity, text: str, *, target: object | None = None
    ) -> Message:
        return self.log.write(self.run_number, severity, text, target=target)

    def request_reruns(self, count: int, reason: str) -> bool:
        """Ask for ``count`` more runs, bounded by ``max_runs_allowed``.

        Returns ``False`` and marks the budget as exhausted when no run is left.
        """
        if count <= 0:
            raise ValueError(f"count must be positive, got {count!r}")
        if self.run_limit_exceeded:
            self.rerun_budget_exhausted = True
            self.runs_left = 0
            self.write_message(
                MessageSeverity.TEST_ERROR,
                f"Run limit ({self.max_runs_allowed}) exceeded, rerun is not possible: {reason}",
            )
            return False
        budget = self.max_runs_allowed - self.run_number
        self.runs_left = min(max(count, self.runs_left), budget)
        self.write_message(
            MessageSeverity.INFORMATIONAL, f"Requesting {count} run(s): {reason}"
        )
        return True

    def has_errors_in_run(self, run_number: int | None = None) -> bool:
        highest = self.log.highest_severity(self.run_number if run_number is None else run_number)
        return highest is not None and highest.is_error

    def to_result(self) -> CompetitionResult:
        passed = (
            self.state is AnalysisState.COMPLETED
            and self.safe_to_continue
            and not self.rerun_budget_exhausted
            and not self.has_errors_in_run()
            and not any(target.has_unsaved_changes for target in self.targets)
        )
        return CompetitionResult(
            passed=passed,
            run_count=self.run_number,
            messages=self.messages,
            targets=tuple(self.targets),
            annotation_log=self.annotation_log,
        )
