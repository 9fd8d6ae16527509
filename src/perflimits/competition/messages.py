"""Diagnostics recorded while a competition pass runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

logger = logging.getLogger(__name__)


class MessageSeverity(IntEnum):
    INFORMATIONAL = 0
    WARNING = 1
    TEST_ERROR = 2
    SETUP_ERROR = 3
    CRITICAL_ERROR = 4

    @property
    def is_error(self) -> bool:
        return self >= MessageSeverity.TEST_ERROR

    @property
    def is_critical(self) -> bool:
        return self >= MessageSeverity.SETUP_ERROR

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


_LOG_LEVELS = {
    MessageSeverity.INFORMATIONAL: logging.INFO,
    MessageSeverity.WARNING: logging.WARNING,
    MessageSeverity.TEST_ERROR: logging.ERROR,
    MessageSeverity.SETUP_ERROR: logging.ERROR,
    MessageSeverity.CRITICAL_ERROR: logging.CRITICAL,
}


@dataclass(frozen=True)
class Message:
    run_number: int
    message_number: int
    severity: MessageSeverity
    text: str
    target: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "run": self.run_number,
            "number": self.message_number,
            "severity": self.severity.name,
            "text": self.text,
            "target": self.target,
        }

    def __str__(self) -> str:
        prefix = f"#{self.run_number}.{self.message_number} {self.severity.label}"
        if self.target:
            return f"{prefix} [{self.target}]: {self.text}"
        return f"{prefix}: {self.text}"


class MessageLog:
    """Ordered message list that mirrors every entry to ``logging``."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def write(
        self,
        run_number: int,
        severity: MessageSeverity,
        text: str,
        *,
        target: object | None = None,
    ) -> Message:
        message = Message(
            run_number=run_number,
            message_number=len(self._messages) + 1,
            severity=MessageSeverity(severity),
            text=text,
            target=None if target is None else str(target),
        )
        self._messages.append(message)
        logger.log(_LOG_LEVELS[message.severity], "%s", message)
        return message

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def for_run(self, run_number: int) -> tuple[Message, ...]:
        return tuple(m for m in self._messages if m.run_number == run_number)

    def highest_severity(self, run_number: int | None = None) -> MessageSeverity | None:
        pool = self._messages if run_number is None else self.for_run(run_number)
        if not pool:
            return None
        return max(message.severity for message in pool)

    def __len__(self) -> int:
        return len(self._messages)
