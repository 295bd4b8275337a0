"""Status byte policy for read commands.

Most replies start with a status byte. How that byte is treated depends
on the command: some use it as a generic status, others as the payload
itself. :func:`evaluate_status` maps a status byte to a verdict and
:class:`RetryState` tracks the attempts made for one command.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

POWER_SAVE_STATUS = 255


class StatusByteAction(Enum):
    """How the leading status byte of a reply is handled."""

    EVALUATE = "evaluate"
    """Interpret the byte and retry on failure signals."""

    IGNORE = "ignore"
    """Return the reply as-is, without retrying."""

    IGNORE_BUT_RETRY_IF_POWER_SAVING = "ignore_but_retry_if_power_saving"
    """Treat the byte as payload unless it is the power save sentinel."""


class Verdict(Enum):
    ACCEPT = "accept"
    REINITIALIZE = "reinitialize"
    RETRY = "retry"


def evaluate_status(status: int, action: StatusByteAction) -> Verdict:
    """Decide what to do with a reply given its status byte.

    ============  ==========================  =============
    status        action                      verdict
    ============  ==========================  =============
    any           IGNORE                      ACCEPT
    0, 1          any                         ACCEPT
    255           EVALUATE / IGNORE_BUT_...   REINITIALIZE
    other         IGNORE_BUT_RETRY_IF_...     ACCEPT
    other         EVALUATE                    RETRY
    ============  ==========================  =============
    """
    if action is StatusByteAction.IGNORE:
        return Verdict.ACCEPT
    if status in (0, 1):
        return Verdict.ACCEPT
    if status == POWER_SAVE_STATUS:
        return Verdict.REINITIALIZE
    if action is StatusByteAction.IGNORE_BUT_RETRY_IF_POWER_SAVING:
        return Verdict.ACCEPT
    return Verdict.RETRY


@dataclass
class RetryState:
    """Attempt bookkeeping for one command."""

    max_attempts: int
    attempt: int = 0
    last_status: int | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_attempt(self) -> int:
        """Advance to the next attempt and return its 1-based number."""
        if self.exhausted:
            raise RuntimeError("No attempts left")
        self.attempt += 1
        return self.attempt

    def record(self, status: int) -> None:
        self.last_status = status
