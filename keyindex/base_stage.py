"""Abstract base class for the pipeline stages."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from keyindex.backoff import Backoff
from keyindex.channel import HandoffChannel

# A wait callable sleeps for the given seconds and returns True when the wait
# was cut short by cancellation (the contract of threading.Event.wait).
Wait = Callable[[float], bool]


class PipelineCancelled(Exception):
    """The pipeline was asked to stop before it finished."""


class RetriesExhausted(Exception):
    """A unit of work kept failing for ``max_attempts`` consecutive calls."""

    def __init__(self, stage: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{stage}: giving up after {attempts} attempts: {last_error}")
        self.stage = stage
        self.attempts = attempts
        self.last_error = last_error


class BaseStage(ABC):
    """Each stage overrides run() and declares STAGE_NAME."""

    STAGE_NAME: str = ""

    def __init__(
        self,
        backoff: Optional[Backoff] = None,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Wait] = None,
        max_attempts: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backoff = backoff or Backoff()
        self.stop_event = stop_event or threading.Event()
        self._wait = wait or self.stop_event.wait
        self.max_attempts = max_attempts
        self.logger = logger or logging.getLogger(f"keyindex.{self.STAGE_NAME}")

    @abstractmethod
    def run(self, channel: HandoffChannel) -> dict[str, int]:
        """Run the stage to completion. Returns {counter: value}."""

    # ------------------------------------------------------------------
    # Retry helpers
    # ------------------------------------------------------------------

    def _check_cancelled(self) -> None:
        if self.stop_event.is_set():
            raise PipelineCancelled(f"{self.STAGE_NAME} cancelled")

    def _retry_sleep(self, attempt: int, error: BaseException) -> float:
        """Back off before retry ``attempt`` (0-based) of the failed call.

        Raises RetriesExhausted once the configured bound is reached and
        PipelineCancelled if the wait is interrupted.
        """
        if self.max_attempts is not None and attempt + 1 >= self.max_attempts:
            raise RetriesExhausted(self.STAGE_NAME, attempt + 1, error) from error
        delay = self.backoff.delay(attempt)
        self.logger.debug(
            "Retrying in %.2fs",
            delay,
            extra={"stage": self.STAGE_NAME, "attempt": attempt, "delay_s": round(delay, 3)},
        )
        if self._wait(delay) or self.stop_event.is_set():
            raise PipelineCancelled(f"{self.STAGE_NAME} cancelled during backoff")
        return delay
