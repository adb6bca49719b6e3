"""Retry policy shared by all job types.

Extractors never retry on their own. Jobs classify failures with a
``RetryPolicy`` and let Celery reschedule retryable ones with exponential
backoff.
"""

import enum
from dataclasses import dataclass
from typing import Callable

from trivia_scraper.config import get_settings
from trivia_scraper.errors import ExtractError, ScraperError


class Outcome(str, enum.Enum):
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


def default_classifier(exc: BaseException) -> Outcome:
    if isinstance(exc, ExtractError):
        return Outcome.TERMINAL
    if isinstance(exc, ScraperError):
        return Outcome.RETRYABLE if exc.retryable else Outcome.TERMINAL
    return Outcome.TERMINAL


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: int = 30
    max_delay: int = 900
    classifier: Callable[[BaseException], Outcome] = default_classifier

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def classify(self, exc: BaseException) -> Outcome:
        return self.classifier(exc)

    def is_retryable(self, exc: BaseException) -> bool:
        return self.classify(exc) is Outcome.RETRYABLE

    def delay_for(self, attempt: int) -> int:
        """Seconds to wait before the next try; ``attempt`` counts from 0."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        """``attempt`` is the zero-based number of the try that just failed."""
        return self.is_retryable(exc) and attempt + 1 < self.max_attempts
