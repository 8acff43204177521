import logging
import random

from scanjobs.consts import POLL_BACKOFF_MULTIPLIER, POLL_MAX_INTERVAL

logger = logging.getLogger(__name__)


class BackoffSchedule:
    """Exponential backoff with a ceiling and optional jitter."""

    def __init__(
        self,
        initial_interval: float,
        multiplier: float = POLL_BACKOFF_MULTIPLIER,
        max_interval: float = POLL_MAX_INTERVAL,
        jitter_factor: float = 0.0,
    ):
        if initial_interval <= 0:
            raise ValueError(f"initial_interval must be positive, got {initial_interval}")
        if multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {multiplier}")
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.max_interval = max(max_interval, initial_interval)
        self.jitter_factor = jitter_factor
        self._current = initial_interval
        self._steps = 0

    def reset(self) -> None:
        """Return to the initial interval."""
        self._current = self.initial_interval
        self._steps = 0

    def advance(self) -> float:
        """Grow the interval and return the new value."""
        self._steps += 1
        self._current = min(self._current * self.multiplier, self.max_interval)
        return self.current

    @property
    def current(self) -> float:
        """Current interval with jitter applied."""
        if not self.jitter_factor:
            return self._current
        jitter = self._current * self.jitter_factor * (2 * random.random() - 1)
        return self._current + jitter

    @property
    def steps(self) -> int:
        return self._steps
