"""Tests for BackoffSchedule."""

import pytest

from scanjobs.scanner.backoff import BackoffSchedule


class TestBackoffSchedule:
    """Tests for exponential backoff with ceiling."""

    def test_grows_by_multiplier(self) -> None:
        schedule = BackoffSchedule(2.0)
        assert schedule.current == 2.0
        assert schedule.advance() == pytest.approx(3.0)
        assert schedule.advance() == pytest.approx(4.5)
        assert schedule.advance() == pytest.approx(6.75)
        assert schedule.steps == 3

    def test_capped_at_ceiling(self) -> None:
        schedule = BackoffSchedule(3.0, max_interval=10.0)
        for _ in range(10):
            schedule.advance()
        assert schedule.current == 10.0

    def test_initial_above_ceiling_is_kept(self) -> None:
        schedule = BackoffSchedule(15.0, max_interval=10.0)
        assert schedule.advance() == 15.0

    def test_reset(self) -> None:
        schedule = BackoffSchedule(2.0)
        schedule.advance()
        schedule.advance()
        schedule.reset()
        assert schedule.current == 2.0
        assert schedule.steps == 0

    def test_jitter_stays_within_factor(self) -> None:
        schedule = BackoffSchedule(4.0, jitter_factor=0.25)
        for _ in range(50):
            assert 3.0 <= schedule.current <= 5.0

    @pytest.mark.parametrize("interval,multiplier", [(0, 1.5), (-1, 1.5), (2.0, 0.5)])
    def test_rejects_invalid_parameters(self, interval: float, multiplier: float) -> None:
        with pytest.raises(ValueError):
            BackoffSchedule(interval, multiplier=multiplier)
