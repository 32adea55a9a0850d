"""Unit tests for auth/limiter.py -- fixed-window login attempt limiter.

Covers:
- First attempt opens a window with remaining = max - 1
- The attempt after max is rejected with a positive reset_in
- reset() clears the key; next attempt starts a fresh window
- Expired windows are treated as absent and swept
- Keys are independent
- Concurrent checks on one key never over-admit
"""

import threading

import pytest

from auth.limiter import RateLimiter


class TestCheck:
    def test_first_attempt_opens_window(self, limiter, clock) -> None:
        result = limiter.check("login:admin")
        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_in == 15 * 60

    def test_remaining_counts_down(self, limiter) -> None:
        remaining = [limiter.check("login:admin").remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

    def test_sixth_attempt_rejected(self, limiter, clock) -> None:
        for _ in range(5):
            assert limiter.check("login:admin").allowed
        clock.advance(60)
        result = limiter.check("login:admin")
        assert result.allowed is False
        assert result.remaining == 0
        assert result.reset_in == pytest.approx(14 * 60)

    def test_rejections_do_not_extend_window(self, limiter, clock) -> None:
        for _ in range(5):
            limiter.check("login:admin")
        for _ in range(3):
            clock.advance(100)
            assert not limiter.check("login:admin").allowed
        clock.advance(15 * 60 - 300 + 1)
        assert limiter.check("login:admin").allowed

    def test_reset_allows_fresh_window(self, limiter) -> None:
        for _ in range(6):
            limiter.check("login:admin")
        limiter.reset("login:admin")
        result = limiter.check("login:admin")
        assert result.allowed is True
        assert result.remaining == 4

    def test_reset_unknown_key_is_noop(self, limiter) -> None:
        limiter.reset("login:nobody")
        assert len(limiter) == 0

    def test_expired_window_treated_as_absent(self, limiter, clock) -> None:
        for _ in range(6):
            limiter.check("login:admin")
        clock.advance(15 * 60 + 1)
        result = limiter.check("login:admin")
        assert result.allowed is True
        assert result.remaining == 4

    def test_window_still_active_at_exact_reset_time(self, limiter, clock) -> None:
        for _ in range(5):
            limiter.check("login:admin")
        clock.advance(15 * 60)
        assert limiter.check("login:admin").allowed is False

    def test_keys_are_independent(self, limiter) -> None:
        for _ in range(6):
            limiter.check("login:alice")
        assert limiter.check("login:bob").allowed is True


class TestSweep:
    def test_sweep_removes_only_expired(self, limiter, clock) -> None:
        limiter.check("login:old")
        clock.advance(10 * 60)
        limiter.check("login:new")
        clock.advance(5 * 60 + 1)
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_probabilistic_sweep_runs_inside_check(self, clock) -> None:
        always = RateLimiter(max_attempts=5, window_seconds=60, clock=clock, sweep_probability=1.0)
        for key in ("a", "b", "c"):
            always.check(key)
        clock.advance(61)
        always.check("d")
        assert len(always) == 1


class TestValidation:
    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(max_attempts=0)

    def test_rejects_non_positive_window(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)


class TestConcurrency:
    def test_parallel_checks_admit_exactly_max(self, clock) -> None:
        limiter = RateLimiter(max_attempts=5, window_seconds=60, clock=clock, sweep_probability=0)
        results: list[bool] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(20)

        def attempt() -> None:
            barrier.wait()
            allowed = limiter.check("login:admin").allowed
            with results_lock:
                results.append(allowed)

        threads = [threading.Thread(target=attempt) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 5
        assert results.count(False) == 15
