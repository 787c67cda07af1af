"""
Tests for the shared retry policy.
"""

import pytest

from property_chat.errors import CaptionError, EmbeddingError
from property_chat.retry import RetryPolicy, constant_backoff, linear_backoff


class TestBackoff:
    def test_linear_backoff_strictly_increases(self):
        backoff = linear_backoff(1.5)
        delays = [backoff(attempt) for attempt in range(1, 6)]

        assert delays == [1.5, 3.0, 4.5, 6.0, 7.5]
        assert all(a < b for a, b in zip(delays, delays[1:]))

    def test_constant_backoff(self):
        assert {constant_backoff(2.0)(n) for n in range(1, 4)} == {2.0}


class TestRetryPolicy:
    def test_retries_until_success(self, sleeps):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise CaptionError("not yet")
            return "ok"

        policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(1.0), sleep=sleeps.append)

        assert policy.call(flaky) == "ok"
        assert len(attempts) == 3
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self, sleeps):
        calls = []

        def always_fails():
            calls.append(1)
            raise CaptionError("still broken")

        policy = RetryPolicy(max_attempts=4, backoff=linear_backoff(0.5), sleep=sleeps.append)

        with pytest.raises(CaptionError):
            policy.call(always_fails)
        assert len(calls) == 4
        assert sleeps == [0.5, 1.0, 1.5]

    def test_non_retryable_error_is_raised_immediately(self, sleeps):
        calls = []

        def fails():
            calls.append(1)
            raise EmbeddingError("fatal")

        policy = RetryPolicy(
            max_attempts=3,
            retryable=lambda exc: isinstance(exc, CaptionError),
            sleep=sleeps.append,
        )

        with pytest.raises(EmbeddingError):
            policy.call(fails)
        assert len(calls) == 1
        assert sleeps == []

    def test_passes_arguments_through(self, sleeps):
        policy = RetryPolicy(sleep=sleeps.append)
        assert policy.call(lambda a, b=0: a + b, 2, b=3) == 5

    def test_pause_uses_backoff(self, sleeps):
        policy = RetryPolicy(max_attempts=1, backoff=constant_backoff(2.0), sleep=sleeps.append)
        policy.pause()
        policy.pause()
        assert sleeps == [2.0, 2.0]

    def test_pause_skips_zero_delay(self, sleeps):
        RetryPolicy(max_attempts=1, backoff=constant_backoff(0.0), sleep=sleeps.append).pause()
        assert sleeps == []

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
