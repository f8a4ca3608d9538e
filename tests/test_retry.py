"""
Tests for the per-pair retry policy.

Run with: pytest tests/test_retry.py -v
"""

import pytest

from quickcompare.core.retry_utils import PermanentError, RetryConfig, TransientError, retry_with_backoff

NO_WAIT = dict(initial_backoff=0, jitter=False)


class Flaky:
    """Raises the queued errors in order, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRetryWithBackoff:

    def test_transient_errors_retried_until_success(self):
        func = Flaky(TransientError("503"), TransientError("timeout"))
        assert retry_with_backoff(func, RetryConfig(max_retries=2, **NO_WAIT))() == "ok"
        assert func.calls == 3

    def test_last_error_raised_when_attempts_used_up(self):
        func = Flaky(TransientError("first"), TransientError("second"))

        with pytest.raises(TransientError, match="second"):
            retry_with_backoff(func, RetryConfig(max_retries=1, **NO_WAIT))()
        assert func.calls == 2

    def test_permanent_error_not_retried(self):
        func = Flaky(PermanentError("blocked"))

        with pytest.raises(PermanentError):
            retry_with_backoff(func, RetryConfig(max_retries=3, **NO_WAIT))()
        assert func.calls == 1

    def test_other_exceptions_propagate(self):
        func = Flaky(RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            retry_with_backoff(func, RetryConfig(max_retries=3, **NO_WAIT))()
        assert func.calls == 1

    def test_default_is_single_attempt(self):
        func = Flaky(TransientError("timeout"))

        with pytest.raises(TransientError):
            retry_with_backoff(func)()
        assert func.calls == 1


class TestRetryConfig:

    def test_delay_doubles_and_caps(self):
        config = RetryConfig(initial_backoff=1, max_backoff=5, jitter=False)
        assert [config.delay(n) for n in range(4)] == [1, 2, 4, 5]

    def test_negative_retries_clamped(self):
        assert RetryConfig(max_retries=-2).attempts == 1
