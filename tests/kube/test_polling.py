"""Tests for nosqldb_operator.kube.polling."""

import pytest

from nosqldb_operator.core.errors import WaitTimeoutError
from nosqldb_operator.kube.polling import poll_until


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestPollUntil:
    def test_immediate_success_does_not_sleep(self):
        clock = FakeClock()
        poll_until(lambda: True, timeout=10, sleep=clock.sleep, clock=clock)
        assert clock.sleeps == []

    def test_retries_until_true(self):
        clock = FakeClock()
        answers = iter([False, False, True])
        poll_until(lambda: next(answers), timeout=10, interval=2, sleep=clock.sleep, clock=clock)
        assert clock.sleeps == [2, 2]

    def test_timeout(self):
        clock = FakeClock()
        with pytest.raises(WaitTimeoutError, match="waiting for pods ready") as excinfo:
            poll_until(lambda: False, timeout=5, interval=2, description="pods ready", sleep=clock.sleep, clock=clock)
        assert clock.now <= 5
        assert excinfo.value.retryable is True
        assert excinfo.value.context.metadata["attempts"] == 3

    def test_predicate_errors_propagate(self):
        def broken():
            raise KeyError("status")

        with pytest.raises(KeyError):
            poll_until(broken, timeout=5)
