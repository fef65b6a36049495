"""Tests for the retry policy."""

import pytest

from jenkins_ctl.errors import JenkinsRequestError, JenkinsTransportError
from jenkins_ctl.retry import RetryPolicy, with_retry


class Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or JenkinsTransportError("connection reset")
        self.attempts = 0

    def __call__(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return "ok"


def test_fixed_policy_waits_the_same_interval():
    sleeps = []
    func = Flaky(failures=2)

    assert RetryPolicy.fixed(3, 0.5, sleep=sleeps.append).call(func) == "ok"
    assert sleeps == [0.5, 0.5]


def test_exponential_delays_are_capped():
    policy = RetryPolicy(max_retries=5, base_delay=1, max_delay=5, backoff_multiplier=2)
    assert [policy.delay_for(n) for n in range(5)] == [1, 2, 4, 5, 5]


def test_jitter_stays_within_bounds():
    policy = RetryPolicy(base_delay=2, max_delay=60, backoff_multiplier=2, jitter=True)
    for _ in range(20):
        assert 2.2 <= policy.delay_for(0) <= 3.8


def test_gives_up_after_max_retries():
    func = Flaky(failures=10)

    with pytest.raises(JenkinsTransportError):
        RetryPolicy.fixed(2, 0, sleep=lambda s: None).call(func)
    assert func.attempts == 3


def test_non_retryable_error_propagates_at_once():
    func = Flaky(failures=1, error=JenkinsRequestError("HTTP 404", status_code=404))

    with pytest.raises(JenkinsRequestError):
        RetryPolicy.fixed(3, 0, sleep=lambda s: None).call(func)
    assert func.attempts == 1


def test_decorator_uses_owner_policy():
    sleeps = []

    class Service:
        request_id = "svc"
        retry_policy = RetryPolicy.fixed(1, 0.25, sleep=sleeps.append)

        def __init__(self):
            self.flaky = Flaky(failures=1)

        @with_retry(max_retries=5)
        def fetch(self):
            return self.flaky()

    service = Service()
    assert service.fetch() == "ok"
    assert service.flaky.attempts == 2
    assert sleeps == [0.25]


def test_retries_stop_at_deadline():
    now = [0.0]
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        now[0] += seconds

    func = Flaky(failures=10)
    policy = RetryPolicy.fixed(5, 0.5, sleep=sleep, clock=lambda: now[0])

    with pytest.raises(JenkinsTransportError):
        policy.call(func, deadline=0.75)

    assert sleeps == [0.5, 0.25]
    assert now[0] == 0.75
    assert func.attempts == 3
