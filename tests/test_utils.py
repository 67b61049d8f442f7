import re
from types import SimpleNamespace
from unittest.mock import call

import pytest

from common.utils import RetryPolicy, call_with_retry, retry, utc_now_iso


class DummyClient:
    def __init__(self, max_retries: int):
        self.settings = SimpleNamespace(MAX_RETRIES=max_retries, MAX_RETRY_BACKOFF=30)
        self.calls = 0

    @retry(retryable_exceptions=(ValueError,))
    def flaky(self) -> str:
        self.calls += 1
        if self.calls < 3:
            raise ValueError("boom")
        return "ok"

    @retry(retryable_exceptions=(ValueError,))
    def fail(self) -> None:
        self.calls += 1
        raise ValueError("nope")

    @retry(retryable_exceptions=(ValueError,))
    def wrong_type(self) -> None:
        self.calls += 1
        raise KeyError("not retried")


def test_retry_succeeds_after_retries(mocker):
    sleep_mock = mocker.patch("common.utils.time.sleep")
    mocker.patch("common.utils.random.uniform", return_value=1.0)
    client = DummyClient(max_retries=3)

    assert client.flaky() == "ok"
    assert client.calls == 3
    sleep_mock.assert_has_calls([call(1.0), call(2.0)])


def test_retry_raises_after_max_retries(mocker):
    sleep_mock = mocker.patch("common.utils.time.sleep")
    client = DummyClient(max_retries=2)

    with pytest.raises(ValueError, match="nope"):
        client.fail()

    assert client.calls == 2
    sleep_mock.assert_called_once()


def test_retry_does_not_catch_other_exceptions(mocker):
    sleep_mock = mocker.patch("common.utils.time.sleep")
    client = DummyClient(max_retries=3)

    with pytest.raises(KeyError):
        client.wrong_type()

    assert client.calls == 1
    sleep_mock.assert_not_called()


def test_call_with_retry_zero_attempts_raises_value_error():
    func = lambda: "never"  # noqa: E731

    with pytest.raises(ValueError, match="max_attempts must be >= 1"):
        call_with_retry(func, policy=RetryPolicy(max_attempts=0))


def test_call_with_retry_stops_on_non_retryable_error():
    sleeps = []
    calls = []

    def func():
        calls.append(1)
        raise RuntimeError("bad request")

    with pytest.raises(RuntimeError, match="bad request"):
        call_with_retry(
            func,
            policy=RetryPolicy(max_attempts=5),
            should_retry=lambda e: False,
            sleep=sleeps.append,
        )

    assert len(calls) == 1
    assert sleeps == []


def test_call_with_retry_passes_arguments_and_returns_result():
    sleeps = []
    attempts = []

    def func(a, b, *, c):
        attempts.append((a, b, c))
        if len(attempts) < 2:
            raise RuntimeError("transient")
        return a + b + c

    result = call_with_retry(
        func, 1, 2, c=3, policy=RetryPolicy(jitter=0), sleep=sleeps.append
    )

    assert result == 6
    assert attempts == [(1, 2, 3), (1, 2, 3)]
    assert sleeps == [1.0]


def test_call_with_retry_reraises_last_error_after_budget():
    sleeps = []
    errors = [RuntimeError(f"fail {i}") for i in range(3)]

    def func():
        raise errors.pop(0)

    with pytest.raises(RuntimeError, match="fail 2"):
        call_with_retry(func, policy=RetryPolicy(max_attempts=3, jitter=0), sleep=sleeps.append)

    assert sleeps == [1.0, 2.0]


def test_retry_policy_uses_exponential_delay(mocker):
    mocker.patch("common.utils.random.uniform", return_value=1.0)
    policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=30.0)

    assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 8.0]


def test_retry_policy_caps_delay(mocker):
    mocker.patch("common.utils.random.uniform", return_value=1.2)
    policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=10.0)

    assert policy.delay_for(6) == 10.0


def test_retry_policy_jitter_stays_in_band():
    policy = RetryPolicy(base_delay=4.0, multiplier=2.0, max_delay=100.0, jitter=0.2)

    for _ in range(50):
        assert 3.2 <= policy.delay_for(1) <= 4.8


def test_utc_now_iso_format():
    value = utc_now_iso()

    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", value)
