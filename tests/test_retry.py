import pytest

from cabinetry.infra.retry import retry_on


class Flaky:
    def __init__(self, failures, exc=ConnectionError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc("boom")
        return "ok"


def test_retries_until_success():
    fn = Flaky(2)
    delays = []
    assert retry_on(fn, attempts=3, sleep=delays.append) == "ok"
    assert fn.calls == 3
    assert len(delays) == 2
    assert all(0 < d <= 2.5 for d in delays)


def test_gives_up_after_attempts():
    fn = Flaky(5)
    with pytest.raises(ConnectionError):
        retry_on(fn, attempts=3, sleep=lambda s: None)
    assert fn.calls == 3


def test_non_retryable_raises_immediately():
    fn = Flaky(1, exc=ValueError)
    seen = []
    with pytest.raises(ValueError):
        retry_on(
            fn,
            attempts=3,
            is_retryable=lambda e: isinstance(e, ConnectionError),
            on_retry=lambda *a: seen.append(a),
            sleep=lambda s: None,
        )
    assert fn.calls == 1
    assert seen == []


def test_on_retry_receives_attempt_number():
    fn = Flaky(1)
    seen = []
    retry_on(fn, attempts=2, on_retry=lambda n, e, s: seen.append((n, type(e))), sleep=lambda s: None)
    assert seen == [(1, ConnectionError)]
