import pytest

from simbook.utils.retry import retry


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


def test_succeeds_after_transient_failures():
    delays = []
    func = Flaky(failures=2)
    wrapped = retry(max_attempts=3, delay=1.0, backoff=3.0,
                    exceptions=(ConnectionError,), sleep=delays.append)(func)

    assert wrapped() == "ok"
    assert func.calls == 3
    assert delays == [1.0, 3.0]


def test_reraises_original_without_give_up():
    func = Flaky(failures=5)
    wrapped = retry(max_attempts=2, exceptions=(ConnectionError,), sleep=lambda s: None)(func)

    with pytest.raises(ConnectionError):
        wrapped()
    assert func.calls == 2


def test_give_up_maps_the_last_error():
    func = Flaky(failures=5)
    wrapped = retry(max_attempts=2, exceptions=(ConnectionError,), sleep=lambda s: None,
                    give_up=lambda e: RuntimeError(f"gave up: {e}"))(func)

    with pytest.raises(RuntimeError, match="gave up: boom") as exc:
        wrapped()
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_other_exceptions_pass_straight_through():
    func = Flaky(failures=1, exc=KeyError)
    wrapped = retry(max_attempts=3, exceptions=(ConnectionError,), sleep=lambda s: None)(func)

    with pytest.raises(KeyError):
        wrapped()
    assert func.calls == 1


def test_callable_objects_are_logged_by_repr(caplog):
    func = Flaky(failures=1)
    wrapped = retry(max_attempts=2, exceptions=(ConnectionError,), sleep=lambda s: None)(func)

    with caplog.at_level("WARNING"):
        assert wrapped() == "ok"
    assert "Attempt 1/2 failed for <" in caplog.text
    assert "Flaky object" in caplog.text
