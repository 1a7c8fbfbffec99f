import threading
import time

import pytest

from decision_guardian.errors import RegexExecutionError, RegexTimeoutError
from decision_guardian.matching.sandbox import RegexSandbox


def test_search_runs_in_worker(sandbox: RegexSandbox) -> None:
    assert sandbox.search(r"api_key\s*=", "x = 1\napi_key = 'abc'")
    assert not sandbox.search(r"api_key\s*=", "nothing here")
    assert sandbox.is_running


def test_anchored_search_only_matches_at_start(sandbox: RegexSandbox) -> None:
    assert sandbox.search("foo", "foo bar", anchored=True)
    assert not sandbox.search("bar", "foo bar", anchored=True)


def test_invalid_pattern_raises_execution_error(sandbox: RegexSandbox) -> None:
    with pytest.raises(RegexExecutionError):
        sandbox.search("(unclosed", "text")
    assert sandbox.search("text", "text")


def test_runaway_pattern_times_out_and_worker_is_replaced() -> None:
    with RegexSandbox(timeout_seconds=0.5) as sandbox:
        with pytest.raises(RegexTimeoutError) as excinfo:
            sandbox.search(r"(a+)+$", "a" * 40 + "!")
        assert excinfo.value.timeout_seconds == 0.5
        assert not sandbox.is_running

        assert sandbox.search("a", "abc")
        assert sandbox.is_running


def test_close_stops_worker() -> None:
    sandbox = RegexSandbox()
    sandbox.search("a", "a")
    sandbox.close()

    assert not sandbox.is_running


def test_default_start_method_avoids_fork() -> None:
    sandbox = RegexSandbox()

    assert sandbox.start_method in ("forkserver", "spawn")


def test_slow_search_does_not_delay_other_workers() -> None:
    outcome: list[BaseException] = []

    def runaway() -> None:
        try:
            sandbox.search(r"(a+)+$", "a" * 40 + "!")
        except RegexTimeoutError as exc:
            outcome.append(exc)

    with RegexSandbox(timeout_seconds=8.0, workers=2) as sandbox:
        slow = threading.Thread(target=runaway)
        slow.start()
        time.sleep(0.2)

        assert sandbox.search("a", "abc")
        # Answered by the second worker while the first is still busy.
        assert slow.is_alive()

        slow.join()
    assert len(outcome) == 1
