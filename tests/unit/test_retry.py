from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from fakes import no_sleep

from siteintel.domain.errors import InvalidInputError, NetworkTimeoutError
from siteintel.utils.retry import RetryPolicy, linear_backoff, retry_async


def test_succeeds_after_transient_failures() -> None:
    calls = {"n": 0}
    delays: list[float] = []
    retries: list[int] = []

    async def flaky() -> str:
        calls["n"] += 1
        if calls["n"] < 3:
            raise NetworkTimeoutError("timeout")
        return "ok"

    async def record_sleep(seconds: float) -> None:
        delays.append(seconds)

    result = asyncio.run(
        retry_async(
            flaky,
            RetryPolicy(max_attempts=3, backoff=linear_backoff(2.0)),
            retry_on=(NetworkTimeoutError,),
            on_retry=lambda attempt, _e: retries.append(attempt),
            sleep=record_sleep,
        )
    )

    assert result == "ok"
    assert calls["n"] == 3
    assert retries == [1, 2]
    assert delays == [2.0, 4.0]


def test_last_error_raised_when_attempts_exhausted() -> None:
    calls = {"n": 0}

    async def always_fails() -> None:
        calls["n"] += 1
        raise NetworkTimeoutError(f"timeout {calls['n']}")

    with pytest.raises(NetworkTimeoutError, match="timeout 2"):
        asyncio.run(retry_async(always_fails, RetryPolicy(max_attempts=2), retry_on=(NetworkTimeoutError,), sleep=no_sleep))
    assert calls["n"] == 2


def test_non_retryable_error_propagates_immediately() -> None:
    calls = {"n": 0}

    async def bad_input() -> None:
        calls["n"] += 1
        raise InvalidInputError("bad")

    with pytest.raises(InvalidInputError):
        asyncio.run(retry_async(bad_input, RetryPolicy(max_attempts=5), retry_on=(NetworkTimeoutError,), sleep=no_sleep))
    assert calls["n"] == 1


def test_policy_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_retry_refuses_a_policy_without_attempts() -> None:
    # frozen RetryPolicy validates itself; a hand-built policy object may not
    policy = SimpleNamespace(max_attempts=0, backoff=linear_backoff(1.0))
    calls = {"n": 0}

    async def op() -> str:
        calls["n"] += 1
        return "ok"

    with pytest.raises(ValueError):
        asyncio.run(retry_async(op, policy, sleep=no_sleep))  # type: ignore[arg-type]
    assert calls["n"] == 0
