from __future__ import annotations

import pytest

from deploywatch.domain.concurrency import ConflictBackoff, retry_on_conflict
from deploywatch.domain.errors import (
    ConflictError,
    ConflictRetryExhaustedError,
    FetchError,
    RecordExistsError,
)
from tests.helpers.workloads import WEB


def test_default_backoff_follows_conflict_schedule() -> None:
    delays = ConflictBackoff(jitter=0.0).delays()

    assert delays == pytest.approx([0.01, 0.05, 0.25, 1.25])


def test_jitter_only_lengthens_delays() -> None:
    for base, delay in zip([0.01, 0.05, 0.25, 1.25], ConflictBackoff().delays(), strict=True):
        assert base <= delay <= base * 1.1


def test_retries_until_operation_succeeds() -> None:
    sleeps: list[float] = []
    outcomes: list[Exception | str] = [ConflictError(WEB), ConflictError(WEB), "stored"]

    def operation() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    result = retry_on_conflict(
        operation,
        backoff=ConflictBackoff(jitter=0.0),
        sleep=sleeps.append,
    )

    assert result == "stored"
    assert sleeps == pytest.approx([0.01, 0.05])


def test_exhausted_budget_raises() -> None:
    calls = 0

    def operation() -> None:
        nonlocal calls
        calls += 1
        raise ConflictError(WEB)

    with pytest.raises(ConflictRetryExhaustedError) as exc:
        retry_on_conflict(operation, backoff=ConflictBackoff(steps=3), sleep=lambda _: None)

    assert calls == 3
    assert exc.value.attempts == 3
    assert exc.value.identity == WEB


def test_non_conflict_errors_propagate_immediately() -> None:
    calls = 0

    def operation() -> None:
        nonlocal calls
        calls += 1
        raise FetchError("database is down")

    with pytest.raises(FetchError):
        retry_on_conflict(operation, backoff=ConflictBackoff(), sleep=lambda _: None)

    assert calls == 1


def test_racing_create_is_not_retried() -> None:
    calls = 0

    def operation() -> None:
        nonlocal calls
        calls += 1
        raise RecordExistsError(WEB)

    with pytest.raises(RecordExistsError):
        retry_on_conflict(operation, backoff=ConflictBackoff(), sleep=lambda _: None)

    assert calls == 1
