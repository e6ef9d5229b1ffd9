"""Optimistic-concurrency retry for notification record writes."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from deploywatch.domain.errors import ConflictError, ConflictRetryExhaustedError, RecordExistsError

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ConflictBackoff:
    """Bounded exponential backoff between conflicting writes.

    Defaults match the client-go ``retry.DefaultBackoff`` schedule
    (10ms, 50ms, 250ms, ... with 10% jitter).
    """

    steps: int = 5
    duration_seconds: float = 0.01
    factor: float = 5.0
    jitter: float = 0.1

    def delays(self) -> list[float]:
        delays: list[float] = []
        duration = self.duration_seconds
        for _ in range(max(self.steps - 1, 0)):
            delays.append(duration + duration * self.jitter * random.random())  # noqa: S311
            duration *= self.factor
        return delays


def retry_on_conflict[T](
    operation: Callable[[], T],
    *,
    backoff: ConflictBackoff,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` until it does not raise ``ConflictError``.

    ``operation`` must re-read the record and re-apply its change on every call.
    Other errors, and racing creates, propagate immediately.
    """

    delays = backoff.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except RecordExistsError:
            raise
        except ConflictError as exc:
            if attempt > len(delays):
                raise ConflictRetryExhaustedError(exc.identity, attempt) from exc
            delay = delays[attempt - 1]
            log.debug(f"Conflict on {exc.identity} (attempt {attempt}), retrying in {delay:.3f}s")
            sleep(delay)
