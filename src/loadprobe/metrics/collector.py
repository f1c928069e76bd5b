from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from loadprobe.metrics.models import RequestOutcome


class CollectorClosedError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class CollectorCounts:
    completed: int
    success: int
    failure: int


class OutcomeCollector:
    __slots__ = ("_outcomes", "_success", "_failure", "_closed")

    def __init__(self) -> None:
        self._outcomes: deque[RequestOutcome] = deque()
        self._success = 0
        self._failure = 0
        self._closed = False

    def add(self, outcome: RequestOutcome) -> None:
        if self._closed:
            msg = f"Outcome for {outcome.endpoint} arrived after collection closed"
            raise CollectorClosedError(msg)
        self._outcomes.append(outcome)
        if outcome.is_success:
            self._success += 1
        else:
            self._failure += 1

    def close(self) -> tuple[RequestOutcome, ...]:
        self._closed = True
        return tuple(self._outcomes)

    @property
    def closed(self) -> bool:
        return self._closed

    def counts(self) -> CollectorCounts:
        return CollectorCounts(
            completed=self._success + self._failure,
            success=self._success,
            failure=self._failure,
        )

    def __len__(self) -> int:
        return len(self._outcomes)
