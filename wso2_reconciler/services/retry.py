# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Retry logic with exponential backoff for WSO2 calls.

Two kinds of calls are retried with independent policies:
- MUTATION: create/update/delete/lifecycle calls
- CHECK: read-after-write verification, because the WSO2 cluster applies
  writes eventually and a read right after a write may still be stale

Every failure is retried. After the last attempt the original exception is
re-raised unwrapped so the upstream message stays readable in the
CloudFormation event.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models import RetryPolicy

logger = structlog.get_logger(__name__)
T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class RetryKind(str, Enum):
    MUTATION = "mutation"
    CHECK = "check"


@dataclass(frozen=True)
class RetryAttempt:
    """Emitted before sleeping ahead of a new attempt."""

    kind: RetryKind
    description: str
    attempt_number: int  # the attempt that just failed, 1-based
    max_attempts: int
    delay_seconds: float
    error: BaseException


class RetryObserver(Protocol):
    def on_retry(self, attempt: RetryAttempt) -> None: ...


class LoggingRetryObserver:
    """Default observer: one structured warning per retry."""

    def on_retry(self, attempt: RetryAttempt) -> None:
        logger.warning(
            "operation_failed_will_retry",
            retry_kind=attempt.kind.value,
            operation=attempt.description,
            attempt=attempt.attempt_number,
            max_attempts=attempt.max_attempts,
            delay_seconds=round(attempt.delay_seconds, 3),
            error=str(attempt.error),
            error_type=type(attempt.error).__name__,
        )


class RetryExecutor:
    """Runs one async operation under a RetryPolicy."""

    def __init__(
        self,
        policy: RetryPolicy,
        kind: RetryKind,
        observer: Optional[RetryObserver] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.policy = policy
        self.kind = kind
        self.observer = observer or LoggingRetryObserver()
        self._sleep = sleep

    def _wait_strategy(self) -> wait_exponential:
        # min(start * mult^(n-1), max), in seconds, no jitter. The up-front
        # delay counts as the first step of the sequence.
        start = self.policy.starting_delay / 1000
        if self.policy.delay_first_attempt:
            start *= self.policy.time_multiple
        return wait_exponential(
            multiplier=start,
            exp_base=self.policy.time_multiple,
            max=self.policy.max_delay / 1000,
        )

    def _before_sleep(self, description: str) -> Callable[[RetryCallState], None]:
        def emit(retry_state: RetryCallState) -> None:
            self.observer.on_retry(
                RetryAttempt(
                    kind=self.kind,
                    description=description,
                    attempt_number=retry_state.attempt_number,
                    max_attempts=self.policy.num_of_attempts,
                    delay_seconds=retry_state.next_action.sleep if retry_state.next_action else 0.0,
                    error=retry_state.outcome.exception(),
                )
            )

        return emit

    async def execute(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Run ``operation`` until it succeeds or the policy is exhausted.

        Args:
            operation: Zero-argument callable returning an awaitable (a lambda works)
            description: Human-readable name used in retry events

        Returns:
            Whatever ``operation`` returns

        Raises:
            The exception of the last failed attempt, unmodified
        """
        if self.policy.delay_first_attempt:
            await self._sleep(self.policy.starting_delay / 1000)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.num_of_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_exception_type(Exception),
            before_sleep=self._before_sleep(description),
            sleep=self._sleep,
            reraise=True,
        )

        # tenacity only awaits coroutine functions; lambdas returning a
        # coroutine must be awaited here
        async def attempt() -> T:
            return await operation()

        try:
            return await retrying(attempt)
        except Exception as e:
            logger.error(
                "operation_failed_retries_exhausted",
                retry_kind=self.kind.value,
                operation=description,
                max_attempts=self.policy.num_of_attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


@dataclass
class RetryExecutors:
    """The mutation and check executors of one invocation."""

    mutation: RetryExecutor
    check: RetryExecutor

    @classmethod
    def from_policies(
        cls,
        mutation_policy: RetryPolicy,
        check_policy: RetryPolicy,
        observer: Optional[RetryObserver] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "RetryExecutors":
        return cls(
            mutation=RetryExecutor(mutation_policy, RetryKind.MUTATION, observer, sleep),
            check=RetryExecutor(check_policy, RetryKind.CHECK, observer, sleep),
        )
