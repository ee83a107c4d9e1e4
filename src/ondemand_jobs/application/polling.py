"""Supervised status polling with bounds and cancellation."""

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

from ondemand_jobs.domain.exceptions import CancelledError, PollTimeoutError


@dataclass(frozen=True)
class PollPolicy:
    """How often to check and when to give up."""

    interval: float = 5.0
    max_checks: Optional[int] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("Poll interval cannot be negative")
        if self.max_checks is not None and self.max_checks <= 0:
            raise ValueError("max_checks must be positive")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")


class CancellationToken:
    """Cancellation handle shared between a caller and a running poll."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation and wake a waiting poller."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


class Poller:
    """
    Runs status checks one after another until one reports completion.

    A check is only scheduled after the previous one returned, so checks
    never overlap. Errors raised by a check end the poll and propagate.
    """

    def __init__(
        self,
        policy: PollPolicy,
        cancel_token: Optional[CancellationToken] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.policy = policy
        self.cancel_token = cancel_token or CancellationToken()
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self.checks = 0

    def run(
        self,
        check: Callable[[], Any],
        is_done: Callable[[Any], bool],
        on_check: Optional[Callable[[int], None]] = None
    ) -> Any:
        """
        Poll until is_done(check()) is true.

        Args:
            check: Performs one status check and returns its response
            is_done: Decides whether a response is terminal
            on_check: Called with the running check count after each check

        Returns:
            The response of the completing check

        Raises:
            CancelledError: If the token was cancelled
            PollTimeoutError: If max_checks or timeout was exceeded
        """
        policy = self.policy
        start_time = self._clock()
        self.checks = 0

        while True:
            if policy.max_checks is not None and self.checks >= policy.max_checks:
                raise PollTimeoutError(
                    f"Job not complete after {self.checks} status checks"
                )

            wait_for = policy.interval
            if policy.timeout is not None:
                remaining = policy.timeout - (self._clock() - start_time)
                if remaining <= 0:
                    raise PollTimeoutError(
                        f"Job not complete within {policy.timeout}s "
                        f"({self.checks} status checks)"
                    )
                wait_for = min(policy.interval, remaining)

            if self.cancel_token.wait(wait_for):
                self.logger.info(f"Polling cancelled after {self.checks} checks")
                raise CancelledError("Polling was cancelled")

            elapsed = self._clock() - start_time
            if policy.timeout is not None and elapsed > policy.timeout:
                raise PollTimeoutError(
                    f"Job not complete within {policy.timeout}s "
                    f"({self.checks} status checks)"
                )

            response = check()
            self.checks += 1
            if on_check:
                on_check(self.checks)

            if is_done(response):
                self.logger.debug(f"Polling finished after {self.checks} checks")
                return response

            self.logger.debug(
                f"Job still in progress (check {self.checks}, elapsed: {elapsed:.0f}s)"
            )


class PollingTask:
    """Handle for a submission that polls on a worker thread."""

    def __init__(self, future: Future, cancel_token: CancellationToken):
        self._future = future
        self.cancel_token = cancel_token

    def cancel(self) -> None:
        """Stop polling; result() then raises CancelledError."""
        self.cancel_token.cancel()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block until the submission settles and return its result."""
        return self._future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout)
