# -*- coding: utf-8 -*-
"""
Adaptive progress polling for a single verification batch.

The poller fetches progress once immediately, then re-arms a single
``loop.call_later`` timer after each fetch resolves, so a fetch is never
raced by a second one. Rate limiting (HTTP 429) backs off exponentially,
other failures back off gently, and successful fetches decay the interval
back towards the baseline.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .errors import (
    NotAuthenticatedError,
    RateLimitedError,
    ServerReportedError,
    TransportError,
)
from .models import BatchJob, BatchStatus

BASE_INTERVAL_MS = 5000
MAX_RATE_LIMIT_INTERVAL_MS = 30000
MAX_FAILURE_INTERVAL_MS = 15000
DECAY_FACTOR = 0.8
FAILURE_FACTOR = 1.2


@dataclass(frozen=True)
class PollingPolicy:
    """Interval bounds and factors of the adaptive poller, in milliseconds."""
    base_interval_ms: float = BASE_INTERVAL_MS
    max_rate_limit_interval_ms: float = MAX_RATE_LIMIT_INTERVAL_MS
    max_failure_interval_ms: float = MAX_FAILURE_INTERVAL_MS
    decay_factor: float = DECAY_FACTOR
    failure_factor: float = FAILURE_FACTOR

    def __post_init__(self):
        if self.base_interval_ms <= 0:
            raise ValueError("base_interval_ms must be positive")
        if self.max_rate_limit_interval_ms < self.base_interval_ms:
            raise ValueError("max_rate_limit_interval_ms must be >= base_interval_ms")
        if self.max_failure_interval_ms < self.base_interval_ms:
            raise ValueError("max_failure_interval_ms must be >= base_interval_ms")
        if not 0 < self.decay_factor < 1:
            raise ValueError("decay_factor must be between 0 and 1")
        if self.failure_factor < 1:
            raise ValueError("failure_factor must be >= 1")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PollingPolicy":
        data = data or {}
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**known)

    def rate_limited_interval(self, retry_count: int) -> float:
        return min(self.max_rate_limit_interval_ms, self.base_interval_ms * 2 ** retry_count)

    def decayed_interval(self, interval_ms: float) -> float:
        if interval_ms > self.base_interval_ms:
            return max(self.base_interval_ms, interval_ms * self.decay_factor)
        return interval_ms

    def failure_interval(self, interval_ms: float) -> float:
        return min(self.max_failure_interval_ms, interval_ms * self.failure_factor)


@dataclass
class PollState:
    interval_ms: float
    retry_count: int = 0
    timer_handle: Optional[asyncio.TimerHandle] = None
    in_flight: bool = False


class PollOutcome(str, Enum):
    UPDATED = "updated"
    COMPLETED = "completed"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_ERROR = "transient_error"


class AdaptivePoller:
    """
    Polls ``api.get_progress(batch_id)`` until the batch reaches a terminal state.

    Args:
        api: Object exposing ``async get_progress(batch_id) -> BatchJob``.
        batch_id: The batch to watch.
        policy: Interval bounds and factors.
        on_update: Called with the poller after every fetch (successful or not).
        on_complete: Awaited with the final snapshot once the batch completes.
    """

    def __init__(
        self,
        api,
        batch_id: str,
        policy: Optional[PollingPolicy] = None,
        on_update: Optional[Callable[["AdaptivePoller"], None]] = None,
        on_complete: Optional[Callable[[BatchJob], Awaitable[None]]] = None,
    ):
        self.api = api
        self.batch_id = batch_id
        self.policy = policy or PollingPolicy()
        self.on_update = on_update
        self.on_complete = on_complete

        self.state = PollState(interval_ms=self.policy.base_interval_ms)
        self.job: Optional[BatchJob] = None
        self.last_error: Optional[Exception] = None
        self.failure: Optional[Exception] = None

        self._active = False
        self._task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Future] = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def done(self) -> bool:
        return self._done is not None and self._done.done()

    #=========================================================================
    # Lifecycle
    #=========================================================================

    def start(self):
        """Issue the first fetch immediately; later fetches follow the timer."""
        if self._active:
            raise RuntimeError(f"Poller for batch {self.batch_id} is already running")
        loop = asyncio.get_running_loop()
        self.state = PollState(interval_ms=self.policy.base_interval_ms)
        self._done = loop.create_future()
        self._active = True
        logging.info(f"Monitoring progress of batch {self.batch_id}")
        self._task = loop.create_task(self.run_cycle())

    def cancel(self):
        """Stop polling locally, including a running completion callback. Safe to call repeatedly."""
        task = self._task
        self._task = None
        pending = task is not None and not task.done()
        if not self._active and self.state.timer_handle is None and not pending:
            return
        self._active = False
        self._clear_timer()
        if pending and task is not asyncio.current_task():
            task.cancel()
        self._resolve()
        logging.info(f"Stopped monitoring batch {self.batch_id}")

    async def wait(self) -> Optional[BatchJob]:
        """Wait until polling stops and return the last snapshot."""
        if self._done is None:
            return self.job
        await asyncio.shield(self._done)
        return self.job

    async def run_cycle(self) -> PollOutcome:
        """Fetch progress once, then finalize or re-arm the timer."""
        outcome = await self.poll_once()
        if not self._active:
            return outcome

        if outcome is PollOutcome.COMPLETED:
            self._stop()
            if self.on_complete is not None:
                try:
                    await self.on_complete(self.job)
                finally:
                    self._resolve()
            else:
                self._resolve()
        elif outcome is PollOutcome.FAILED:
            self._stop()
            self._resolve()
        else:
            self._arm()
        return outcome

    async def poll_once(self) -> PollOutcome:
        """Fetch progress once and apply the backoff rules. Never re-arms the timer."""
        state = self.state
        state.in_flight = True
        try:
            job = await self.api.get_progress(self.batch_id)
        except RateLimitedError as e:
            state.retry_count += 1
            state.interval_ms = self.policy.rate_limited_interval(state.retry_count)
            self.last_error = e
            logging.warning(f"Rate limited. Backing off for {state.interval_ms:.0f}ms "
                            f"(attempt {state.retry_count})")
            outcome = PollOutcome.RATE_LIMITED
        except ServerReportedError as e:
            self.last_error = e
            self.failure = e
            logging.error(f"Batch {self.batch_id} progress failed: {e}")
            outcome = PollOutcome.FAILED
        except (TransportError, NotAuthenticatedError) as e:
            state.interval_ms = self.policy.failure_interval(state.interval_ms)
            self.last_error = e
            logging.warning(f"Fetch progress error: {e}. Next attempt in {state.interval_ms:.0f}ms")
            outcome = PollOutcome.TRANSIENT_ERROR
        else:
            self.job = job
            self.last_error = None
            state.retry_count = 0
            state.interval_ms = self.policy.decayed_interval(state.interval_ms)
            outcome = self._classify(job)
        finally:
            state.in_flight = False

        if self.on_update is not None:
            self.on_update(self)
        return outcome

    #=========================================================================
    # Timer handling
    #=========================================================================

    def _classify(self, job: BatchJob) -> PollOutcome:
        if job.status is BatchStatus.COMPLETED:
            logging.info(f"Batch {self.batch_id} has completed: {job.success_count} verified, "
                         f"{job.error_count} errors out of {job.total_contacts}")
            return PollOutcome.COMPLETED
        if job.is_terminal:
            self.failure = ServerReportedError(f"Batch {self.batch_id} finished with status '{job.status.value}'")
            logging.error(f"Batch {self.batch_id} failed with status '{job.status.value}'")
            return PollOutcome.FAILED
        logging.debug(f"Batch {self.batch_id} is {job.status.value}, "
                      f"{job.processed_contacts}/{job.total_contacts} processed "
                      f"({job.progress_percentage}%)")
        return PollOutcome.UPDATED

    def _arm(self):
        self._clear_timer()
        loop = asyncio.get_running_loop()
        self.state.timer_handle = loop.call_later(self.state.interval_ms / 1000, self._on_timer)

    def _clear_timer(self):
        handle = self.state.timer_handle
        self.state.timer_handle = None
        if handle is not None:
            handle.cancel()

    def _on_timer(self):
        self.state.timer_handle = None
        if not self._active or self.state.in_flight:
            return
        self._task = asyncio.get_running_loop().create_task(self.run_cycle())

    def _stop(self):
        self._active = False
        self._clear_timer()

    def _resolve(self):
        if self._done is not None and not self._done.done():
            self._done.set_result(self.job)
