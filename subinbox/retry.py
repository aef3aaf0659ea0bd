"""Terminal sink for failures: log, classify, and retry with exponential backoff."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import traceback
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from .error_policy import RECOVERY_POLICIES, ErrorKind, backoff_delay_ms, classify_error
from .models import ErrorRecord, RecoveryPolicy
from .utils import now_ms

logger = logging.getLogger(__name__)

RetryAction = Callable[[], Optional[Awaitable[Any]]]


class ErrorSink(Protocol):
    async def log_error(self, record: ErrorRecord) -> None: ...


class RetryCoordinator:
    """Classify failures, write them to the error log and schedule retries.

    Retry counts are keyed by a context label (for example ``"fetch_items"``)
    and owned by this instance. ``handle()`` never raises: once a failure is
    handed over here it is either retried later or dropped.

    Scheduled retries capture the coordinator's generation; ``close()`` bumps
    it and cancels pending timers so nothing fires after teardown.
    """

    def __init__(
        self,
        error_sink: ErrorSink,
        on_auth_failure: Optional[Callable[[], Any]] = None,
        policies: Mapping[ErrorKind, RecoveryPolicy] = RECOVERY_POLICIES,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._error_sink = error_sink
        self._on_auth_failure = on_auth_failure
        self._policies = policies
        self._clock = clock
        self._retry_counts: dict[str, int] = {}
        self._pending: dict[int, tuple[str, asyncio.TimerHandle]] = {}
        self._tokens = itertools.count()
        self._log_tasks: set[asyncio.Task] = set()
        self._retry_tasks: set[asyncio.Task] = set()
        self._generation = 0

    def handle(
        self, context: str, error: BaseException, retry_action: Optional[RetryAction] = None
    ) -> ErrorKind:
        """Log ``error`` for ``context`` and retry ``retry_action`` if the policy allows."""
        kind = classify_error(error)
        record = self._build_record(context, error, kind)
        logger.error("[%s] %s: %s", kind.value, context, error)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
            logger.warning("No running event loop; error log entry for %s not written", context)
        if loop is not None:
            self._track(self._log_tasks, loop.create_task(self._write_log(record)))

        if kind is ErrorKind.AUTH:
            self._invalidate_session(context)

        policy = self._policies.get(kind) or RECOVERY_POLICIES[ErrorKind.UNKNOWN]
        if not policy.should_retry or retry_action is None or loop is None:
            self._retry_counts.pop(context, None)
            return kind

        attempt = self.get_retry_count(context)
        if attempt >= policy.max_retries:
            self._retry_counts.pop(context, None)
            logger.error("Max retries reached for %s", context)
            return kind

        self._retry_counts[context] = attempt + 1
        delay = backoff_delay_ms(policy, attempt) / 1000
        logger.info(
            "Retrying %s in %.2fs (attempt %d/%d)", context, delay, attempt + 1, policy.max_retries
        )
        token = next(self._tokens)
        handle = loop.call_later(delay, self._fire, self._generation, token, context, retry_action)
        self._pending[token] = (context, handle)
        return kind

    def reset_retry_count(self, context: str) -> None:
        self._retry_counts.pop(context, None)

    def get_retry_count(self, context: str) -> int:
        return self._retry_counts.get(context, 0)

    @property
    def pending_retries(self) -> int:
        return len(self._pending)

    def cancel(self, context: Optional[str] = None) -> int:
        """Cancel scheduled retries for ``context`` (or all of them); returns how many."""
        tokens = [
            token for token, (ctx, _) in self._pending.items() if context is None or ctx == context
        ]
        for token in tokens:
            _, handle = self._pending.pop(token)
            handle.cancel()
        if tokens:
            logger.debug("Cancelled %d pending retries for %s", len(tokens), context or "all contexts")
        return len(tokens)

    def close(self) -> None:
        """Teardown: stale callbacks become no-ops and running retries are cancelled."""
        self._generation += 1
        self.cancel()
        for task in list(self._retry_tasks):
            task.cancel()
        self._retry_counts.clear()

    async def flush(self) -> None:
        """Wait for outstanding error-log writes."""
        if self._log_tasks:
            await asyncio.gather(*list(self._log_tasks), return_exceptions=True)

    def _fire(self, generation: int, token: int, context: str, retry_action: RetryAction) -> None:
        self._pending.pop(token, None)
        if generation != self._generation:
            logger.debug("Dropping stale retry for %s", context)
            return
        loop = asyncio.get_running_loop()
        self._track(self._retry_tasks, loop.create_task(self._run_retry(context, retry_action)))

    async def _run_retry(self, context: str, retry_action: RetryAction) -> None:
        try:
            result = retry_action()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.handle(context, exc, retry_action)

    async def _write_log(self, record: ErrorRecord) -> None:
        try:
            await self._error_sink.log_error(record)
        except Exception as exc:
            # The error log is best effort; the console is the fallback.
            logger.error("Failed to log error: %s", exc)
            logger.error("Original error: %s", record)

    def _invalidate_session(self, context: str) -> None:
        if self._on_auth_failure is None:
            return
        try:
            self._on_auth_failure()
        except Exception:
            logger.exception("Failed to clear session after auth error in %s", context)

    def _build_record(self, context: str, error: BaseException, kind: ErrorKind) -> ErrorRecord:
        stack = None
        if getattr(error, "__traceback__", None) is not None:
            stack = "".join(traceback.format_exception(error))
        return ErrorRecord(
            timestamp=self._clock(),
            context=context,
            message=str(error),
            kind=kind.value,
            stack=stack,
        )

    @staticmethod
    def _track(bucket: set[asyncio.Task], task: asyncio.Task) -> None:
        bucket.add(task)
        task.add_done_callback(bucket.discard)
