"""Asynchronous processing pipeline for stored webhook events.

Events move ``pending -> processing -> completed | failed``. The pipeline:
- Accepts scheduled (tenant, event) pairs on a bounded asyncio queue
- Runs a fixed pool of worker tasks that claim each event with a
  compare-and-set before invoking the business-logic handler
- Bounds each handler call with a timeout that fails the event
- Sweeps periodically for events stuck in ``processing`` past the timeout
  and for pending events that never reached a worker

Failed events are never retried automatically; only the explicit retry
operation puts them back to ``pending``.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog

from hcm_webhooks.config.settings import PipelineSettings
from hcm_webhooks.core import metrics
from hcm_webhooks.core.exceptions import ProcessingError
from hcm_webhooks.webhooks.config_store import ConfigurationStore
from hcm_webhooks.webhooks.event_store import EventStore
from hcm_webhooks.webhooks.handlers import EventHandler, LoggingEventHandler
from hcm_webhooks.webhooks.types import ProcessingStatus

logger = structlog.get_logger()


@dataclass
class ProcessingOutcome:
    """Result of one ``process_event`` call.

    Attributes:
        tenant_id: Owning tenant
        event_id: Event that was (or was not) processed
        status: Final status written, None when the event was not claimed
        error: Message recorded on a failed event
        duration_ms: Time spent in the handler
    """

    tenant_id: UUID
    event_id: int
    status: ProcessingStatus | None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def skipped(self) -> bool:
        return self.status is None


@dataclass
class SweepResult:
    """What one sweeper pass changed."""

    failed_stuck: int = 0
    requeued_pending: int = 0


class ProcessingPipeline:
    """Bounded worker pool that drives stored events through processing.

    Args:
        config_store: Loads each event's configuration
        event_store: Performs the state transitions
        handler: Business logic (defaults to a logging handler)
        settings: Worker count, queue size, timeout and sweep tuning
    """

    def __init__(
        self,
        config_store: ConfigurationStore,
        event_store: EventStore,
        handler: EventHandler | None = None,
        settings: PipelineSettings | None = None,
    ):
        self.config_store = config_store
        self.event_store = event_store
        self.handler: EventHandler = handler or LoggingEventHandler()
        self.settings = settings or PipelineSettings()
        self._queue: asyncio.Queue[tuple[UUID, int]] = asyncio.Queue(
            maxsize=self.settings.queue_size
        )
        self._workers: list[asyncio.Task] = []
        self._sweeper: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return bool(self._workers) and not all(task.done() for task in self._workers)

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, *, sweep: bool = True) -> None:
        """Start worker tasks and, unless disabled, the sweeper."""
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"webhook-worker-{index}")
            for index in range(self.settings.workers)
        ]
        if sweep:
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="webhook-sweeper")
        logger.info(
            "processing_pipeline_started",
            workers=self.settings.workers,
            queue_size=self.settings.queue_size,
            timeout_seconds=self.settings.timeout_seconds,
        )

    async def stop(self) -> None:
        """Cancel workers and the sweeper and wait for them to exit.

        Events still queued stay ``pending`` in the store and are picked up
        by the sweeper of the next running instance.
        """
        tasks = list(self._workers)
        if self._sweeper is not None:
            tasks.append(self._sweeper)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._sweeper = None
        logger.info("processing_pipeline_stopped", abandoned=self._queue.qsize())

    async def drain(self) -> None:
        """Wait until every scheduled event has been handled."""
        await self._queue.join()

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule(self, tenant_id: UUID, event_id: int) -> bool:
        """Hand an event to the worker pool without waiting.

        Returns:
            False when the queue is full; the event then stays ``pending``
            until the sweeper requeues it
        """
        try:
            self._queue.put_nowait((tenant_id, event_id))
        except asyncio.QueueFull:
            logger.warning(
                "processing_queue_full",
                tenant_id=str(tenant_id),
                event_id=event_id,
                queue_size=self.settings.queue_size,
            )
            return False
        metrics.QUEUE_DEPTH.set(self._queue.qsize())
        return True

    async def _worker(self, index: int) -> None:
        while True:
            tenant_id, event_id = await self._queue.get()
            try:
                await self.process_event(tenant_id, event_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "processing_worker_error",
                    worker=index,
                    tenant_id=str(tenant_id),
                    event_id=event_id,
                )
            finally:
                self._queue.task_done()
                metrics.QUEUE_DEPTH.set(self._queue.qsize())

    # =========================================================================
    # Processing
    # =========================================================================

    async def process_event(self, tenant_id: UUID, event_id: int) -> ProcessingOutcome:
        """Claim and process one event.

        The claim is a compare-and-set from ``pending`` to ``processing``; a
        caller that loses the claim returns a skipped outcome without
        touching the event. The result is written only while the event
        still holds the attempt number this claim produced.
        """
        attempt = await self.event_store.claim(tenant_id, event_id)
        if attempt is None:
            logger.debug("processing_claim_skipped", tenant_id=str(tenant_id), event_id=event_id)
            return ProcessingOutcome(tenant_id=tenant_id, event_id=event_id, status=None)

        timeout = self.settings.timeout_seconds
        started = time.perf_counter()
        error: str | None = None
        try:
            event = await self.event_store.get(tenant_id, event_id)
            configuration = await self.config_store.get(tenant_id, event.configuration_id)
            result = await asyncio.wait_for(
                self.handler(event, configuration, event.extracted_fields),
                timeout=timeout,
            )
            if not result.success:
                error = result.error_message or "Processing failed"
        except TimeoutError:
            error = f"Processing timed out after {timeout:g} seconds"
        except ProcessingError as e:
            error = e.message
        except asyncio.CancelledError:
            await self._record(
                tenant_id, event_id, attempt, "Processing cancelled during shutdown", started
            )
            raise
        except Exception as e:
            logger.exception(
                "webhook_event_processing_error",
                tenant_id=str(tenant_id),
                event_id=event_id,
            )
            error = f"{type(e).__name__}: {e}"

        return await self._record(tenant_id, event_id, attempt, error, started)

    async def _record(
        self,
        tenant_id: UUID,
        event_id: int,
        attempt: int,
        error: str | None,
        started: float,
    ) -> ProcessingOutcome:
        duration = time.perf_counter() - started
        if error is None:
            status = ProcessingStatus.COMPLETED
            written = await self.event_store.mark_completed(tenant_id, event_id, attempt)
        else:
            status = ProcessingStatus.FAILED
            written = await self.event_store.mark_failed(tenant_id, event_id, attempt, error)

        if not written:
            # The sweeper failed this attempt while the handler was still running
            logger.warning(
                "processing_result_discarded",
                tenant_id=str(tenant_id),
                event_id=event_id,
                status=status.value,
            )
            status = ProcessingStatus.FAILED

        metrics.record_processing(status.value, duration)
        logger.info(
            "AUDIT: webhook_event_processed",
            tenant_id=str(tenant_id),
            event_id=event_id,
            status=status.value,
            error=error,
            duration_ms=round(duration * 1000, 2),
        )
        return ProcessingOutcome(
            tenant_id=tenant_id,
            event_id=event_id,
            status=status,
            error=error,
            duration_ms=round(duration * 1000, 2),
        )

    # =========================================================================
    # Sweeper
    # =========================================================================

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Fail stuck events and requeue orphaned pending ones.

        Args:
            now: Reference time (defaults to the current UTC time)
        """
        now = now or datetime.now(UTC)
        timeout = self.settings.timeout_seconds
        stuck_before = now - timedelta(seconds=timeout + self.settings.stuck_grace_seconds)

        failed = await self.event_store.fail_stuck(
            stuck_before,
            f"Processing exceeded timeout of {timeout:g} seconds and was marked failed",
        )
        if failed:
            metrics.STUCK_EVENTS_FAILED.inc(failed)
            logger.warning("stuck_events_failed", count=failed)

        room = self._queue.maxsize - self._queue.qsize()
        requeued = 0
        if room > 0:
            idle_since = now - timedelta(seconds=self.settings.pending_requeue_after_seconds)
            for tenant_id, event_id in await self.event_store.stale_pending(idle_since, room):
                if self.schedule(tenant_id, event_id):
                    requeued += 1
        if requeued:
            logger.info("stale_pending_events_requeued", count=requeued)

        return SweepResult(failed_stuck=failed, requeued_pending=requeued)

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("sweeper_error")
            await asyncio.sleep(self.settings.sweep_interval_seconds)
