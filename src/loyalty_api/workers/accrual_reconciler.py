"""Background reconciliation of pending orders against the accrual system."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from loyalty_api.core.settings import settings
from loyalty_api.domain.orders import PENDING_STATUSES, Order
from loyalty_api.observability.tracing import get_tracer
from loyalty_api.services.accrual import AccrualSource, AccrualSourceError, RetryableSourceError
from loyalty_api.services.orders import OrderRepository, OrderServiceError


class ReconcilerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    APPLYING = "applying"
    STOPPED = "stopped"


@dataclass(slots=True)
class ReconcileCycleResult:
    """Outcome of one polling cycle."""

    candidates: int = 0
    queried: int = 0
    updated: int = 0
    skipped: int = 0
    retry_after: int | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "candidates": self.candidates,
            "queried": self.queried,
            "updated": self.updated,
            "skipped": self.skipped,
            "retry_after": self.retry_after,
            "error": self.error,
        }


class AccrualReconciler:
    """Polls NEW/PROCESSING orders and writes back status changes in one batch."""

    def __init__(
        self,
        repository: OrderRepository,
        accrual_source: AccrualSource,
        *,
        interval_seconds: float | None = None,
        shutdown_timeout_seconds: float | None = None,
        log=None,
    ) -> None:
        self._repository = repository
        self._accrual_source = accrual_source
        self.interval_seconds = interval_seconds or settings.reconciler_interval_seconds
        self._shutdown_timeout = shutdown_timeout_seconds or settings.reconciler_shutdown_timeout_seconds
        self._log = log or logger.bind(component="accrual_reconciler")
        self._tracer = get_tracer()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Task | None = None
        self.state = ReconcilerState.IDLE
        self.last_result: ReconcileCycleResult | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self.state = ReconcilerState.IDLE
        self._task = asyncio.create_task(self._run_loop())
        self._log.info("Accrual reconciler started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Request shutdown and wait for the loop; safe to call repeatedly.

        Concurrent callers share one shutdown, so none of them returns before
        the loop task has finished or been cancelled.
        """

        self._stop_event.set()
        if self._stopping is None:
            self._stopping = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._stopping)

    async def _shutdown(self) -> None:
        task = self._task
        try:
            if task is not None:
                try:
                    await asyncio.wait_for(asyncio.shield(task), timeout=self._shutdown_timeout)
                except asyncio.TimeoutError:
                    self._log.warning(
                        "Accrual reconciler did not stop in time, cancelling", timeout=self._shutdown_timeout
                    )
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            if self._task is task:
                self._task = None
            self.state = ReconcilerState.STOPPED
            if task is not None:
                self._log.info("Accrual reconciler stopped")
        finally:
            self._stopping = None

    async def run_once(self) -> ReconcileCycleResult:
        """Run a single polling cycle.

        The first ``RetryableSourceError`` aborts the cycle: no further orders
        are queried and nothing is written. The error's ``after_seconds`` is
        returned so the loop can delay the next cycle accordingly. Other
        source or storage failures also abort the cycle and are reported in
        ``error``.
        """

        result = ReconcileCycleResult()
        self.state = ReconcilerState.POLLING
        with self._tracer.start_as_current_span("accrual_reconcile_cycle") as span:
            try:
                await self._reconcile(result)
            except (AccrualSourceError, OrderServiceError) as exc:
                result.error = str(exc)
                self._log.warning(
                    "Accrual reconciliation cycle aborted",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    candidates=result.candidates,
                )
            finally:
                self.state = ReconcilerState.IDLE
                self.last_result = result
                span.set_attributes(
                    {f"reconcile.{key}": value for key, value in result.as_dict().items() if value is not None}
                )
        return result

    async def _reconcile(self, result: ReconcileCycleResult) -> None:
        orders = await self._repository.orders_batch(PENDING_STATUSES)
        result.candidates = len(orders)
        if not orders:
            self._log.debug("No pending orders to reconcile")
            return

        changed = await self._collect_changes(orders, result)
        if not changed:
            return

        self.state = ReconcilerState.APPLYING
        await self._repository.orders_update(changed)
        result.updated = len(changed)
        self._log.info("Reconciled orders", **result.as_dict())

    async def _collect_changes(self, orders: list[Order], result: ReconcileCycleResult) -> list[Order] | None:
        changed: list[Order] = []
        for order in orders:
            try:
                fresh = await self._accrual_source.load(order.number)
            except RetryableSourceError as exc:
                result.retry_after = exc.after_seconds
                result.error = str(exc)
                self._log.warning(
                    "Accrual source asked to back off",
                    number=order.number,
                    retry_after=exc.after_seconds,
                )
                return None
            result.queried += 1

            current_status = order.status.normalize()
            fresh_status = fresh.status.normalize()
            if fresh_status == current_status:
                continue
            if not current_status.can_transition_to(fresh_status):
                result.skipped += 1
                self._log.warning(
                    "Ignoring disallowed status change",
                    order_id=str(order.id),
                    number=order.number,
                    from_status=current_status.value,
                    to_status=fresh_status.value,
                )
                continue

            order.replace_info(fresh)
            changed.append(order)
        return changed

    def _next_delay(self, result: ReconcileCycleResult | None) -> float:
        if result is not None and result.retry_after is not None:
            return float(result.retry_after)
        return float(self.interval_seconds)

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if stop was requested."""

        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_loop(self) -> None:
        result: ReconcileCycleResult | None = None
        while not self._stop_event.is_set():
            if await self._wait_for_stop(self._next_delay(result)):
                break
            try:
                result = await self.run_once()
            except Exception as exc:
                self.state = ReconcilerState.IDLE
                result = ReconcileCycleResult(error=str(exc))
                self.last_result = result
                self._log.exception("Accrual reconciliation cycle failed", error=str(exc))
        self.state = ReconcilerState.STOPPED


__all__ = ["AccrualReconciler", "ReconcileCycleResult", "ReconcilerState"]
