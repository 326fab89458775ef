import asyncio
from uuid import uuid4

import pytest

from loyalty_api.domain.orders import Accrual, Order, OrderInfo, OrderStatus
from loyalty_api.services.accrual import ProtocolError, RetryableSourceError
from loyalty_api.services.orders import (
    InMemoryOrderRepository,
    OrderQueryService,
    OrderSubmissionService,
    SqlAlchemyOrderRepository,
)
from loyalty_api.workers.accrual_reconciler import AccrualReconciler, ReconcilerState
from loyalty_api.models.user import User


class RecordingRepository(InMemoryOrderRepository):
    def __init__(self, orders=()):
        super().__init__(orders)
        self.updates = []

    async def orders_update(self, orders):
        self.updates.append([order.number for order in orders])
        await super().orders_update(orders)


def _pending(user_id, number, status=OrderStatus.NEW):
    return Order.create(user_id, OrderInfo.new(number, status))


@pytest.mark.asyncio
async def test_run_once_applies_changes_in_a_single_batch(accrual_source):
    user_id = uuid4()
    repository = RecordingRepository([_pending(user_id, 18), _pending(user_id, 26), _pending(user_id, 34)])
    accrual_source.responses[18] = OrderInfo.new(18, OrderStatus.PROCESSED, Accrual(500))
    accrual_source.responses[26] = OrderInfo.new(26, OrderStatus.REGISTERED)
    accrual_source.responses[34] = OrderInfo.new(34, OrderStatus.INVALID)
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)

    result = await reconciler.run_once()

    assert result.candidates == 3
    assert result.updated == 2
    assert result.retry_after is None
    assert repository.updates == [[18, 34]]
    statuses = {order.number: order.status for order in repository.all_orders()}
    assert statuses == {18: OrderStatus.PROCESSED, 26: OrderStatus.NEW, 34: OrderStatus.INVALID}
    assert reconciler.state is ReconcilerState.IDLE


@pytest.mark.asyncio
async def test_retryable_error_aborts_cycle_without_writes(accrual_source):
    user_id = uuid4()
    repository = RecordingRepository([_pending(user_id, 18), _pending(user_id, 26), _pending(user_id, 34)])
    accrual_source.responses[18] = OrderInfo.new(18, OrderStatus.PROCESSED, Accrual(500))
    accrual_source.responses[26] = RetryableSourceError("rate limited", after_seconds=30, number=26)
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)

    result = await reconciler.run_once()

    assert result.retry_after == 30
    assert accrual_source.calls == [18, 26]
    assert repository.updates == []
    assert all(order.status is OrderStatus.NEW for order in repository.all_orders())
    assert reconciler._next_delay(result) == 30.0


@pytest.mark.asyncio
async def test_disallowed_transitions_are_skipped(accrual_source):
    user_id = uuid4()
    repository = RecordingRepository([_pending(user_id, 18, OrderStatus.PROCESSING)])
    accrual_source.responses[18] = OrderInfo.new(18, OrderStatus.NEW)
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)

    result = await reconciler.run_once()

    assert result.skipped == 1
    assert result.updated == 0
    assert repository.updates == []


@pytest.mark.asyncio
async def test_terminal_orders_are_never_polled(accrual_source):
    user_id = uuid4()
    processed = Order.create(user_id, OrderInfo.new(18, OrderStatus.PROCESSED, Accrual(100)))
    repository = RecordingRepository([processed, Order.withdrawal(user_id, 26, Accrual(50))])
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)

    result = await reconciler.run_once()

    assert result.candidates == 0
    assert accrual_source.calls == []


@pytest.mark.asyncio
async def test_loop_backs_off_for_requested_delay(accrual_source):
    user_id = uuid4()
    repository = RecordingRepository([_pending(user_id, 18)])
    accrual_source.responses[18] = RetryableSourceError("rate limited", after_seconds=30, number=18)
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1, shutdown_timeout_seconds=1)

    waits = []

    async def fake_wait(timeout):
        waits.append(timeout)
        if len(waits) >= 3:
            reconciler._stop_event.set()
            return True
        return False

    reconciler._wait_for_stop = fake_wait
    reconciler.start()
    await asyncio.wait_for(reconciler._task, timeout=1)

    assert waits == [1.0, 30.0, 30.0]
    assert reconciler.state is ReconcilerState.STOPPED


@pytest.mark.asyncio
async def test_protocol_error_aborts_cycle_and_is_reported(accrual_source):
    user_id = uuid4()
    repository = RecordingRepository([_pending(user_id, 18), _pending(user_id, 26)])
    accrual_source.responses[18] = ProtocolError("garbled", number=18)
    accrual_source.responses[26] = OrderInfo.new(26, OrderStatus.PROCESSED, Accrual(100))
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)

    result = await reconciler.run_once()

    assert result.error == "garbled"
    assert result.retry_after is None
    assert repository.updates == []
    assert reconciler._next_delay(result) == 1.0


@pytest.mark.asyncio
async def test_loop_survives_unexpected_errors(accrual_source):
    class ExplodingRepository(InMemoryOrderRepository):
        async def orders_batch(self, statuses):
            raise RuntimeError("garbled")

    repository = ExplodingRepository()
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1, shutdown_timeout_seconds=1)

    waits = []

    async def fake_wait(timeout):
        waits.append(timeout)
        if len(waits) >= 3:
            return True
        return False

    reconciler._wait_for_stop = fake_wait
    reconciler.start()
    await asyncio.wait_for(reconciler._task, timeout=1)

    assert waits == [1.0, 1.0, 1.0]
    assert reconciler.last_result.error == "garbled"


@pytest.mark.asyncio
async def test_stop_is_idempotent(accrual_source):
    reconciler = AccrualReconciler(InMemoryOrderRepository(), accrual_source, interval_seconds=60)

    await reconciler.stop()
    reconciler.start()
    assert reconciler.is_running
    await reconciler.stop()
    await reconciler.stop()

    assert not reconciler.is_running
    assert reconciler.state is ReconcilerState.STOPPED


@pytest.mark.asyncio
async def test_stop_cancels_a_stuck_cycle():
    class HangingSource:
        async def load(self, number):
            await asyncio.sleep(3600)

    user_id = uuid4()
    reconciler = AccrualReconciler(
        InMemoryOrderRepository([_pending(user_id, 18)]),
        HangingSource(),
        interval_seconds=1,
        shutdown_timeout_seconds=0.05,
    )

    async def no_wait(timeout):
        await asyncio.sleep(0)
        return False

    reconciler._wait_for_stop = no_wait
    reconciler.start()
    await asyncio.sleep(0.01)
    await asyncio.wait_for(reconciler.stop(), timeout=1)

    assert not reconciler.is_running
    assert reconciler.state is ReconcilerState.STOPPED


@pytest.mark.asyncio
async def test_concurrent_stops_wait_for_the_loop_to_finish():
    class HangingSource:
        async def load(self, number):
            await asyncio.sleep(3600)

    user_id = uuid4()
    reconciler = AccrualReconciler(
        InMemoryOrderRepository([_pending(user_id, 18)]),
        HangingSource(),
        interval_seconds=1,
        shutdown_timeout_seconds=0.05,
    )

    async def no_wait(timeout):
        await asyncio.sleep(0)
        return False

    reconciler._wait_for_stop = no_wait
    reconciler.start()
    await asyncio.sleep(0.01)
    loop_task = reconciler._task

    async def second_stop():
        await asyncio.sleep(0)
        await reconciler.stop()
        return loop_task.done(), reconciler.state

    _, (finished, state) = await asyncio.wait_for(asyncio.gather(reconciler.stop(), second_stop()), timeout=1)

    assert finished
    assert state is ReconcilerState.STOPPED
    assert not reconciler.is_running


@pytest.mark.asyncio
async def test_uploaded_order_is_credited_after_reconciliation(session_factory, accrual_source):
    async with session_factory() as session:
        user = User(login="alice", password_hash="x")
        session.add(user)
        await session.commit()

    repository = SqlAlchemyOrderRepository(session_factory)
    submission = OrderSubmissionService(repository, accrual_source)
    queries = OrderQueryService(repository)

    accrual_source.responses[79927398713] = OrderInfo.new(79927398713, OrderStatus.PROCESSING)
    await submission.load_order(user.id, "79927398713")

    uploaded = await queries.list_orders(user.id)
    assert [(order.number, order.status, order.info.accrual) for order in uploaded] == [
        (79927398713, OrderStatus.PROCESSING, None)
    ]
    assert (await queries.get_balance(user.id)).current == Accrual.zero()

    accrual_source.responses[79927398713] = OrderInfo.new(79927398713, OrderStatus.PROCESSED, Accrual(500))
    reconciler = AccrualReconciler(repository, accrual_source, interval_seconds=1)
    result = await reconciler.run_once()

    assert result.updated == 1
    orders = await queries.list_orders(user.id)
    assert [(order.number, order.status, order.info.accrual) for order in orders] == [
        (79927398713, OrderStatus.PROCESSED, Accrual(500))
    ]
    balance = await queries.get_balance(user.id)
    assert balance.current == Accrual(500)
    assert balance.withdrawn == Accrual.zero()

    second = await reconciler.run_once()
    assert second.candidates == 0
