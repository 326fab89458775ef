import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from loyalty_api.domain.orders import Accrual, Order, OrderInfo, OrderStatus
from loyalty_api.services.accrual import RetryableSourceError
from loyalty_api.services.orders import (
    InMemoryOrderRepository,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidNumberError,
    LoadOrderOutcome,
    MalformedNumberError,
    OrderConflictError,
    OrderQueryService,
    OrderSubmissionService,
    OwnerMismatch,
)


def _processed(user_id, number, amount):
    return Order.create(user_id, OrderInfo.new(number, OrderStatus.PROCESSED, Accrual.from_decimal(amount)))


@pytest.mark.asyncio
async def test_load_order_is_idempotent_per_user(accrual_source):
    repository = InMemoryOrderRepository()
    service = OrderSubmissionService(repository, accrual_source)
    user_id = uuid4()

    assert await service.load_order(user_id, "79927398713") is LoadOrderOutcome.ACCEPTED
    assert await service.load_order(user_id, "79927398713") is LoadOrderOutcome.ALREADY_EXISTS

    orders = repository.all_orders()
    assert len(orders) == 1
    assert orders[0].status is OrderStatus.NEW


@pytest.mark.asyncio
async def test_load_order_owned_by_someone_else_conflicts(accrual_source):
    repository = InMemoryOrderRepository()
    service = OrderSubmissionService(repository, accrual_source)
    await service.load_order(uuid4(), "79927398713")

    with pytest.raises(OrderConflictError) as excinfo:
        await service.load_order(uuid4(), "79927398713")

    assert isinstance(excinfo.value.conflict, OwnerMismatch)
    assert len(repository.all_orders()) == 1


@pytest.mark.asyncio
async def test_load_order_stores_known_outcome(accrual_source):
    accrual_source.responses[79927398713] = OrderInfo.new(79927398713, OrderStatus.PROCESSED, Accrual(500))
    repository = InMemoryOrderRepository()
    service = OrderSubmissionService(repository, accrual_source)
    user_id = uuid4()

    await service.load_order(user_id, "79927398713")

    balance = await OrderQueryService(repository).get_balance(user_id)
    assert balance.current == Accrual(500)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw, error", [("12ab", MalformedNumberError), ("", MalformedNumberError), ("79927398710", InvalidNumberError)])
async def test_load_order_rejects_bad_numbers_before_calling_source(accrual_source, raw, error):
    service = OrderSubmissionService(InMemoryOrderRepository(), accrual_source)

    with pytest.raises(error):
        await service.load_order(uuid4(), raw)

    assert accrual_source.calls == []


@pytest.mark.asyncio
async def test_retryable_source_error_propagates_and_stores_nothing(accrual_source):
    accrual_source.responses[18] = RetryableSourceError("busy", after_seconds=30, number=18)
    repository = InMemoryOrderRepository()
    service = OrderSubmissionService(repository, accrual_source)

    with pytest.raises(RetryableSourceError) as excinfo:
        await service.load_order(uuid4(), "18")

    assert excinfo.value.after_seconds == 30
    assert repository.all_orders() == []


@pytest.mark.asyncio
async def test_withdraw_exact_balance_succeeds_and_one_cent_more_fails(accrual_source):
    user_id = uuid4()
    repository = InMemoryOrderRepository([_processed(user_id, 18, "100")])
    service = OrderSubmissionService(repository, accrual_source)

    with pytest.raises(InsufficientFundsError) as excinfo:
        await service.withdraw(user_id, "2377225624", Decimal("100.01"))
    assert excinfo.value.shortfall == Accrual(1)

    await service.withdraw(user_id, "2377225624", Decimal("100"))

    balance = await OrderQueryService(repository).get_balance(user_id)
    assert balance.current == Accrual.zero()
    assert balance.withdrawn == Accrual(10000)


@pytest.mark.asyncio
async def test_failed_withdrawal_changes_nothing(accrual_source):
    user_id = uuid4()
    repository = InMemoryOrderRepository([_processed(user_id, 18, "10")])
    service = OrderSubmissionService(repository, accrual_source)

    with pytest.raises(InsufficientFundsError):
        await service.withdraw(user_id, "18", 11)

    assert len(repository.all_orders()) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5", "1.005", "abc", "1e30", "NaN", "92233720368547758.08"])
async def test_withdraw_rejects_invalid_amounts(accrual_source, amount):
    user_id = uuid4()
    service = OrderSubmissionService(InMemoryOrderRepository([_processed(user_id, 18, "10")]), accrual_source)

    with pytest.raises(InvalidAmountError):
        await service.withdraw(user_id, "18", amount)


@pytest.mark.asyncio
async def test_withdraw_rejects_luhn_invalid_reference(accrual_source):
    user_id = uuid4()
    service = OrderSubmissionService(InMemoryOrderRepository([_processed(user_id, 18, "10")]), accrual_source)

    with pytest.raises(InvalidNumberError):
        await service.withdraw(user_id, "17", 1)


@pytest.mark.asyncio
async def test_concurrent_withdrawals_never_overdraw(accrual_source):
    user_id = uuid4()
    repository = InMemoryOrderRepository([_processed(user_id, 18, "100")])
    service = OrderSubmissionService(repository, accrual_source)

    results = await asyncio.gather(
        service.withdraw(user_id, "18", 60),
        service.withdraw(user_id, "26", 60),
        return_exceptions=True,
    )

    assert sum(isinstance(result, InsufficientFundsError) for result in results) == 1
    balance = await OrderQueryService(repository).get_balance(user_id)
    assert balance.current == Accrual(4000)


@pytest.mark.asyncio
async def test_queries_split_purchases_and_withdrawals(accrual_source):
    user_id = uuid4()
    repository = InMemoryOrderRepository([_processed(user_id, 18, "100")])
    service = OrderSubmissionService(repository, accrual_source)
    await service.load_order(user_id, "26")
    await service.withdraw(user_id, "34", 5)

    queries = OrderQueryService(repository)
    assert sorted(order.number for order in await queries.list_orders(user_id)) == [18, 26]
    assert [order.number for order in await queries.list_withdrawals(user_id)] == [34]


@pytest.mark.asyncio
async def test_insufficient_funds_reports_balance_shortfall(accrual_source):
    user_id = uuid4()
    repository = InMemoryOrderRepository([_processed(user_id, 18, "10"), _processed(user_id, 26, "0.50")])
    service = OrderSubmissionService(repository, accrual_source)

    with pytest.raises(InsufficientFundsError) as excinfo:
        await service.withdraw(user_id, "2377225624", "12")

    error = excinfo.value
    assert error.available == Accrual(1050)
    assert error.requested == Accrual(1200)
    assert error.shortfall == Accrual(150)
