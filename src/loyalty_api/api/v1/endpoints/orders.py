"""Order intake, listings, balance and withdrawals for the signed-in member."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from loyalty_api.api.dependencies.services import get_query_service, get_submission_service
from loyalty_api.api.dependencies.session import require_member
from loyalty_api.domain.orders import Accrual, Order
from loyalty_api.models.user import User
from loyalty_api.services.accrual import AccrualSourceError, RetryableSourceError
from loyalty_api.services.orders import (
    InsufficientFundsError,
    LoadOrderOutcome,
    OrderConflictError,
    OrderQueryService,
    OrderSubmissionService,
    OrderValidationError,
    OwnerMismatch,
    StorageError,
)

router = APIRouter(prefix="/api/user", tags=["Orders"])


class OrderResponse(BaseModel):
    number: str
    status: str
    accrual: Decimal | None = None
    uploaded_at: datetime


class WithdrawalResponse(BaseModel):
    order: str
    sum: Decimal
    processed_at: datetime


class BalanceResponse(BaseModel):
    current: Decimal
    withdrawn: Decimal


class WithdrawRequest(BaseModel):
    order: str
    sum: Decimal

    model_config = ConfigDict(extra="ignore")


def _points(amount: Accrual | None) -> Decimal | None:
    return amount.as_decimal() if amount is not None else None


def _order_response(order: Order) -> OrderResponse:
    info = order.info
    return OrderResponse(
        number=str(info.number),
        status=info.status.value,
        accrual=_points(info.accrual),
        uploaded_at=info.uploaded_at,
    )


@router.post(
    "/orders",
    status_code=status.HTTP_202_ACCEPTED,
    responses={200: {"description": "Order already uploaded by this member"}},
)
async def upload_order(
    request: Request,
    member: User = Depends(require_member),
    service: OrderSubmissionService = Depends(get_submission_service),
) -> Response:
    body = (await request.body()).decode("utf-8", errors="replace").strip()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order number is required")

    try:
        outcome = await service.load_order(member.id, body)
    except OrderValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except OrderConflictError as exc:
        if isinstance(exc.conflict, OwnerMismatch):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        logger.exception("Unexpected order conflict", user_id=str(member.id), number=exc.number)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Order upload failed") from exc
    except RetryableSourceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Accrual system is busy, retry later",
            headers={"Retry-After": str(exc.after_seconds)},
        ) from exc
    except (AccrualSourceError, StorageError) as exc:
        logger.exception("Order upload failed", user_id=str(member.id), error=str(exc))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Order upload failed") from exc

    if outcome is LoadOrderOutcome.ALREADY_EXISTS:
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.get("/orders", response_model=list[OrderResponse], response_model_exclude_none=True)
async def list_orders(
    member: User = Depends(require_member),
    queries: OrderQueryService = Depends(get_query_service),
):
    try:
        orders = await queries.list_orders(member.id)
    except StorageError as exc:
        logger.exception("Listing orders failed", user_id=str(member.id))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Listing orders failed") from exc
    if not orders:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [_order_response(order) for order in orders]


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    member: User = Depends(require_member),
    queries: OrderQueryService = Depends(get_query_service),
) -> BalanceResponse:
    try:
        balance = await queries.get_balance(member.id)
    except StorageError as exc:
        logger.exception("Balance lookup failed", user_id=str(member.id))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Balance lookup failed") from exc
    return BalanceResponse(current=_points(balance.current), withdrawn=_points(balance.withdrawn))


@router.post("/balance/withdraw")
async def withdraw_points(
    request: Request,
    member: User = Depends(require_member),
    service: OrderSubmissionService = Depends(get_submission_service),
) -> Response:
    try:
        payload = WithdrawRequest.model_validate_json(await request.body())
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid withdrawal payload") from exc

    try:
        await service.withdraw(member.id, payload.order, payload.sum)
    except OrderValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except InsufficientFundsError as exc:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Withdrawal failed", user_id=str(member.id), number=payload.order)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Withdrawal failed") from exc
    return Response(status_code=status.HTTP_200_OK)


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    member: User = Depends(require_member),
    queries: OrderQueryService = Depends(get_query_service),
):
    try:
        orders = await queries.list_withdrawals(member.id)
    except StorageError as exc:
        logger.exception("Listing withdrawals failed", user_id=str(member.id))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Listing withdrawals failed"
        ) from exc
    if not orders:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        WithdrawalResponse(
            order=str(order.number),
            sum=_points(order.info.accrual or Accrual.zero()),
            processed_at=order.info.uploaded_at,
        )
        for order in orders
    ]
