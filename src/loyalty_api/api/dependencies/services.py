"""Service wiring for request handlers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_api.db.session import get_session_factory
from loyalty_api.services.accrual import AccrualSource
from loyalty_api.services.auth import AuthService
from loyalty_api.services.orders import (
    OrderQueryService,
    OrderRepository,
    OrderSubmissionService,
    SqlAlchemyOrderRepository,
)


def get_order_repository(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderRepository:
    repository = getattr(request.app.state, "order_repository", None)
    if repository is None:
        repository = SqlAlchemyOrderRepository(session_factory)
        request.app.state.order_repository = repository
    return repository


def get_accrual_source(request: Request) -> AccrualSource:
    source = getattr(request.app.state, "accrual_source", None)
    if source is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Accrual source is not configured",
        )
    return source


def get_submission_service(
    request: Request,
    repository: OrderRepository = Depends(get_order_repository),
    accrual_source: AccrualSource = Depends(get_accrual_source),
) -> OrderSubmissionService:
    """Return the process-wide submission service so withdraw locks are shared."""

    service = getattr(request.app.state, "submission_service", None)
    if service is None:
        service = OrderSubmissionService(repository, accrual_source)
        request.app.state.submission_service = service
    return service


def get_query_service(repository: OrderRepository = Depends(get_order_repository)) -> OrderQueryService:
    return OrderQueryService(repository)


def get_auth_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AuthService:
    return AuthService(session_factory)
