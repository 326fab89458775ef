from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from loyalty_api.core.settings import settings
from loyalty_api.db.session import async_session, create_all, engine
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .services.accrual import AccrualSource, FakeAccrualSource, HttpAccrualClient
from .services.orders import OrderSubmissionService, SqlAlchemyOrderRepository
from .workers import AccrualReconciler


APP_VERSION = "0.1.0"


def _build_accrual_source() -> AccrualSource:
    if settings.accrual_fake_enabled:
        logger.warning("Using in-process fake accrual source")
        return FakeAccrualSource()
    return HttpAccrualClient(
        settings.accrual_system_address,
        timeout=settings.accrual_request_timeout_seconds,
        default_retry_after=settings.accrual_default_retry_after_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_auto_create:
        await create_all()

    accrual_source = _build_accrual_source()
    repository = SqlAlchemyOrderRepository(async_session)
    reconciler = AccrualReconciler(
        repository,
        accrual_source,
        interval_seconds=settings.reconciler_interval_seconds,
        shutdown_timeout_seconds=settings.reconciler_shutdown_timeout_seconds,
    )

    app.state.accrual_source = accrual_source
    app.state.order_repository = repository
    app.state.submission_service = OrderSubmissionService(repository, accrual_source)
    app.state.accrual_reconciler = reconciler

    reconciler_enabled = settings.reconciler_enabled
    if reconciler_enabled:
        reconciler.start()
        logger.info(
            "Accrual reconciler enabled",
            interval_seconds=reconciler.interval_seconds,
            accrual_system_address=settings.accrual_system_address,
        )
    else:
        logger.info(
            "Accrual reconciler disabled",
            reason="reconciler_enabled is false",
        )

    try:
        yield
    finally:
        if reconciler_enabled:
            await reconciler.stop()
        if isinstance(accrual_source, HttpAccrualClient):
            await accrual_source.aclose()
        await engine.dispose()


def create_app() -> FastAPI:
    """Application factory for the loyalty accrual service."""
    configure_logging(
        service_name="loyalty-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="Loyalty API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    if settings.tracing_enabled:
        configure_tracing(
            app,
            service_name="loyalty-api",
            service_version=APP_VERSION,
            environment=settings.environment,
            sample_ratio=settings.tracing_sample_ratio,
            exporter_endpoint=settings.otel_exporter_otlp_endpoint,
            exporter_headers=settings.otel_exporter_otlp_headers,
        )

    app.include_router(api_router)
    return app
