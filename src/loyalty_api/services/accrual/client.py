"""Accrual source contract and its HTTP implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

import httpx
from loguru import logger

from loyalty_api.domain.orders import Accrual, OrderInfo, OrderStatus

from .errors import AccrualTransportError, ProtocolError, RetryableSourceError

DEFAULT_RETRY_AFTER_SECONDS = 8


class AccrualSource(ABC):
    """Authoritative source of order outcomes."""

    @abstractmethod
    async def load(self, number: int) -> OrderInfo:
        """Return the current info for ``number``.

        Raises ``RetryableSourceError`` when the caller should back off and
        ``ProtocolError`` / ``AccrualTransportError`` for non-retryable failures.
        """


def _parse_retry_after(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        seconds = int(value.strip())
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


def _parse_payload(response: httpx.Response, number: int) -> OrderInfo:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProtocolError("Accrual response body is not JSON", number=number) from exc
    if not isinstance(payload, Mapping):
        raise ProtocolError("Accrual response body is not an object", number=number)

    reported = payload.get("order")
    if reported is not None and str(reported) != str(number):
        raise ProtocolError(f"Accrual response is for order {reported!r}", number=number)

    try:
        status = OrderStatus.parse(str(payload.get("status") or ""))
    except ValueError as exc:
        raise ProtocolError(f"Unknown accrual status {payload.get('status')!r}", number=number) from exc
    if status is OrderStatus.WITHDRAW:
        raise ProtocolError("Accrual source reported a withdrawal status", number=number)

    raw_accrual: Any = payload.get("accrual")
    accrual: Accrual | None = None
    if raw_accrual is not None:
        try:
            accrual = Accrual.from_decimal(raw_accrual)
        except ValueError as exc:
            raise ProtocolError(f"Invalid accrual value {raw_accrual!r}", number=number) from exc

    return OrderInfo.new(number, status.normalize(), accrual)


class HttpAccrualClient(AccrualSource):
    """Queries ``GET {base_url}/api/orders/{number}`` on the accrual system."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        default_retry_after: int = DEFAULT_RETRY_AFTER_SECONDS,
        log=None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._default_retry_after = default_retry_after
        self._log = log or logger.bind(component="accrual_client")

    async def load(self, number: int) -> OrderInfo:
        url = f"{self._base_url}/api/orders/{number}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise AccrualTransportError(f"Accrual request failed: {exc}", number=number) from exc

        status_code = response.status_code
        if status_code == httpx.codes.OK:
            return _parse_payload(response, number)

        if status_code == httpx.codes.NO_CONTENT:
            # Not registered in the accrual system yet.
            return OrderInfo.new(number, OrderStatus.NEW)

        if status_code == httpx.codes.TOO_MANY_REQUESTS:
            after = _parse_retry_after(response.headers.get("Retry-After"), self._default_retry_after)
            self._log.warning("Accrual source rate limited", number=number, retry_after=after)
            raise RetryableSourceError("Accrual source rate limit exceeded", after_seconds=after, number=number)

        if status_code == httpx.codes.INTERNAL_SERVER_ERROR:
            self._log.warning("Accrual source internal error", number=number)
            raise RetryableSourceError(
                "Accrual source internal error",
                after_seconds=self._default_retry_after,
                number=number,
            )

        raise ProtocolError(f"Unexpected accrual response status {status_code}", number=number)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpAccrualClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["AccrualSource", "DEFAULT_RETRY_AFTER_SECONDS", "HttpAccrualClient"]
