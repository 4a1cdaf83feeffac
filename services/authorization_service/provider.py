"""
Client for the external authorization provider.

The provider is a single POST <base>/authorize returning an HTTP status and a
JSON body carrying either {"Success": true} or {"Reason": "..."}. Transport
failures, including the client-side timeout, surface as a response with no
status so the workflow maps them to SERVER_ERROR.
"""
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from services.order_service.models import AuthOutcome
from shared.observability import ledger_provider_latency_seconds

logger = structlog.get_logger(__name__)

NETWORK_ERROR_BODY = {"error": "NETWORK_ERROR"}


@dataclass
class ProviderResponse:
    status_code: int | None
    body: Any = field(default_factory=dict)

    @property
    def transport_failed(self) -> bool:
        return self.status_code is None


class ProviderClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def authorize(self, payload: dict) -> ProviderResponse:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(f"{self.base_url}/authorize", json=payload)
        except httpx.HTTPError as e:
            logger.warning("provider_unreachable", order_id=payload.get("OrderId"), error=type(e).__name__)
            return ProviderResponse(status_code=None, body=dict(NETWORK_ERROR_BODY))
        finally:
            ledger_provider_latency_seconds.observe(time.perf_counter() - started)

        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}

        logger.info("provider_responded", order_id=payload.get("OrderId"), status_code=resp.status_code)
        return ProviderResponse(status_code=resp.status_code, body=body)


def map_provider_outcome(response: ProviderResponse) -> AuthOutcome:
    if response.transport_failed:
        return AuthOutcome.SERVER_ERROR

    if response.status_code == 200:
        body = response.body if isinstance(response.body, dict) else {}
        reason = body.get("Reason")
        reason = reason.lower() if isinstance(reason, str) else ""
        if body.get("Success") is True:
            return AuthOutcome.SUCCESS
        if "insufficient" in reason:
            return AuthOutcome.INSUFFICIENT_FUNDS
        if "incorrect" in reason or "invalid" in reason:
            return AuthOutcome.INCORRECT_DETAILS
        return AuthOutcome.SERVER_ERROR

    if response.status_code == 402:
        return AuthOutcome.INSUFFICIENT_FUNDS
    if response.status_code == 422:
        return AuthOutcome.INCORRECT_DETAILS
    return AuthOutcome.SERVER_ERROR
