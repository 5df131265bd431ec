"""HTTP client helpers for context propagation and traced downstream calls."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from opentelemetry.trace import SpanKind

from relaytrace.context.baggage import get_current_baggage
from relaytrace.context.context import current_span_context
from relaytrace.context.propagators import inject_headers as inject_context_headers
from relaytrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

NOT_SUCCESS_EVENT = "http response not successful"


def inject_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    """
    Inject traceparent/tracestate/baggage into ``headers`` if a current span exists.

    Returns the same headers mapping for convenience.
    """
    return inject_context_headers(headers, current_span_context(), get_current_baggage())


class BackendClient:
    """Async HTTP client whose requests run in client spans with propagated context."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        tracer: Optional[Tracer] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tracer = tracer
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def get_text(self, path: str) -> str:
        """
        GET ``path`` and return the response body.

        Raises:
            httpx.HTTPStatusError: on a non-success status code
            httpx.HTTPError: on transport failures
        """
        tracer = self.tracer or _get_tracer()
        url = f"{self.base_url}/{path.lstrip('/')}"
        attributes = {"http.method": "GET", "http.url": url}

        async with tracer.start_as_current_span(f"GET {path}", kind=SpanKind.CLIENT, attributes=attributes) as span:
            headers = inject_headers({})
            response = await self._client.get(url, headers=headers)

            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("http.response_message", response.reason_phrase)
            if not response.is_success:
                span.add_event(NOT_SUCCESS_EVENT, {
                    "http.status_code": response.status_code,
                    "http.response_message": response.reason_phrase,
                })
                logger.warning("GET %s returned %s", url, response.status_code)
                response.raise_for_status()
            return response.text

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def _get_tracer() -> Tracer:
    import relaytrace

    return relaytrace.get_tracer(__name__)
