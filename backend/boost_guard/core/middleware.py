"""
Request context middleware: request id and claim identifiers in every log line
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from boost_guard.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Query parameters copied into the log context under snake_case names
CONTEXT_PARAMS = {
    "boostId": "boost_id",
    "chainId": "chain_id",
    "recipient": "recipient",
}


class LoggingContextMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        for param, field in CONTEXT_PARAMS.items():
            value = request.query_params.get(param)
            if value is not None:
                context[field] = value
        LoggingConfig.set_context(**context)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                exc_info=True,
                extra={"error_type": type(e).__name__, "duration_ms": self._elapsed_ms(started)},
            )
            raise
        else:
            level = logger.warning if response.status_code >= 500 else logger.info
            level(
                "Request completed",
                extra={"status_code": response.status_code, "duration_ms": self._elapsed_ms(started)},
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            LoggingConfig.clear_context()

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
