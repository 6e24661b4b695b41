import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("access")

DENIED_STATUSES = (401, 403)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request; authentication and authorization failures at WARNING"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        actor = getattr(request.state, "current_actor", None)

        level = logging.WARNING if response.status_code in DENIED_STATUSES else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"User: {actor.user_id if actor else 'anonymous'} - "
            f"Client: {request.client.host if request.client else 'unknown'} - "
            f"Time: {process_time:.4f}s"
        )

        response.headers["X-Process-Time"] = str(process_time)

        return response
