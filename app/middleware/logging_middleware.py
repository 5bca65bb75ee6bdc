import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.config import settings
from app.core.logging_utils import mask_headers, mask_path, sanitize_log_message

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each HTTP request and response; link tokens and credentials are masked."""

    # Endpoints to skip logging (reduce noise)
    SKIP_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path == "/" or path.startswith(self.SKIP_PATHS) or path.endswith(self.SKIP_PATHS):
            return await call_next(request)

        if not settings.LOG_ENABLE_REQUEST_LOGGING:
            return await call_next(request)

        # Reuse a caller-supplied request ID so traces can be joined across services
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        method = request.method
        safe_path = mask_path(path)
        client_ip = request.client.host if request.client else None

        logger.debug(
            sanitize_log_message(
                f"Request: {method} {safe_path}",
                RequestID=request_id,
                IP=client_ip,
                UserAgent=request.headers.get("user-agent"),
                QueryParams=dict(request.query_params),
                Headers=mask_headers(dict(request.headers))
            )
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception(
                sanitize_log_message(
                    f"Exception in request: {method} {safe_path}",
                    RequestID=request_id,
                    ProcessTime=f"{process_time:.3f}s",
                    IP=client_ip,
                    Error=str(e)
                )
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            sanitize_log_message(
                f"Response: {method} {safe_path}",
                RequestID=request_id,
                Status=response.status_code,
                ProcessTime=f"{process_time:.3f}s",
                IP=client_ip
            )
        )
        return response
