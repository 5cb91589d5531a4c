"""
FastAPI middleware for automatic Prometheus metrics collection.

This middleware tracks:
- Total API requests with method, endpoint, and status labels
- Request duration histograms
- In-progress request gauges
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.metrics import api_requests_in_progress, record_api_request

# Collection segment -> placeholder for the id segment that follows it
ID_PLACEHOLDERS = {
    "files": "{file_uuid}",
    "folders": "{folder_uuid}",
    "file-versions": "{version_id}",
    "usage": "{user_id}",
}

# Literal segments that sit where an id could be
STATIC_SEGMENTS = {"rollups", "pending"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically track API request metrics.

    The /metrics endpoint itself is not tracked.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        # Skip metrics collection for the /metrics endpoint itself
        if path == "/metrics":
            return await call_next(request)

        normalized_path = self._normalize_path(path)

        api_requests_in_progress.labels(method=method, endpoint=normalized_path).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
            record_api_request(method, normalized_path, response.status_code, time.time() - start_time)
            return response

        except Exception:
            record_api_request(method, normalized_path, 500, time.time() - start_time)
            raise

        finally:
            api_requests_in_progress.labels(method=method, endpoint=normalized_path).dec()

    def _normalize_path(self, path: str) -> str:
        """
        Replace id segments with placeholders to keep label cardinality low.

        Examples:
            /api/v1/files/3f2a.../status -> /api/v1/files/{file_uuid}/status
            /api/v1/reclamation/file/3f2a.../reclaimed
                -> /api/v1/reclamation/{kind}/{entity_id}/reclaimed
            /api/v1/usage/rollups/daily -> /api/v1/usage/rollups/{granularity}
        """
        parts = path.split("/")
        normalized_parts = []

        for i, part in enumerate(parts):
            previous = parts[i - 1] if i > 0 else ""
            before_previous = parts[i - 2] if i > 1 else ""

            if not part or part in STATIC_SEGMENTS:
                normalized_parts.append(part)
            elif previous in ID_PLACEHOLDERS:
                normalized_parts.append(ID_PLACEHOLDERS[previous])
            elif previous == "rollups":
                normalized_parts.append("{granularity}")
            elif previous == "reclamation":
                normalized_parts.append("{kind}")
            elif before_previous == "reclamation" and part != "drain":
                normalized_parts.append("{entity_id}")
            else:
                normalized_parts.append(part)

        return "/".join(normalized_parts)
