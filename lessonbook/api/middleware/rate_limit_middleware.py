# ===== lessonbook/api/middleware/rate_limit_middleware.py =====
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import time

MUTATING_METHODS = {"POST", "PUT", "DELETE"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-client throttle on slot mutations (hold, release, book, create, delete).

    Reads are never throttled. Keyed by client host with a one second
    sliding window held in process memory.
    """

    def __init__(self, app, requests_per_second: int = 5, path_prefix: str = "/api/v1/"):
        super().__init__(app)
        self.requests_per_second = requests_per_second
        self.path_prefix = path_prefix
        self.request_times = {}
        self.window_seconds = 1.0
        self._last_sweep = 0.0

    def _is_slot_mutation(self, request: Request) -> bool:
        if request.method not in MUTATING_METHODS:
            return False
        path = request.url.path
        if not path.startswith(self.path_prefix):
            return False
        return "/slots" in path

    def _evict_idle(self, current_time: float):
        """Forget hosts with no request inside the window"""
        if current_time - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = current_time
        idle = [
            key for key, times in self.request_times.items()
            if not times or current_time - times[-1] >= self.window_seconds
        ]
        for key in idle:
            self.request_times.pop(key, None)

    async def dispatch(self, request: Request, call_next):
        if self.requests_per_second <= 0 or not self._is_slot_mutation(request):
            return await call_next(request)

        client_key = request.client.host if request.client else "unknown"
        current_time = time.time()
        self._evict_idle(current_time)

        # Drop timestamps older than the window
        window = [
            t for t in self.request_times.get(client_key, [])
            if current_time - t < self.window_seconds
        ]

        if len(window) >= self.requests_per_second:
            self.request_times[client_key] = window
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests. Please slow down and try again.",
                    "code": "RateLimited",
                    "retry_after": 1
                },
                headers={"Retry-After": "1"}
            )

        window.append(current_time)
        self.request_times[client_key] = window

        return await call_next(request)
