import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from collections import defaultdict

WINDOW_SECONDS = 60

class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit_per_minute: int = 60, anonymous_write_limit: int = 20, api_prefix: str = ""):
        super().__init__(app)
        self.limit = limit_per_minute
        self.anonymous_write_limit = anonymous_write_limit
        self.api_prefix = api_prefix
        # In-memory store: (IP, bucket) -> [timestamp1, timestamp2, ...]
        # Per process only; put a shared store in front when running several workers.
        self.requests = defaultdict(list)
        self._last_sweep = time.time()

    def _bucket(self, request: Request):
        path = request.url.path
        if request.method == "POST" and "authorization" not in request.headers:
            # Report intake and survey answers are open to anyone
            if path.rstrip("/") == f"{self.api_prefix}/reports" or path.startswith(f"{self.api_prefix}/reports/survey/"):
                return "anonymous_write", self.anonymous_write_limit
        return "default", self.limit

    def _sweep(self, now: float):
        """Forget clients with no request inside the window."""
        for key in [k for k, stamps in self.requests.items() if not stamps or now - stamps[-1] >= WINDOW_SECONDS]:
            del self.requests[key]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        if now - self._last_sweep >= WINDOW_SECONDS:
            self._sweep(now)

        bucket, limit = self._bucket(request)
        key = (client_ip, bucket)
        self.requests[key] = [t for t in self.requests[key] if now - t < WINDOW_SECONDS]

        if len(self.requests[key]) >= limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."}
            )

        self.requests[key].append(now)

        response = await call_next(request)
        return response
