# storefront/utils/edge_filter.py
"""First-line request filter applied before routing.

Cheap rejections only: probes for well-known attack surfaces, scanner user
agents, a coarse per-instance rate limit on /api/*, cross-origin mutations and
unauthenticated access to account pages. The per-route buckets in
rate_limit.py still apply behind it.
"""
import logging
import re
from typing import Optional, Sequence
from urllib.parse import quote, urlsplit

from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from storefront.utils.auth import decode_session_token, extract_session_token
from storefront.utils.client_ip import get_client_ip
from storefront.utils.rate_limit import MemoryRateLimitStore, RateLimiter

logger = logging.getLogger(__name__)

STATIC_PREFIXES = ("/_next/", "/images/", "/fonts/", "/static/")
STATIC_EXTENSIONS = {
    "css", "js", "mjs", "map", "png", "jpg", "jpeg", "gif", "svg", "webp", "avif",
    "ico", "woff", "woff2", "ttf", "otf", "txt", "xml", "json", "webmanifest",
}

SUSPICIOUS_PATHS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.env",
        r"\.git",
        r"wp-admin",
        r"wp-login",
        r"phpMyAdmin",
        r"\.php$",
        r"\.asp$",
        r"\.aspx$",
        r"config\.",
        r"passwd",
        r"etc/shadow",
    )
]
BAD_BOTS = ("sqlmap", "nikto", "nmap", "masscan", "zgrab")
MIN_USER_AGENT_LENGTH = 10

MUTATING_METHODS = {"POST", "PUT", "DELETE", "PATCH"}
PROTECTED_PREFIXES = ("/dashboard", "/checkout", "/api/checkout")
SIGN_IN_PATH = "/sign-in"

SECURITY_HEADERS = {
    "X-DNS-Prefetch-Control": "on",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-XSS-Protection": "1; mode=block",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def is_static_asset(path: str) -> bool:
    if path.startswith(STATIC_PREFIXES):
        return True
    last = path.rsplit("/", 1)[-1]
    stem, dot, ext = last.rpartition(".")
    # "/.env" has no stem and is a probe, not an asset
    return bool(dot and stem and ext.lower() in STATIC_EXTENSIONS)


def is_suspicious_request(path: str, user_agent: Optional[str]) -> bool:
    if any(pattern.search(path) for pattern in SUSPICIOUS_PATHS):
        return True

    user_agent = user_agent or ""
    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        return True

    lowered = user_agent.lower()
    return any(bot in lowered for bot in BAD_BOTS)


def is_cross_origin(origin: Optional[str], host: Optional[str]) -> bool:
    # Server-to-server calls usually send no Origin; only browsers are checked
    if not origin or not host:
        return False
    origin_host = urlsplit(origin).netloc
    return origin_host.lower() != host.lower()


def is_protected(path: str, prefixes: Sequence[str] = PROTECTED_PREFIXES) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


class EdgeAdmissionMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        auth_key: Optional[str] = None,
        auth_algorithm: str = "RS256",
        protected_prefixes: Sequence[str] = PROTECTED_PREFIXES,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(app)
        self.window_seconds = window_seconds
        # In-process on purpose: resets on restart and is per instance
        self.limiter = limiter or RateLimiter(
            "edge", max_requests, window_seconds, store=MemoryRateLimitStore()
        )
        self.auth_key = auth_key
        self.auth_algorithm = auth_algorithm
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if is_static_asset(path):
            return await call_next(request)

        ip = get_client_ip(request.headers)
        is_api = path.startswith("/api/")

        if is_suspicious_request(path, request.headers.get("user-agent")):
            logger.warning("[SECURITY] Blocked suspicious request from %s: %s", ip, path)
            return JSONResponse(status_code=403, content={"message": "Forbidden"})

        if is_api:
            result = await self.limiter.limit(ip)
            if not result.allowed:
                logger.warning("[SECURITY] Rate limited IP: %s", ip)
                return JSONResponse(
                    status_code=429,
                    content={"message": "Too Many Requests"},
                    headers={"Retry-After": str(self.window_seconds)},
                )

        if is_api and request.method in MUTATING_METHODS:
            origin = request.headers.get("origin")
            host = request.headers.get("host")
            if is_cross_origin(origin, host):
                logger.warning("[SECURITY] Cross-origin request blocked from %s to %s", origin, host)
                return JSONResponse(status_code=403, content={"message": "Forbidden"})

        if is_protected(path, self.protected_prefixes):
            claims = decode_session_token(extract_session_token(request), self.auth_key, self.auth_algorithm)
            if claims is None:
                if is_api:
                    return JSONResponse(status_code=401, content={"message": "Unauthorized"})
                return RedirectResponse(f"{SIGN_IN_PATH}?redirect_url={quote(path)}", status_code=307)
            request.state.session_claims = claims

        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response
