"""Security middleware: rate limiting, CORS for the JSON API, response headers."""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limiter using client IP
limiter = Limiter(key_func=get_remote_address)

API_PREFIX = "/api/"

# Non-API routes that are not static assets (no long-lived caching)
DYNAMIC_PATHS = {"/health", "/ready", "/metrics", "/docs", "/redoc", "/openapi.json"}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data: https:; "
        "style-src 'self' 'unsafe-inline' https:; "
        "script-src 'self' 'unsafe-inline' https:; connect-src 'self' https:"
    ),
}


def is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIX)


def cache_control_for(path: str) -> str:
    """HTML entry points must revalidate; fingerprinted assets are immutable."""
    if path == "/" or path.endswith(".html") or path.endswith("/"):
        return "no-cache"
    return "public, max-age=31536000, immutable"


async def api_headers_middleware(request: Request, call_next) -> Response:
    """
    CORS pre-flight (204) and CORS headers for /api/*, security headers for
    every response, Cache-Control for static assets.
    """
    path = request.url.path

    if is_api_path(path) and request.method == "OPTIONS":
        response = Response(status_code=204)
        response.headers.update(CORS_HEADERS)
        response.headers.update(SECURITY_HEADERS)
        return response

    response = await call_next(request)

    if is_api_path(path):
        response.headers.update(CORS_HEADERS)
    elif (
        request.method in ("GET", "HEAD")
        and response.status_code < 400
        and path not in DYNAMIC_PATHS
    ):
        response.headers.setdefault("Cache-Control", cache_control_for(path))
    response.headers.update(SECURITY_HEADERS)
    return response
