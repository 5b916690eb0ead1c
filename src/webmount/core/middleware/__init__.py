"""
Built-in middleware stack.

HOW MIDDLEWARE ORDER WORKS:
===========================

Starlette executes middleware in REVERSE order of registration (LIFO - Last In First Out).

Example: If you register A, then B, then C:
  Registration order: A -> B -> C
  Execution order:    C -> B -> A -> handler -> A -> B -> C

build_middleware_stack() returns the stack in the DESIRED execution order and
register_middleware() registers it reversed.

EXECUTION ORDER (request -> handler), disabled entries are skipped:
1. error_normalizer_middleware - Attaches request.state.fail, must be first
2. instrument_requests_middleware - Reports to the status observer
3. GZipMiddleware - COMPRESSION_ENABLED
4. response_time_middleware - RESPONSE_TIME_ENABLED
5. check_request_size_middleware - Early rejection of oversized bodies
6. method_override_middleware - METHOD_OVERRIDE_ENABLED
7. signed_cookies_middleware
8. session_middleware - SESSION_ENABLED
9. session_required_middleware - SESSION_ENABLED
10. CORSMiddleware
11. MiddlewareChain - Middlewares mounted by extension modules
12. [Routing]
"""

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware

from webmount.core.middleware.chain import MiddlewareChain
from webmount.core.middleware.cookies import signed_cookies_middleware
from webmount.core.middleware.error_normalizer import error_normalizer_middleware
from webmount.core.middleware.instrumentation import instrument_requests_middleware
from webmount.core.middleware.method_override import method_override_middleware
from webmount.core.middleware.request_size import check_request_size_middleware
from webmount.core.middleware.response_time import response_time_middleware
from webmount.core.middleware.session import (
    session_middleware,
    session_required_middleware,
)

__all__ = [
    "MiddlewareChain",
    "build_middleware_stack",
    "register_middleware",
]


def _http(dispatch) -> Middleware:
    return Middleware(BaseHTTPMiddleware, dispatch=dispatch)


def _cors(settings) -> Middleware:
    if not settings.CORS_ORIGINS:
        return Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"])
    return Middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_ALLOWED_HEADERS,
        expose_headers=settings.CORS_EXPOSED_HEADERS,
    )


def build_middleware_stack(settings, chain: MiddlewareChain) -> list[Middleware]:
    """Returns the built-in middlewares in execution order."""
    stack = [
        _http(error_normalizer_middleware),
        _http(instrument_requests_middleware),
    ]
    if settings.COMPRESSION_ENABLED:
        stack.append(
            Middleware(GZipMiddleware, minimum_size=settings.COMPRESSION_MINIMUM_SIZE)
        )
    if settings.RESPONSE_TIME_ENABLED:
        stack.append(_http(response_time_middleware))
    stack.append(_http(check_request_size_middleware))
    if settings.METHOD_OVERRIDE_ENABLED:
        stack.append(_http(method_override_middleware))
    stack.append(_http(signed_cookies_middleware))
    if settings.SESSION_ENABLED:
        stack.append(_http(session_middleware))
        stack.append(_http(session_required_middleware))
    stack.append(_cors(settings))
    stack.append(_http(chain))
    return stack


def register_middleware(app, settings, chain: MiddlewareChain):
    """
    Register the built-in middleware in execution order, handling Starlette's
    LIFO registration.

    Args:
        app: FastAPI application instance
        settings: Env instance the stack is configured from
        chain: the chain that mounted middlewares are appended to
    """
    for middleware in reversed(build_middleware_stack(settings, chain)):
        app.add_middleware(middleware.cls, *middleware.args, **middleware.kwargs)
