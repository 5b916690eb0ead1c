"""
Mount executor.

A mount cycle sorts both registration queues and applies them to a Surface:
middlewares first, then routes. The route queue is emptied afterwards so a
later cycle only mounts routes registered in between. The middleware queue is
kept under the "reapply" policy, so every cycle mounts the full middleware
set again; the "once" policy consumes it like the route queue.
"""

import re
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Protocol, Sequence

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import BaseRoute, Match, NoMatchFound, request_response

from webmount.core.failures import fail
from webmount.core.logger import logger
from webmount.core.middleware.chain import MiddlewareChain, resolve
from webmount.core.registry import (
    ALL_METHODS,
    KNOWN_METHODS,
    MiddlewareEntry,
    RegistrationQueue,
    RouteEntry,
)

REAPPLY = "reapply"
ONCE = "once"


class Surface(Protocol):
    def use(self, handler: Callable, path_scope=None) -> None: ...

    def route(self, method: str, path, handlers: Sequence[Callable]) -> None: ...


def http_methods(method: str) -> list[str]:
    if method == ALL_METHODS:
        return [known.upper() for known in KNOWN_METHODS]
    return [method.upper()]


def chain_endpoint(handlers: Sequence[Callable]):
    """
    Builds one endpoint out of a handler chain.

    Every handler is called as ``handler(request, call_next)``; ``call_next``
    runs the next handler of the chain. Running past the last handler answers
    with the 404 sentinel. Values that are not responses are sent as JSON.
    """
    handlers = tuple(handlers)

    async def run(index: int, request: Request):
        if index == len(handlers):
            return fail(404)
        return await resolve(handlers[index](request, partial(run, index + 1)))

    async def endpoint(request: Request):
        result = await run(0, request)
        if isinstance(result, Response):
            return result
        return JSONResponse(content=jsonable_encoder(result))

    endpoint.__name__ = getattr(handlers[-1], "__name__", "endpoint")
    return endpoint


class PatternRoute(BaseRoute):
    """Route matched by searching the request path with a compiled pattern."""

    def __init__(self, pattern: re.Pattern, endpoint, methods: Sequence[str]):
        self.pattern = pattern
        self.path = pattern.pattern
        self.endpoint = endpoint
        self.name = endpoint.__name__
        self.methods = set(methods)
        if "GET" in self.methods:
            self.methods.add("HEAD")
        self.app = request_response(endpoint)

    def matches(self, scope):
        if scope["type"] == "http":
            match = self.pattern.search(scope["path"])
            if match:
                path_params = dict(scope.get("path_params", {}))
                path_params.update(
                    {key: value for key, value in match.groupdict().items() if value}
                )
                child_scope = {"endpoint": self.endpoint, "path_params": path_params}
                if scope["method"] not in self.methods:
                    return Match.PARTIAL, child_scope
                return Match.FULL, child_scope
        return Match.NONE, {}

    def url_path_for(self, name, /, **path_params):
        raise NoMatchFound(name, path_params)

    async def handle(self, scope, receive, send):
        if scope["method"] not in self.methods:
            headers = {"Allow": ", ".join(sorted(self.methods))}
            response = PlainTextResponse(
                "Method Not Allowed", status_code=405, headers=headers
            )
            await response(scope, receive, send)
        else:
            await self.app(scope, receive, send)

    def __repr__(self):
        methods = sorted(self.methods)
        return f"{type(self).__name__}(path={self.path!r}, methods={methods!r})"


class FastAPISurface:
    """Applies mounted entries to a live FastAPI application."""

    def __init__(self, app: FastAPI, chain: MiddlewareChain):
        self.app = app
        self.chain = chain

    def use(self, handler: Callable, path_scope=None):
        self.chain.use(handler, path_scope)

    def route(self, method: str, path, handlers: Sequence[Callable]):
        endpoint = chain_endpoint(handlers)
        methods = http_methods(method)
        if isinstance(path, re.Pattern):
            self.app.router.routes.append(PatternRoute(path, endpoint, methods))
        else:
            self.app.add_api_route(path, endpoint, methods=methods)


@dataclass
class MountCycle:
    middlewares: list[MiddlewareEntry] = field(default_factory=list)
    routes: list[RouteEntry] = field(default_factory=list)


class MountExecutor:
    def __init__(
        self, queue: RegistrationQueue, surface: Surface, policy: str = REAPPLY
    ):
        if policy not in (REAPPLY, ONCE):
            raise ValueError(f"unknown middleware mount policy {policy!r}")
        self.queue = queue
        self.surface = surface
        self.policy = policy

    def mount_middlewares(self) -> list[MiddlewareEntry]:
        entries = self.queue.ordered_middlewares()
        for entry in entries:
            if entry.path_scope is not None:
                self.surface.use(entry.handler, entry.path_scope)
            else:
                self.surface.use(entry.handler)
        if self.policy == ONCE:
            self.queue.clear_middlewares()
        return entries

    def mount_routes(self) -> list[RouteEntry]:
        entries = self.queue.ordered_routes()
        for entry in entries:
            logger.debug(f"Adding route {_describe(entry.path)} ({entry.method})")
            self.surface.route(entry.method, entry.path, entry.handlers)
        # Later discovery phases may register more routes for the next cycle
        self.queue.clear_routes()
        return entries

    def mount(self) -> MountCycle:
        return MountCycle(
            middlewares=self.mount_middlewares(), routes=self.mount_routes()
        )


def _describe(path) -> str:
    if isinstance(path, re.Pattern):
        return path.pattern
    return path
