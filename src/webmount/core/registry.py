"""
Registration queues and the ordering engine.

Modules register middlewares and routes at any time before the mount phase.
Each entry carries a numeric priority; lower priorities mount earlier and
entries with equal priority keep the order they were registered in.

When no priority is given, the entry takes the queue's insertion counter:
its index in the queue, raised when needed so it never sorts ahead of an
entry that was queued before it.
This differs from a plain index default: after an entry registered with
priority 10, the next unannotated entry gets 11 rather than 1, so it mounts
after that entry instead of before it.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from webmount.core.errors import InvalidArgument

KNOWN_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")
# Binds the chain to every verb in KNOWN_METHODS
ALL_METHODS = "all"

Priority = int | float
PathSpec = str | re.Pattern


def _check_priority(priority) -> None:
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        raise InvalidArgument(f"invalid priority {priority!r}, expected a number")


def _check_path(path, what: str) -> None:
    if not isinstance(path, (str, re.Pattern)):
        raise InvalidArgument(
            f"invalid {what} {path!r}, expected a string or a compiled pattern"
        )


def _check_handler(handler) -> None:
    if not callable(handler):
        raise InvalidArgument(f"handler {handler!r} is not callable")


@dataclass(frozen=True)
class MiddlewareEntry:
    handler: Callable
    path_scope: PathSpec | None
    priority: Priority

    def __post_init__(self):
        _check_handler(self.handler)
        if self.path_scope is not None:
            _check_path(self.path_scope, "middleware path")
        _check_priority(self.priority)


@dataclass(frozen=True)
class RouteEntry:
    method: str
    path: PathSpec
    handlers: tuple[Callable, ...]
    priority: Priority

    def __post_init__(self):
        if not isinstance(self.method, str):
            raise InvalidArgument(f"invalid method {self.method!r} for route")
        method = self.method.lower()
        if method not in KNOWN_METHODS and method != ALL_METHODS:
            raise InvalidArgument(f"unknown method {self.method!r} for route")
        # frozen, so normalize through object.__setattr__
        object.__setattr__(self, "method", method)
        _check_path(self.path, "route path")
        object.__setattr__(self, "handlers", tuple(self.handlers))
        if not self.handlers:
            raise InvalidArgument(f"route {self.path!r} needs at least one handler")
        for handler in self.handlers:
            _check_handler(handler)
        _check_priority(self.priority)


Entry = TypeVar("Entry", MiddlewareEntry, RouteEntry)


def ordered(entries: Iterable[Entry]) -> list[Entry]:
    """
    Returns entries by ascending priority, ties kept in registration order.

    The sort key carries the original index explicitly, so the result does not
    depend on the stability of the underlying sort.
    """
    decorated = [(entry.priority, index, entry) for index, entry in enumerate(entries)]
    decorated.sort(key=lambda item: (item[0], item[1]))
    return [entry for _, _, entry in decorated]


class RegistrationQueue:
    """Pending middleware and route entries awaiting a mount cycle."""

    def __init__(self):
        self.middlewares: list[MiddlewareEntry] = []
        self.routes: list[RouteEntry] = []

    @staticmethod
    def _next_priority(queue: list) -> Priority:
        if not queue:
            return 0
        return max(len(queue), max(entry.priority for entry in queue) + 1)

    def add_middleware(self, handler: Callable, priority: Priority | None = None):
        entry = MiddlewareEntry(
            handler=handler,
            path_scope=None,
            priority=self._next_priority(self.middlewares)
            if priority is None
            else priority,
        )
        self.middlewares.append(entry)
        return entry

    def add_scoped_middleware(
        self, path: PathSpec, handler: Callable, priority: Priority | None = None
    ):
        if path is None:
            raise InvalidArgument("scoped middleware needs a path")
        entry = MiddlewareEntry(
            handler=handler,
            path_scope=path,
            priority=self._next_priority(self.middlewares)
            if priority is None
            else priority,
        )
        self.middlewares.append(entry)
        return entry

    def add_route(
        self,
        method: str,
        path: PathSpec,
        *handlers: Callable,
        priority: Priority | None = None,
    ):
        entry = RouteEntry(
            method=method,
            path=path,
            handlers=handlers,
            priority=self._next_priority(self.routes) if priority is None else priority,
        )
        self.routes.append(entry)
        return entry

    def ordered_middlewares(self) -> list[MiddlewareEntry]:
        return ordered(self.middlewares)

    def ordered_routes(self) -> list[RouteEntry]:
        return ordered(self.routes)

    def clear_routes(self):
        self.routes = []

    def clear_middlewares(self):
        self.middlewares = []
