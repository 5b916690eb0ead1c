import inspect
import re
from functools import partial
from typing import Callable

from fastapi import Request


async def resolve(result):
    """Awaits ``result`` when a handler returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def in_scope(path_scope, path: str) -> bool:
    """
    A string scope matches its own path and everything below it on a segment
    boundary. A pattern scope matches when it matches at the start of the path.
    """
    if path_scope is None:
        return True
    if isinstance(path_scope, re.Pattern):
        return path_scope.match(path) is not None
    prefix = path_scope.rstrip("/")
    return not prefix or path == prefix or path.startswith(prefix + "/")


class MiddlewareChain:
    """
    Runs mounted middlewares in mount order.

    Installed once inside the built-in stack. Mounting appends to it, so
    middlewares run in the order they were mounted regardless of Starlette's
    reverse registration order.
    """

    def __init__(self):
        self.layers: list[tuple[Callable, str | re.Pattern | None]] = []

    def use(self, handler: Callable, path_scope=None):
        self.layers.append((handler, path_scope))

    def __len__(self):
        return len(self.layers)

    async def __call__(self, request: Request, call_next):
        path = request.url.path
        handlers = [
            handler
            for handler, path_scope in list(self.layers)
            if in_scope(path_scope, path)
        ]

        async def run(index: int, request: Request):
            if index == len(handlers):
                return await call_next(request)
            return await resolve(handlers[index](request, partial(run, index + 1)))

        return await run(0, request)
