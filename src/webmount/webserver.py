import asyncio
from typing import Callable

import uvicorn
from fastapi import FastAPI

from webmount.core.config import Env, env
from webmount.core.errors import ServerStateError
from webmount.core.logger import logger, setup_logger
from webmount.core.middleware import MiddlewareChain, register_middleware
from webmount.core.mount import FastAPISurface, MountCycle, MountExecutor
from webmount.core.registry import PathSpec, Priority, RegistrationQueue
from webmount.core.session_store import RedisSessionStore
from webmount.core.status import StatusObserver

STARTUP_POLL_SECONDS = 0.01


class WebServer:
    """
    Shared web server that independent modules contribute middlewares and
    routes to.

    Register everything before start(). start() runs one mount cycle and binds
    the listener; stop() releases it without waiting for in-flight requests.
    """

    def __init__(
        self,
        settings: Env = env,
        observer: StatusObserver | None = None,
        session_store=None,
    ):
        logger.debug("Initializing...")
        self.env = settings
        self.observer = observer or StatusObserver()
        self.queue = RegistrationQueue()
        self.listening = False
        self.listen_port = settings.listen_port

        # A store created here is closed again by stop()
        self._owns_session_store = session_store is None and settings.SESSION_ENABLED
        if self._owns_session_store:
            session_store = RedisSessionStore(settings, self.observer)
        self.session_store = session_store

        self.app = FastAPI(title="webmount")
        self.app.state.env = settings
        self.app.state.observer = self.observer
        self.app.state.session_store = self.session_store

        self.chain = MiddlewareChain()
        register_middleware(self.app, settings, self.chain)
        self.executor = MountExecutor(
            self.queue,
            FastAPISurface(self.app, self.chain),
            settings.MIDDLEWARE_MOUNT_POLICY,
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None

    def add_middleware(self, handler: Callable, priority: Priority | None = None):
        return self.queue.add_middleware(handler, priority)

    def add_scoped_middleware(
        self, path: PathSpec, handler: Callable, priority: Priority | None = None
    ):
        return self.queue.add_scoped_middleware(path, handler, priority)

    def add_route(
        self,
        method: str,
        path: PathSpec,
        *handlers: Callable,
        priority: Priority | None = None,
    ):
        return self.queue.add_route(method, path, *handlers, priority=priority)

    def route(self, method: str, path: PathSpec, priority: Priority | None = None):
        """Decorator form of add_route for a single handler."""

        def decorator(handler: Callable):
            self.add_route(method, path, handler, priority=priority)
            return handler

        return decorator

    def mount(self) -> MountCycle:
        return self.executor.mount()

    async def start(self):
        if self.listening:
            raise ServerStateError(
                f"Webserver already listening on {self.listen_port}"
            )
        setup_logger(self.env)
        logger.debug("Starting...")

        self.mount()
        self.observer.port(self.listen_port)

        config = uvicorn.Config(
            self.app,
            host=self.env.HOST,
            port=self.listen_port,
            proxy_headers=self.env.TRUST_PROXY,
            forwarded_allow_ips="*" if self.env.TRUST_PROXY else None,
            log_config=None,
            log_level=None,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._serve_task.done():
                self._serve_task.result()
                raise ServerStateError(
                    f"Webserver stopped before listening on {self.listen_port}"
                )
            await asyncio.sleep(STARTUP_POLL_SECONDS)

        self.listening = True
        logger.info(f"Webserver listening on {self.listen_port}")
        return self

    async def stop(self):
        if self._server is None:
            raise ServerStateError("Webserver is not listening")
        logger.debug("Stopping...")

        # No drain, open connections are closed right away
        self._server.should_exit = True
        self._server.force_exit = True
        await self._serve_task
        if self._owns_session_store:
            await self.session_store.close()

        self._server = None
        self._serve_task = None
        self.listening = False
        return self
