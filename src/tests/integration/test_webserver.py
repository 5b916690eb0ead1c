import re

import httpx
import pytest
from fastapi.responses import JSONResponse

from webmount.core.config import Env
from webmount.core.errors import InvalidArgument, ServerStateError
from webmount.core.status import metrics_handler
from webmount.webserver import WebServer
from tests.helpers import json_handler
from tests.mocks import MockSessionStore, RecordingObserver


def test_route_responds(webserver, mounted_client):
    webserver.add_route("get", "/hello", json_handler({"hello": "world"}))

    response = mounted_client(webserver).get("/hello")

    assert response.status_code == 200
    assert response.json() == {"hello": "world"}


def test_route_decorator(webserver, mounted_client):
    @webserver.route("POST", "/echo")
    async def echo(request, call_next):
        return JSONResponse(await request.json())

    response = mounted_client(webserver).post("/echo", json={"a": 1})

    assert response.json() == {"a": 1}


def test_handler_chain_runs_in_order(webserver, mounted_client):
    async def authenticate(request, call_next):
        request.state.user = "ada"
        return await call_next(request)

    async def greet(request, call_next):
        return {"user": request.state.user}

    webserver.add_route("get", "/me", authenticate, greet)

    response = mounted_client(webserver).get("/me")

    assert response.json() == {"user": "ada"}


def test_handler_chain_stops_when_next_is_not_called(webserver, mounted_client):
    calls = []

    async def deny(request, call_next):
        calls.append("deny")
        return request.state.fail({"error": "forbidden"}, 403)

    async def secret(request, call_next):
        calls.append("secret")
        return {"secret": True}

    webserver.add_route("get", "/secret", deny, secret)

    response = mounted_client(webserver).get("/secret")

    assert response.status_code == 403
    assert calls == ["deny"]


def test_handler_chain_falls_through_to_404(webserver, mounted_client):
    async def passthrough(request, call_next):
        return await call_next(request)

    webserver.add_route("get", "/nothing", passthrough)

    response = mounted_client(webserver).get("/nothing")

    assert response.status_code == 404
    assert response.content == b""


def test_sync_handlers_are_supported(webserver, mounted_client):
    webserver.add_route("get", "/sync", lambda request, call_next: {"sync": True})

    assert mounted_client(webserver).get("/sync").json() == {"sync": True}


def test_lower_priority_route_wins_for_same_path(webserver, mounted_client):
    webserver.add_route("get", "/dup", json_handler({"winner": "late"}), priority=5)
    webserver.add_route("get", "/dup", json_handler({"winner": "early"}), priority=1)

    response = mounted_client(webserver).get("/dup")

    assert response.json() == {"winner": "early"}


def test_path_parameters(webserver, mounted_client):
    async def item(request, call_next):
        return {"item_id": request.path_params["item_id"]}

    webserver.add_route("get", "/items/{item_id}", item)

    assert mounted_client(webserver).get("/items/7").json() == {"item_id": "7"}


def test_pattern_route(webserver, mounted_client):
    async def download(request, call_next):
        return {"name": request.path_params["name"]}

    webserver.add_route("get", re.compile(r"^/files/(?P<name>[\w.]+)$"), download)
    client = mounted_client(webserver)

    assert client.get("/files/report.pdf").json() == {"name": "report.pdf"}
    assert client.get("/files/").status_code == 404
    assert client.post("/files/report.pdf").status_code == 405


def test_all_method_binds_every_verb(webserver, mounted_client):
    webserver.add_route("all", "/any", json_handler({"ok": True}))
    client = mounted_client(webserver)

    for method in ("GET", "POST", "PUT", "PATCH", "DELETE"):
        assert client.request(method, "/any").status_code == 200


def test_unregistered_route_is_404(webserver, mounted_client):
    assert mounted_client(webserver).get("/missing").status_code == 404


def test_routes_are_consumed_by_mount(webserver):
    webserver.add_route("get", "/x", json_handler({}))

    first = webserver.mount()
    second = webserver.mount()

    assert len(first.routes) == 1
    assert second.routes == []
    assert webserver.queue.routes == []


def test_invalid_registration_raises_immediately(webserver):
    with pytest.raises(InvalidArgument):
        webserver.add_route("get", "/x")
    with pytest.raises(InvalidArgument):
        webserver.add_route(123, "/x", json_handler({}))
    with pytest.raises(InvalidArgument):
        webserver.add_middleware(None)


def test_metrics_route(webserver, mounted_client):
    webserver.add_route("get", "/metrics", metrics_handler)

    response = mounted_client(webserver).get("/metrics")

    assert response.status_code == 200
    assert "request_count_total" in response.text


def test_observer_receives_requests(settings, mounted_client):
    observer = RecordingObserver()
    server = WebServer(settings, observer)
    server.add_route("get", "/x", json_handler({}))

    mounted_client(server).get("/x")

    assert observer.requests == [("GET", 200)]


async def test_start_and_stop():
    observer = RecordingObserver()
    server = WebServer(Env(SESSION_ENABLED=False, HOST="127.0.0.1", PORT=0), observer)
    server.add_route("get", "/ping", json_handler({"pong": True}))

    await server.start()
    try:
        assert server.listening is True
        assert observer.ports == [0]
        assert server.queue.routes == []
        bound_port = server._server.servers[0].sockets[0].getsockname()[1]
        async with httpx.AsyncClient() as client:
            response = await client.get(f"http://127.0.0.1:{bound_port}/ping")
        assert response.json() == {"pong": True}
    finally:
        await server.stop()

    assert server.listening is False


async def test_start_twice_fails():
    server = WebServer(Env(SESSION_ENABLED=False, HOST="127.0.0.1", PORT=0))

    await server.start()
    try:
        with pytest.raises(ServerStateError):
            await server.start()
    finally:
        await server.stop()


async def test_stop_without_start_fails(webserver):
    with pytest.raises(ServerStateError):
        await webserver.stop()


async def test_stop_closes_the_session_store_it_created(mocker):
    store_class = mocker.patch("webmount.webserver.RedisSessionStore")
    store_class.return_value.close = mocker.AsyncMock()
    server = WebServer(Env(HOST="127.0.0.1", PORT=0))

    await server.start()
    await server.stop()

    store_class.return_value.close.assert_awaited_once()


async def test_stop_leaves_a_given_session_store_open(mocker):
    store = MockSessionStore()
    close = mocker.patch.object(store, "close")
    server = WebServer(Env(HOST="127.0.0.1", PORT=0), session_store=store)

    await server.start()
    await server.stop()

    close.assert_not_called()
