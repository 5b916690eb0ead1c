from fastapi.responses import JSONResponse


def recording_middleware(name: str, calls: list):
    async def middleware(request, call_next):
        calls.append(name)
        return await call_next(request)

    middleware.__name__ = f"{name}_middleware"
    return middleware


def json_handler(payload: dict):
    async def handler(request, call_next):
        return JSONResponse(payload)

    return handler


def failing_handler(error, status=None):
    """Route handler that answers with request.state.fail(error, status)."""

    async def handler(request, call_next):
        return request.state.fail(error, status)

    return handler
