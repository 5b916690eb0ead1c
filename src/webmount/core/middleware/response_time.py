import time

from fastapi import Request


async def response_time_middleware(request: Request, call_next):
    """Sets X-Response-Time to the handling time in milliseconds."""
    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start_time) * 1000
    response.headers["X-Response-Time"] = f"{elapsed_ms:.3f}ms"
    return response
