import time

from fastapi import Request

from webmount.core.logger import logger


async def instrument_requests_middleware(request: Request, call_next):
    """
    Measures request latency and reports every finished request to the status observer.
    """
    start_time = time.time()
    observer = request.app.state.observer
    path = request.url.path

    with logger.contextualize(
        user_agent=request.headers.get("user-agent", "N/A"),
        request_source=request.headers.get("x-request-source", "N/A"),
    ):
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed with exception",
                extra={
                    "request_method": request.method,
                    "path": path,
                    "latency_ms": (time.time() - start_time) * 1000,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise e

        duration = time.time() - start_time
        observer.request(request.method, response.status_code, duration)
        logger.debug(
            "Request finished",
            extra={
                "request_method": request.method,
                "path": path,
                "status_code": response.status_code,
                "latency_ms": duration * 1000,
            },
        )
        return response
