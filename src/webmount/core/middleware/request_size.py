from fastapi import Request

from webmount.core.logger import logger


async def check_request_size_middleware(request: Request, call_next):
    """
    Rejects requests whose Content-Length exceeds MAX_BODY_SIZE_BYTES
    before the body is read.
    """
    settings = request.app.state.env
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            size = int(content_length)
            if size > settings.MAX_BODY_SIZE_BYTES:
                logger.warning(
                    f"Request size {size} bytes exceeds maximum {settings.MAX_BODY_SIZE_BYTES} bytes"
                )
                return request.state.fail(
                    {"status": 413, "error": "Request body too large."}
                )
        except ValueError:
            pass

    return await call_next(request)
