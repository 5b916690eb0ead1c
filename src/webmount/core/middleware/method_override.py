from fastapi import Request

from webmount.core.logger import logger
from webmount.core.registry import KNOWN_METHODS

METHOD_OVERRIDE_HEADER = "x-http-method-override"


async def method_override_middleware(request: Request, call_next):
    """
    Lets clients that can only send POST tunnel another verb through
    the X-HTTP-Method-Override header.
    """
    override = request.headers.get(METHOD_OVERRIDE_HEADER)
    if request.method == "POST" and override and override.lower() in KNOWN_METHODS:
        logger.debug(f"Overriding method POST -> {override.upper()}")
        request.scope["method"] = override.upper()
    return await call_next(request)
