from fastapi import Request

from webmount.core.failures import fail


async def error_normalizer_middleware(request: Request, call_next):
    """
    Gives every downstream handler a uniform ``request.state.fail(error, status=None)``.

    ``fail`` returns the normalized response, which the handler returns in turn.
    Exceptions raised by handlers are not captured here.
    """
    request.state.fail = fail
    return await call_next(request)
