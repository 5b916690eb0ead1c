from fastapi import Request, Response
from itsdangerous import BadSignature, Signer

from webmount.core.logger import logger

SIGNED_COOKIE_PREFIX = "s:"


def sign_cookie_value(value: str, secret: str) -> str:
    return SIGNED_COOKIE_PREFIX + Signer(secret).sign(value).decode()


def set_signed_cookie(response: Response, name: str, value: str, settings, **kwargs):
    """Sets a cookie signed with COOKIE_SECRET, scoped to COOKIE_DOMAIN when set."""
    response.set_cookie(
        name,
        sign_cookie_value(value, settings.COOKIE_SECRET),
        domain=settings.COOKIE_DOMAIN or None,
        **kwargs,
    )


async def signed_cookies_middleware(request: Request, call_next):
    """
    Verifies cookies carrying the signed prefix and exposes the valid ones
    as ``request.state.signed_cookies``. Tampered cookies are left out.
    """
    signer = Signer(request.app.state.env.COOKIE_SECRET)
    signed_cookies = {}
    for name, value in request.cookies.items():
        if not value.startswith(SIGNED_COOKIE_PREFIX):
            continue
        try:
            signed_cookies[name] = signer.unsign(
                value[len(SIGNED_COOKIE_PREFIX) :]
            ).decode()
        except BadSignature:
            logger.debug(f"Ignoring cookie {name} with invalid signature")
    request.state.signed_cookies = signed_cookies
    return await call_next(request)
