import copy
import secrets

from fastapi import Request
from itsdangerous import BadSignature, Signer
from redis.exceptions import RedisError

from webmount.core.logger import logger

SESSION_REQUIRED_MESSAGE = "Session is required but not available!"


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def _session_id_from_cookie(request: Request, settings, signer: Signer) -> str | None:
    cookie = request.cookies.get(settings.SESSION_NAME)
    if not cookie:
        return None
    try:
        return signer.unsign(cookie).decode()
    except BadSignature:
        logger.debug("Discarding session cookie with invalid signature")
        return None


async def session_middleware(request: Request, call_next):
    """
    Loads ``request.session`` from the session store and persists it after
    the response is produced.

    A new session is written when SESSION_SAVE_UNINITIALIZED is set or the
    handler stored something in it. An existing session is written back when
    it changed, or always when SESSION_RESAVE is set.

    Store errors are logged and never fail the request: a failed load leaves
    the request without a session, a failed save keeps the handler response.
    """
    settings = request.app.state.env
    store = request.app.state.session_store
    signer = Signer(settings.SESSION_SECRET)

    session_id = _session_id_from_cookie(request, settings, signer)
    try:
        data = await store.get(session_id) if session_id else None
    except RedisError as e:
        logger.error(f"Session store unavailable: {e}")
        # The session guard answers the request
        return await call_next(request)

    is_new = data is None
    if is_new:
        session_id = new_session_id()
        data = {}
    snapshot = copy.deepcopy(data)
    request.scope["session"] = data

    response = await call_next(request)

    session = request.scope["session"]
    modified = session != snapshot
    if is_new and not (modified or settings.SESSION_SAVE_UNINITIALIZED):
        return response
    if is_new or modified or settings.SESSION_RESAVE:
        try:
            await store.set(session_id, session)
        except RedisError as e:
            logger.error(f"Failed to save session: {e}")
            return response
    if is_new:
        response.set_cookie(
            settings.SESSION_NAME,
            signer.sign(session_id).decode(),
            domain=settings.SESSION_COOKIE_DOMAIN or None,
            secure=settings.SESSION_COOKIE_SECURE,
            httponly=True,
            path="/",
        )
    return response


async def session_required_middleware(request: Request, call_next):
    if "session" not in request.scope:
        return request.state.fail(RuntimeError(SESSION_REQUIRED_MESSAGE))
    return await call_next(request)
