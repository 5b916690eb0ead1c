"""
Error normalization.

Handlers report failures through ``request.state.fail(error, status=None)``.
The error is classified once into one of a closed set of failure variants,
and each variant knows how to render itself:

- ValidationFailure: field-level messages, 400, JSON ``{field: message}``
- RuntimeFault: an exception instance, 500, HTML text with the traceback
- StructuredFailure: a mapping, its own ``status`` or the given one, JSON
- SentinelFailure: the bare 404 sentinel, empty body
- RawFailure: any other value, echoed back as JSON

Stack traces are sent to the client unredacted on RuntimeFault.
"""

import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from webmount.core.logger import logger

DEFAULT_STATUS = 500
VALIDATION_ERROR_NAME = "ValidationError"
NOT_FOUND_SENTINELS = (404, "404")


@dataclass(frozen=True)
class ValidationFailure:
    fields: dict[str, str]
    status: int = 400

    def to_response(self) -> Response:
        logger.debug(f"Failure response {self.status}: {self.fields}")
        return JSONResponse(status_code=self.status, content=self.fields)


@dataclass(frozen=True)
class RuntimeFault:
    error: BaseException
    status: int = 500

    @property
    def body(self) -> str:
        trace = "".join(
            traceback.format_exception(
                type(self.error), self.error, self.error.__traceback__
            )
        )
        return f"<pre>{type(self.error).__name__}: {self.error}: <br> {trace}"

    def to_response(self) -> Response:
        body = self.body
        logger.debug(f"Failure response {self.status}: {body}")
        return HTMLResponse(status_code=self.status, content=body)


@dataclass(frozen=True)
class StructuredFailure:
    body: dict
    status: int

    def to_response(self) -> Response:
        logger.debug(f"Failure response {self.status}: {self.body}")
        return _json_response(self.body, self.status)


@dataclass(frozen=True)
class SentinelFailure:
    status: int = 404

    def to_response(self) -> Response:
        logger.debug(f"Failure response {self.status}: <empty>")
        return Response(status_code=self.status)


@dataclass(frozen=True)
class RawFailure:
    value: Any
    status: int

    def to_response(self) -> Response:
        logger.debug(f"Failure response {self.status}: {self.value!r}")
        return _json_response(self.value, self.status)


Failure = (
    ValidationFailure | RuntimeFault | StructuredFailure | SentinelFailure | RawFailure
)


def _json_response(content, status: int) -> Response:
    # NaN and infinity survive jsonable_encoder but not JSON rendering
    try:
        return JSONResponse(status_code=status, content=jsonable_encoder(content))
    except (TypeError, ValueError):
        return JSONResponse(status_code=status, content=str(content))


def _field(source, key: str, default=None):
    if isinstance(source, Mapping):
        return source.get(key, default)
    return getattr(source, key, default)


def _is_validation_error(error) -> bool:
    if isinstance(error, PydanticValidationError):
        return True
    if isinstance(error, (str, bytes, int, float)) or error is None:
        return False
    return _field(error, "name") == VALIDATION_ERROR_NAME and isinstance(
        _field(error, "errors"), Mapping
    )


def _validation_fields(error) -> dict[str, str]:
    """Flattens a validation error into ``{field: message}``."""
    if isinstance(error, PydanticValidationError):
        return {
            ".".join(str(part) for part in item["loc"]): item["msg"]
            for item in error.errors()
        }
    return {
        str(field): str(_field(entry, "message", entry))
        for field, entry in _field(error, "errors").items()
    }


def classify(error, status: int | None = None) -> Failure:
    """
    Probes the shape of ``error`` and returns the matching failure variant.

    The rules are evaluated in order; the first match wins.
    """
    status = status or DEFAULT_STATUS

    if _is_validation_error(error):
        return ValidationFailure(fields=_validation_fields(error))

    if isinstance(error, BaseException):
        return RuntimeFault(error=error)

    if isinstance(error, BaseModel):
        error = error.model_dump(mode="json")

    if isinstance(error, Mapping):
        body = dict(error)
        own_status = body.get("status")
        if isinstance(own_status, bool) or not isinstance(own_status, int):
            own_status = None
        if own_status:
            return StructuredFailure(body=body, status=own_status)
        return StructuredFailure(body=body, status=status)

    if not isinstance(error, bool) and error in NOT_FOUND_SENTINELS:
        return SentinelFailure()

    return RawFailure(value=error, status=status)


def fail(error, status: int | None = None) -> Response:
    """Builds the normalized response for ``error``. Never raises."""
    return classify(error, status).to_response()
