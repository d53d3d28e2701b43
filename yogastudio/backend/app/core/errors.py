"""Result types returned across booking-flow component boundaries.

Components report expected failures as ``Err(FlowError(...))`` instead of
raising, so every caller has to look at the outcome. Routes turn an ``Err``
into an HTTP error with :func:`to_http_exception`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

from fastapi import HTTPException, status

T = TypeVar("T")


class ErrorKind(str, Enum):
    validation = "VALIDATION_ERROR"
    not_found = "NOT_FOUND_ERROR"
    forbidden = "AUTHORIZATION_ERROR"
    conflict = "CONFLICT_ERROR"
    unauthorized = "AUTHENTICATION_ERROR"
    external_service = "EXTERNAL_SERVICE_ERROR"
    service_unavailable = "SERVICE_UNAVAILABLE"


HTTP_STATUS = {
    ErrorKind.validation: 422,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.forbidden: status.HTTP_403_FORBIDDEN,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.external_service: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.service_unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass(frozen=True)
class FlowError:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: FlowError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def fail(kind: ErrorKind, message: str, **details: Any) -> Err:
    return Err(FlowError(kind=kind, message=message, details=details))


def to_http_exception(error: FlowError) -> HTTPException:
    detail: dict[str, Any] = {"type": error.kind.value, "message": error.message}
    if error.details:
        detail["details"] = error.details
    return HTTPException(status_code=HTTP_STATUS[error.kind], detail=detail)


def unwrap(result: Result[T]) -> T:
    """Return the value of an ``Ok`` or raise the mapped HTTP error."""
    if isinstance(result, Err):
        raise to_http_exception(result.error)
    return result.value
