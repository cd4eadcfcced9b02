from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ApiSubError:
    """A single detailed reason attached to an :class:`ApiError`."""

    reason: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"reason": self.reason, "message": self.message}


@dataclass(frozen=True)
class ApiError:
    """Status-like code, canonical message and ordered sub-reasons of a failure."""

    code: int
    message: str
    errors: tuple[ApiSubError, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {"code": self.code, "message": self.message},
            "errors": [sub.to_dict() for sub in self.errors],
        }


class WrongVariantError(Exception):
    """Raised when an unsafe result accessor is used on the other variant."""


class ApiException(Exception):
    """Raised at the HTTP boundary to hand an ApiError to the exception handlers."""

    def __init__(self, error: ApiError) -> None:
        super().__init__(error.message)
        self.error = error


def null_parameter(param: str) -> ApiError:
    return ApiError(
        400,
        "Required parameter is missing",
        (ApiSubError("MissingParameter", f"Required parameter {param} is null"),),
    )


def malformed_parameter(param: str) -> ApiError:
    return ApiError(
        400,
        "Parameter is malformed",
        (ApiSubError("MalformedParameter", f"Parameter {param} is of invalid format"),),
    )


def not_found(specifier: str) -> ApiError:
    return ApiError(
        404,
        "Cannot find this object",
        (ApiSubError("NotFound", f"No such object with given {specifier}"),),
    )


def conflict(param: str) -> ApiError:
    return ApiError(
        409,
        "Parameter conflicts with the current state",
        (ApiSubError("Conflict", f"Parameter {param} conflicts with the data on the server"),),
    )


def permission_denied(resource: str) -> ApiError:
    return ApiError(
        403,
        "User cannot access this resource",
        (ApiSubError("PermissionDenied", f"Cannot view resource {resource}"),),
    )


def operation_not_permitted() -> ApiError:
    return ApiError(
        403,
        "Operation not permitted",
        (ApiSubError("UnsupportedOperation", "The operation requested is not allowed"),),
    )


def unauthorized() -> ApiError:
    return ApiError(401, "You are not authenticated")


def storage_unavailable(exc: BaseException) -> ApiError:
    """Wrap a failed storage operation, keeping the driver's message verbatim."""
    return ApiError(
        500,
        "Error while fetching data",
        (ApiSubError(type(exc).__name__, str(exc)),),
    )


def validation_failed(fields: list[str]) -> ApiError:
    """One malformed-parameter error listing every offending request field."""
    return ApiError(
        400,
        "Parameter is malformed",
        tuple(
            ApiSubError("MalformedParameter", f"Parameter {field} is of invalid format")
            for field in fields
        ),
    )
