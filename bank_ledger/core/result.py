"""Success/error container returned by every fallible ledger operation.

An :class:`ApiResult` is either :class:`Ok` holding a value or :class:`Err`
holding an :class:`~bank_ledger.core.errors.ApiError`. Expected failures
(bad input, missing rows, insufficient funds, storage errors) travel through
it instead of being raised, so pipelines are written as chains of
``flat_map``/``then`` that stop at the first error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from .errors import ApiError, WrongVariantError

T = TypeVar("T")
U = TypeVar("U")


class ApiResult(ABC, Generic[T]):
    __slots__ = ()

    @staticmethod
    def ok(value: U) -> "ApiResult[U]":
        return Ok(value)

    @staticmethod
    def error(error: ApiError) -> "ApiResult[Any]":
        if error is None:
            raise TypeError("error must not be None")
        return Err(error)

    @abstractmethod
    def is_ok(self) -> bool: ...

    def is_error(self) -> bool:
        return not self.is_ok()

    @abstractmethod
    def map(self, mapper: Callable[[T], U]) -> "ApiResult[U]":
        """Transform the success value; errors pass through unchanged."""

    @abstractmethod
    def flat_map(self, mapper: Callable[[T], "ApiResult[U]"]) -> "ApiResult[U]":
        """Chain a result-returning step, short-circuiting on error."""

    def then(self, supplier: Callable[[], "ApiResult[U]"]) -> "ApiResult[U]":
        """Discard the success value and continue with ``supplier()``."""
        return self.flat_map(lambda _: supplier())

    def peek(self, action: Callable[[T], "ApiResult[Any]"]) -> "ApiResult[T]":
        """Run ``action`` on the value, keeping the value unless the action fails."""
        return self.flat_map(lambda value: action(value).then(lambda: Ok(value)))

    @abstractmethod
    def fold(self, on_ok: Callable[[T], U], on_err: Callable[[ApiError], U]) -> U: ...

    def consume(
        self,
        on_ok: Callable[[T], None],
        on_err: Callable[[ApiError], None],
    ) -> None:
        self.fold(on_ok, on_err)

    @abstractmethod
    def get(self) -> T:
        """Unsafe: the success value, or WrongVariantError if an error is held."""

    @abstractmethod
    def get_error(self) -> ApiError:
        """Unsafe: the error, or WrongVariantError if a value is held."""


@dataclass(frozen=True)
class Ok(ApiResult[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def map(self, mapper: Callable[[T], U]) -> ApiResult[U]:
        return Ok(mapper(self.value))

    def flat_map(self, mapper: Callable[[T], ApiResult[U]]) -> ApiResult[U]:
        return mapper(self.value)

    def fold(self, on_ok: Callable[[T], U], on_err: Callable[[ApiError], U]) -> U:
        return on_ok(self.value)

    def get(self) -> T:
        return self.value

    def get_error(self) -> ApiError:
        raise WrongVariantError("A value was stored")


@dataclass(frozen=True)
class Err(ApiResult[T]):
    error: ApiError

    def is_ok(self) -> bool:
        return False

    def map(self, mapper: Callable[[T], U]) -> ApiResult[U]:
        return Err(self.error)

    def flat_map(self, mapper: Callable[[T], ApiResult[U]]) -> ApiResult[U]:
        return Err(self.error)

    def fold(self, on_ok: Callable[[T], U], on_err: Callable[[ApiError], U]) -> U:
        return on_err(self.error)

    def get(self) -> T:
        raise WrongVariantError("An error was stored")

    def get_error(self) -> ApiError:
        return self.error
