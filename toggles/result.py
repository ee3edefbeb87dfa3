"""Ok/Err values for configuration and loop lookups that may fail.

Callers ``match`` on the two cases instead of catching exceptions.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


type Result[T, E] = Ok[T] | Err[E]


def first_error(results: Iterable[Result[object, E]]) -> E | None:
    """The error of the first ``Err`` in ``results``, or None if all are ``Ok``."""
    for result in results:
        if isinstance(result, Err):
            return result.error
    return None
