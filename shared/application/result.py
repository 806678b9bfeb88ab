"""
Result values for the public application contract

Application services never let the domain error taxonomy escape as an
exception. Operations decorated with ``returns_result`` hand back either
``Ok(value)`` or ``Err(error)``; callers branch on ``result.ok``.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from shared.domain.errors import RentalError, StoreError
from shared.infrastructure.document_store import DocumentStoreError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: RentalError
    ok = False

    @property
    def code(self) -> str:
        return self.error.code

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]


def returns_result(func: Callable[..., T]) -> Callable[..., Result[T]]:
    """Wrap an operation so expected failures come back as ``Err``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Result[T]:
        try:
            return Ok(func(*args, **kwargs))
        except RentalError as e:
            logger.info(f"{func.__qualname__} failed: {e.code}: {e.message}")
            return Err(e)
        except DocumentStoreError as e:
            logger.error(f"Document store failure in {func.__qualname__}: {e}", exc_info=True)
            return Err(StoreError(str(e)))

    return wrapper
