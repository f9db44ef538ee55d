"""
Failure policies for generation calls.

Each generation operation picks exactly one policy:

- SurfaceFailure: the failure is terminal for the operation and is reported
  to the user as a single, user-facing error type. Errors listed in
  ``passthrough`` already carry a user-facing message and propagate as-is.
- DegradeTo: the failure is swallowed after logging and a fixed value is
  returned in place of the result.

The cause is always logged, never attached to the user-facing message.
"""

from __future__ import annotations
import functools
import logging
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailurePolicy:
	def handle(self, operation: str, error: Exception) -> Any:
		raise NotImplementedError


class SurfaceFailure(FailurePolicy):
	def __init__(
		self,
		error_type: Type[Exception],
		message: str,
		*,
		passthrough: Tuple[Type[Exception], ...] = (),
	) -> None:
		self.error_type = error_type
		self.message = message
		self.passthrough = passthrough

	def handle(self, operation: str, error: Exception) -> Any:
		logger.error("%s failed: %s", operation, error, exc_info=error)
		if self.passthrough and isinstance(error, self.passthrough):
			raise error
		raise self.error_type(self.message) from error


class DegradeTo(FailurePolicy):
	def __init__(self, value: Callable[[], Any]) -> None:
		# Resolved lazily so settings overrides apply at call time
		self.value = value

	def handle(self, operation: str, error: Exception) -> Any:
		fallback = self.value()
		logger.warning("%s failed, using fallback %r: %s", operation, fallback, error, exc_info=error)
		return fallback


def with_failure_policy(policy: FailurePolicy) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
	def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
		@functools.wraps(func)
		async def wrapper(*args: Any, **kwargs: Any) -> T:
			try:
				return await func(*args, **kwargs)
			except Exception as err:
				return policy.handle(func.__name__, err)
		wrapper.failure_policy = policy  # type: ignore[attr-defined]
		return wrapper
	return decorator
