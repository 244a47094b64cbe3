"""Error kinds understood across the package.

Code that produces or consumes errors for this package should use these
kinds so that callers can tell what sort of failure occurred and react
accordingly.
"""

from __future__ import annotations

__all__ = [
    "InvalidInputError",
    "NotFoundError",
    "as_invalid_input",
    "invalid_input",
    "is_invalid_input",
    "as_not_found",
    "not_found",
    "is_not_found",
]


class _WrappingError(Exception):
    """An error that carries another error and reuses its message verbatim."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause

    def __str__(self) -> str:
        return str(self.cause)


class InvalidInputError(_WrappingError):
    """The operation failed because its input was invalid."""

    def invalid_input(self) -> bool:
        return True


class NotFoundError(_WrappingError):
    """The operation failed because a resource was not found."""

    def not_found(self) -> bool:
        return True


def _causes(err: BaseException):
    """Yield the error followed by the errors it wraps."""
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        cause = getattr(current, "cause", None)
        if not isinstance(cause, BaseException):
            cause = current.__cause__
        current = cause


def _has_marker(err: BaseException | None, marker: str) -> bool:
    if err is None:
        return False
    for candidate in _causes(err):
        check = getattr(candidate, marker, None)
        if callable(check):
            return bool(check())
    return False


def as_invalid_input(err: BaseException | None) -> InvalidInputError | None:
    """Wrap ``err`` as an invalid-input error without changing its message."""
    if err is None:
        return None
    return InvalidInputError(err)


def invalid_input(msg: str) -> InvalidInputError:
    """Make an invalid-input error with the given message."""
    return InvalidInputError(Exception(msg))


def is_invalid_input(err: BaseException | None) -> bool:
    """Tell whether ``err``, or an error it wraps, denotes invalid input."""
    return _has_marker(err, "invalid_input")


def as_not_found(err: BaseException | None) -> NotFoundError | None:
    """Wrap ``err`` as a not-found error without changing its message."""
    if err is None:
        return None
    return NotFoundError(err)


def not_found(msg: str) -> NotFoundError:
    """Make a not-found error with the given message."""
    return NotFoundError(Exception(msg))


def is_not_found(err: BaseException | None) -> bool:
    """Tell whether ``err``, or an error it wraps, denotes a missing resource."""
    return _has_marker(err, "not_found")