from mixjax.core.config import get_debug_level


class PreconditionError(AssertionError):
    """
    Raised when a caller breaks the contract of an operation, e.g. removing a
    value from an empty group or scoring a category outside the model dimension.
    These are programming errors, not runtime conditions to recover from.
    """


def dist_assert(condition: bool, message: str, level: int = 0) -> None:
    """
    Raise PreconditionError if condition fails.
    Checks with level above the configured debug level are skipped.
    """
    if level > get_debug_level():
        return
    if not condition:
        raise PreconditionError(message)


def dist_assert_eq(lhs, rhs, what: str, level: int = 0) -> None:
    if level > get_debug_level():
        return
    if lhs != rhs:
        raise PreconditionError(f"{what}: expected {rhs}, got {lhs}")
