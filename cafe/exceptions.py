class CafeError(Exception):
    """Base class for errors raised by the ordering core."""


class ValidationError(CafeError):
    pass


class NotFound(CafeError):
    pass


class InvalidStatus(CafeError):
    pass


class InvalidTransition(InvalidStatus):
    pass


class InternalError(CafeError):
    """A store or infrastructure failure. The message is safe to show to clients."""
