"""Domain error taxonomy for the adoption engine."""


class MalformedEventError(ValueError):
    """Raised when a created document lacks required fields.

    The dispatcher converts this into Skipped("malformed-event"); it must
    never escape a trigger handler.
    """

    pass


class DeliveryError(Exception):
    """Raised by a push gateway when a single send fails."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
