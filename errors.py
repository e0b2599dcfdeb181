class ValidationError(ValueError):
    """Raised for malformed requests such as an invalid date range."""


class NotFoundError(LookupError):
    """Raised when a user or exercise does not exist."""


class PinError(ValidationError):
    """Base class for pinned exercise bookkeeping failures."""


class DuplicatePinError(PinError):
    pass


class PinLimitError(PinError):
    pass


class NotPinnedError(PinError):
    pass
