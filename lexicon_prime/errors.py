"""Exception taxonomy for learning sessions."""


class LexiconError(Exception):
    """Base class for all session errors."""


class ConnectivityFailure(LexiconError):
    """The generation service failed or returned unusable data."""


class ImportFormatError(LexiconError):
    """Session JSON could not be parsed or is missing required fields."""


class InvalidTransitionError(LexiconError):
    """An intent was issued from a stage that does not allow it."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.value} to {target.value}")
