"""Exception types shared across the search and booking pipeline."""


class FlightDeskError(Exception):
    """Base class for errors raised by flightdesk."""


class ProviderError(FlightDeskError):
    """The flight-data provider returned an error payload or a bad response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MissingContextError(FlightDeskError):
    """A continuation lookup was attempted without the original route context."""


class IntentParseError(FlightDeskError):
    """The intent extractor produced output that could not be parsed."""
