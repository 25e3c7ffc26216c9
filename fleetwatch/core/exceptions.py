"""
Error kinds raised by the geofence core
"""


class FleetWatchError(Exception):
    """Base class for all domain errors"""


class ValidationError(FleetWatchError):
    """
    A recoverable, field-identified validation failure.
    Blocks submission only; entered values are never discarded.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class GeocodeNotFound(FleetWatchError):
    """The address did not resolve to any location"""


class GeocodeTransportError(FleetWatchError):
    """The geocoding service could not be reached; the search may be retried"""


class DirectoryFetchError(FleetWatchError):
    """The user directory could not be read"""


class AuthorizationDenied(FleetWatchError):
    """
    Fatal to the current navigation: the caller must redirect
    instead of showing a form error.
    """

    def __init__(self, message: str, redirect_to: str, status_code: int = 403):
        super().__init__(message)
        self.redirect_to = redirect_to
        self.status_code = status_code
