"""Custom exceptions for fetchhar package."""


class FetchHarError(Exception):
    """Base exception class for all fetchhar errors."""


class InvalidRequestError(FetchHarError, ValueError):
    """Raised when no absolute http(s) URL can be derived from a fetch input.

    Attributes:
        input: The offending fetch input.
    """

    def __init__(self, message: str, input: object = None) -> None:
        super().__init__(message)
        self.input = input


class UnsupportedTransportError(FetchHarError, TypeError):
    """Raised when a transport or request object does not have the expected shape."""


class RedirectError(FetchHarError):
    """Raised by the default fetch when a redirect is received in ``"error"`` mode.

    Attributes:
        status_code: Status of the redirect response.
        location: Value of its ``Location`` header.
    """

    def __init__(self, message: str, status_code: int, location: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.location = location
