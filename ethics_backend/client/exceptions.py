"""
Errors raised by the application client.

The reconciler never raises; these cover the edges around it: talking to
the API and driving optimistic mutations.
"""


class ClientError(Exception):
    """Base class for client-side errors."""


class TransportError(ClientError):
    """The API could not be reached or answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidTransition(ClientError):
    """A pending mutation was confirmed or failed twice."""
