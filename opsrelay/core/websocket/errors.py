"""
Error taxonomy for the signaling core.

AuthenticationError is fatal (handshake closes the socket). Validation, not-found
and authorization errors are recoverable and become `error` frames on the
caller's connection. TransportError is raised by a failed send and is logged
and swallowed by the broadcaster.
"""


class SignalingError(Exception):
    """Base class for signaling errors. str(exc) is sent to the client."""


class AuthenticationError(SignalingError):
    """Missing or invalid handshake token."""


class ValidationError(SignalingError):
    """Malformed envelope, room id or unknown message type."""


class NotFoundError(SignalingError):
    """Referenced room does not exist."""


class AuthorizationError(SignalingError):
    """Caller may not access the referenced room."""


class TransportError(SignalingError):
    """Send to a closed or closing socket."""
