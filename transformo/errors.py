class TransformoError(Exception):
    """Base class for application errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload


class AuthenticationError(TransformoError):
    """Bad or missing webhook signature. Never retried, never mutates."""

    status_code = 400


class ValidationError(TransformoError):
    """Malformed or incomplete payload. Surfaced for operator attention."""

    status_code = 400


class DuplicateSubscriptionError(ValidationError):
    """A tenant already holds a different subscription record."""

    status_code = 409


class NotFoundError(TransformoError):
    """An event references a tenant or subscription we do not have."""

    status_code = 404


class TransientError(TransformoError):
    """Store or provider unavailable. The caller is expected to retry."""

    status_code = 503
