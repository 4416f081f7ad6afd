"""Failure taxonomy for the webhook and checkout routes.

Every rejection carries the HTTP status it maps to and a stable
machine-readable code. Concrete errors live next to the code that raises them.
"""


class WebhookError(Exception):
    """Base for all request rejections."""

    status_code = 500
    code = "webhook_error"


class AuthenticationFailure(WebhookError):
    """Bad, missing or expired signature. Never retried by us."""

    status_code = 401
    code = "authentication_failed"


class ValidationFailure(WebhookError):
    """Malformed body or headers."""

    status_code = 400
    code = "invalid_request"


class ResolutionFailure(WebhookError):
    """Target record not found. Retryable by the sender."""

    status_code = 404
    code = "not_found"


class InternalFailure(WebhookError):
    """Misconfiguration or unavailable dependency."""

    status_code = 500
    code = "internal_error"
