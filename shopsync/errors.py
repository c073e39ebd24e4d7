"""Error taxonomy shared by the sync engine and its adapters.

Remote-side failures (transport, GraphQL, user errors, missing payloads) are
terminal for the operation that raised them. Local failures are raised before
any remote call is attempted.
"""


class SyncError(Exception):
    """Base class for every error the sync engine raises on purpose."""

    http_status = 500

    def __init__(self, message, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self):
        payload = {"success": False, "message": self.message}
        if self.detail:
            payload["error"] = self.detail
        return payload


class TransportError(SyncError):
    """Network failure or non-2xx response from the remote platform."""

    http_status = 502

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message, detail=body)
        self.status_code = status_code
        self.body = body


class GraphQLError(SyncError):
    """Top-level ``errors`` array present in a GraphQL response."""

    http_status = 502

    def __init__(self, messages):
        self.messages = list(messages)
        joined = ", ".join(self.messages)
        super().__init__(f"GraphQL Error: {joined}", detail=joined)


class RemoteValidationError(SyncError):
    """``userErrors`` / ``mediaUserErrors`` returned by a mutation."""

    http_status = 502

    def __init__(self, user_errors):
        self.user_errors = list(user_errors)
        joined = ", ".join(_format_user_error(e) for e in self.user_errors)
        super().__init__(f"Shopify API Error: {joined}", detail=joined)


class RemoteProtocolError(SyncError):
    """Remote response is missing the payload the caller expects."""

    http_status = 502


class LocalPreconditionError(SyncError):
    """Caller contract violated, e.g. parent product not synced yet."""

    http_status = 409


class LocalValidationError(SyncError):
    """Field constraint violations on incoming data."""

    http_status = 422

    def __init__(self, field_errors, message="Validation failed"):
        super().__init__(message)
        self.field_errors = dict(field_errors)

    def to_dict(self):
        payload = super().to_dict()
        payload["errors"] = self.field_errors
        return payload


def _format_user_error(error):
    field = error.get("field")
    message = error.get("message", "Unknown error")
    if isinstance(field, (list, tuple)):
        field = ".".join(str(part) for part in field)
    return f"{field}: {message}" if field else message
