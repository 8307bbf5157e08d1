"""LLDAP-specific exceptions for error handling.

Every exception carries the process exit status the CLI should report, and
its message is scrubbed of credentials at construction time.
"""
from lldap_cli.core.redaction import redact
from lldap_cli.exit_codes import ExitCode


class LldapError(Exception):
    """Base exception for all LLDAP operations."""

    exit_code: int = ExitCode.ERROR

    def __init__(self, message: str, exit_code: int | None = None):
        self.message = redact(str(message))
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self.message)


class UsageError(LldapError):
    """Invalid arguments or an unsupported mutation."""
    exit_code = ExitCode.USAGE


class ValidationError(LldapError, ValueError):
    """Input failed a length, charset or format check."""
    exit_code = ExitCode.DATAERR


class NotFoundError(LldapError):
    """User, group, attribute or value does not exist."""
    exit_code = ExitCode.NOUSER


class ServiceUnavailableError(LldapError):
    """The server could not be reached."""
    exit_code = ExitCode.UNAVAILABLE


class FileAccessError(LldapError):
    """Upload file missing, unreadable or outside the allowed directory."""
    exit_code = ExitCode.IOERR


class RateLimitError(LldapError):
    """Rate limit retries exhausted."""
    exit_code = ExitCode.TEMPFAIL


class ProtocolError(LldapError):
    """Malformed or empty server response."""
    exit_code = ExitCode.PROTOCOL


class GraphQLError(ProtocolError):
    """GraphQL response carried a non-empty ``errors`` list.

    Attributes:
        errors: Individual (redacted) error messages, in server order
    """

    def __init__(self, errors: list[str]):
        self.errors = [redact(str(e)) for e in errors]
        super().__init__(f"GraphQL error: {', '.join(self.errors)}")


class AuthError(LldapError):
    """Missing or rejected credentials."""
    exit_code = ExitCode.NOPERM


class SessionTimeoutError(AuthError):
    """Session idle for longer than the inactivity limit."""


class ReauthenticationRequiredError(AuthError):
    """Server answered 401 to an authenticated request."""


class ConfigError(LldapError):
    """Required configuration is missing or unreadable."""
    exit_code = ExitCode.CONFIG


class LldapAPIError(LldapError):
    """HTTP error from the LLDAP API.

    Attributes:
        status_code: HTTP status code
        message: Formatted error message (redacted)
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.endpoint = endpoint
        exit_code = ExitCode.UNAVAILABLE if status_code >= 500 else ExitCode.ERROR
        super().__init__(f"[{status_code}] {endpoint}: {message}", exit_code)


class TooManyRequestsError(LldapAPIError):
    """Server answered 429; consumed by the rate-limited executor."""

    def __init__(self, endpoint: str, message: str = "Rate limit exceeded"):
        super().__init__(429, message, endpoint)
