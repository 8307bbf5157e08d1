"""HTTP/GraphQL client for the LLDAP management API.

Handles authentication, rate-limit backoff, file uploads and error mapping.
"""
from __future__ import annotations
import base64
import copy
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from lldap_cli.core import validators
from lldap_cli.core.audit import AuditTrail
from lldap_cli.core.redaction import redact
from .exceptions import (
    FileAccessError,
    GraphQLError,
    LldapAPIError,
    LldapError,
    ProtocolError,
    ReauthenticationRequiredError,
    TooManyRequestsError,
    UsageError,
)
from .rate_limit import RateLimitedExecutor
from .session import AuthTokens, SessionManager, _json_body, send_request

if TYPE_CHECKING:
    from lldap_cli.config.settings import ClientConfig

logger = logging.getLogger(__name__)


class LldapClient:
    """Authenticated GraphQL transport for LLDAP.

    Features:
    - Login/refresh on demand, with a 30 minute inactivity timeout
    - End-to-end retry of rate-limited (429) operations
    - Base64 file uploads spliced into the query variables
    - Credentials redacted from every error message

    Usage:
        with LldapClient(build_config()) as client:
            data = client.query("{users{id}}")
    """

    def __init__(self, config: ClientConfig, session: Optional[SessionManager] = None,
                 executor: Optional[RateLimitedExecutor] = None):
        """Initialize LLDAP client.

        Args:
            config: Resolved client configuration
            session: Session manager (one is built from config if omitted)
            executor: Rate-limited executor (default: 3 attempts, 1s base delay)
        """
        self.config = config
        self.audit = session.audit if session else AuditTrail(signing_key=config.audit_signing_key)
        self.session = session or SessionManager(config, audit=self.audit)
        self.executor = executor or RateLimitedExecutor()

    def __enter__(self) -> "LldapClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.cleanup()
        except (LldapError, OSError) as e:
            logger.warning("Logout during cleanup failed: %s", redact(str(e)))

    # ─────────────────────────────────────────────────────────────────────
    # Session
    # ─────────────────────────────────────────────────────────────────────
    def login(self, username: Optional[str] = None, password: Optional[str] = None) -> AuthTokens:
        """Log in, retrying the whole exchange while rate limited."""
        return self.executor.execute(lambda: self.session.login(username, password))

    def refresh(self) -> str:
        return self.session.refresh()

    def logout(self) -> None:
        self.session.logout()

    def ensure_authenticated(self) -> None:
        """Authenticate outside a query, under the same 429 backoff as one."""
        self.executor.execute(self.session.ensure_authenticated)

    def cleanup(self) -> None:
        self.session.cleanup()

    def get_token(self) -> Optional[str]:
        return self.session.access_token

    def get_refresh_token(self) -> Optional[str]:
        return self.session.refresh_token

    # ─────────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────────
    def validate_username(self, username: str) -> str:
        return validators.validate_username(username, audit=self.audit)

    def validate_email(self, email: str) -> str:
        return validators.validate_email(email, audit=self.audit)

    def validate_string_input(self, value: str, field_name: str) -> str:
        return validators.validate_generic_string(value, field_name, audit=self.audit)

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────
    def query(self, document: str, variables: Optional[Dict[str, Any]] = None,
              upload_file: Optional[str] = None) -> Dict[str, Any]:
        """Execute a GraphQL document and return its ``data``.

        Args:
            document: GraphQL query or mutation
            variables: Variables mapping
            upload_file: Path of a file whose base64 content replaces the
                first empty-string value in ``variables``

        Returns:
            The ``data`` member of the response envelope

        Raises:
            ReauthenticationRequiredError: On HTTP 401
            RateLimitError: If still rate limited after all retries
            LldapAPIError: On any other HTTP error
            GraphQLError: If the response lists errors
            ProtocolError: If the response is not a usable envelope
            FileAccessError: If the upload file is missing or not allowed
        """
        return self.executor.execute(lambda: self._execute_query(document, variables, upload_file))

    def _execute_query(self, document: str, variables: Optional[Dict[str, Any]],
                       upload_file: Optional[str]) -> Dict[str, Any]:
        self.session.ensure_authenticated()

        payload_vars: Dict[str, Any] = copy.deepcopy(dict(variables or {}))
        if upload_file:
            encoded = base64.b64encode(self._read_upload(upload_file)).decode("ascii")
            if not _splice_upload(payload_vars, encoded):
                raise UsageError("Upload requested but the query variables have no empty-string slot for it")

        url = self.config.url_for("graphql")
        resp = send_request(
            "POST",
            url,
            json={"query": document, "variables": payload_vars},
            headers={"Authorization": f"Bearer {self.session.access_token}"},
        )

        if resp.status_code == 401:
            raise ReauthenticationRequiredError(
                "Authentication failed. Token may be expired. Try logging in again."
            )
        if resp.status_code == 429:
            raise TooManyRequestsError(url)
        if not resp.ok:
            raise LldapAPIError(resp.status_code, f"GraphQL request failed: {resp.text}", url)

        envelope = _json_body(resp, url)
        errors = envelope.get("errors") or []
        if errors:
            raise GraphQLError([
                e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors
            ])

        data = envelope.get("data")
        if data is None:
            raise ProtocolError("No data returned from GraphQL query")
        return data

    def _read_upload(self, file_path: str) -> bytes:
        """Validate an upload path and read the file fully into memory."""
        path = validate_upload_path(file_path, self.config.upload_dir)
        if not path.is_file():
            raise FileAccessError(f"File not found: {file_path}")
        try:
            with path.open("rb") as f:
                return f.read()
        except OSError as e:
            raise FileAccessError(f"Cannot read {file_path}: {e.strerror}") from e


def validate_upload_path(file_path: str, allowed_dir: Optional[str] = None) -> Path:
    """Normalize an upload path, rejecting traversal and escapes.

    Args:
        file_path: User supplied path
        allowed_dir: If set, the resolved path must lie inside it

    Returns:
        Resolved absolute path

    Raises:
        FileAccessError: On a ``..`` segment or a path outside allowed_dir
    """
    normalized = os.path.normpath(file_path)
    if ".." in Path(normalized).parts:
        raise FileAccessError("Invalid file path: path traversal detected")

    resolved = Path(normalized).resolve()
    if allowed_dir and not resolved.is_relative_to(Path(allowed_dir).resolve()):
        raise FileAccessError(f"Invalid file path: must be within {allowed_dir}")
    return resolved


def _splice_upload(container: Any, content: str) -> bool:
    """Replace the first empty-string value (depth-first) with ``content``."""
    if isinstance(container, dict):
        items = container.items()
    elif isinstance(container, list):
        items = enumerate(container)
    else:
        return False

    for key, value in items:
        if value == "":
            container[key] = content
            return True
        if isinstance(value, (dict, list)) and _splice_upload(value, content):
            return True
    return False

