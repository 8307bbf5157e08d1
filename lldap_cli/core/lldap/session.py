"""Authentication lifecycle against the LLDAP auth endpoints.

Handles login, token refresh, logout, expiry detection and the application
level inactivity timeout.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import requests

from lldap_cli.core import validators
from lldap_cli.core.audit import AuditTrail
from lldap_cli.core.redaction import redact
from .exceptions import (
    AuthError,
    ProtocolError,
    ServiceUnavailableError,
    SessionTimeoutError,
    TooManyRequestsError,
)
from .tokens import ACCESS_TOKEN_BUFFER_SECONDS, REFRESH_TOKEN_BUFFER_SECONDS, is_token_expired

if TYPE_CHECKING:
    from lldap_cli.config.settings import ClientConfig

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
SESSION_TIMEOUT_SECONDS = 30 * 60


@dataclass(frozen=True)
class AuthTokens:
    token: str
    refresh_token: str


def send_request(method: str, url: str, **kwargs) -> requests.Response:
    """Issue an HTTP request, mapping connection failures to ServiceUnavailableError."""
    try:
        return getattr(requests, method.lower())(url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as e:
        raise ServiceUnavailableError(f"Unable to reach {url}: {e}") from e


def _json_body(resp: requests.Response, url: str) -> dict:
    try:
        body = resp.json()
    except ValueError as e:
        raise ProtocolError(f"Invalid JSON response from {url}") from e
    if not isinstance(body, dict):
        raise ProtocolError(f"Unexpected response shape from {url}")
    return body


class SessionManager:
    """Owns the token pair and activity clock for one client.

    States: no session, access token held, refresh token only, and timed out
    (which clears both tokens at once). Nothing here is shared between
    instances.

    Args:
        config: Resolved client configuration
        audit: Audit trail for login and timeout events
        clock: Monotonic seconds source for the inactivity timeout
    """

    def __init__(self, config: ClientConfig, audit: Optional[AuditTrail] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.audit = audit or AuditTrail(signing_key=config.audit_signing_key)
        self._clock = clock
        self.access_token: Optional[str] = config.token
        self.refresh_token: Optional[str] = config.refresh_token
        self.last_activity = clock()
        self.acquired_via_login = False

    def _debug(self, message: str) -> None:
        if self.config.debug:
            logger.debug(redact(message))

    def _refresh_cookie(self) -> dict[str, str]:
        return {"Cookie": f"refresh_token={self.refresh_token}"}

    def login(self, username: Optional[str] = None, password: Optional[str] = None) -> AuthTokens:
        """Exchange username/password for a token pair.

        Args:
            username: Overrides the configured username
            password: Overrides the configured password

        Returns:
            The new token pair

        Raises:
            AuthError: If credentials are missing or rejected
            TooManyRequestsError: If the server answers 429
        """
        user = username or self.config.username
        secret = password or self.config.password
        if not user or not secret:
            raise AuthError("Username and password are required for login")

        validators.validate_username(user, audit=self.audit)

        url = self.config.url_for("login")
        self._debug(f"Attempting login for user: {user}")
        self.audit.record("info", "login_attempt", username=user)

        resp = send_request("POST", url, json={"username": user, "password": secret})

        if resp.status_code == 429:
            self.audit.record("warn", "login_rate_limited", username=user)
            raise TooManyRequestsError(url)

        if not resp.ok:
            self.audit.record("security", "login_failed", username=user, status=resp.status_code)
            raise AuthError(f"Login failed: {resp.text}")

        body = _json_body(resp, url)
        if not body.get("token"):
            raise ProtocolError("Login response did not include a token")

        self.access_token = body["token"]
        self.refresh_token = body.get("refreshToken")
        self.last_activity = self._clock()

        self.audit.record("info", "login_success", username=user)
        self._debug("Login successful")
        return AuthTokens(token=self.access_token, refresh_token=self.refresh_token or "")

    def refresh(self) -> str:
        """Obtain a new access token using the refresh token cookie.

        The refresh token itself is kept: the server does not rotate it on a
        plain refresh.

        Returns:
            The new access token

        Raises:
            AuthError: If no refresh token is held or the server rejects it
        """
        if not self.refresh_token:
            raise AuthError("Refresh token is required")

        url = self.config.url_for("refresh")
        resp = send_request("GET", url, headers=self._refresh_cookie())
        if not resp.ok:
            raise AuthError(f"Token refresh failed: {resp.text}")

        body = _json_body(resp, url)
        if not body.get("token"):
            raise ProtocolError("Refresh response did not include a token")

        self.access_token = body["token"]
        self._debug("Access token refreshed")
        return self.access_token

    def logout(self) -> None:
        """Invalidate the refresh token server-side (best effort).

        Raises:
            AuthError: If no refresh token is held
        """
        if not self.refresh_token:
            raise AuthError("Refresh token is required for logout")

        resp = send_request("GET", self.config.url_for("logout"), headers=self._refresh_cookie())
        self._debug(f"Logout returned status {resp.status_code}")

    def check_session_timeout(self) -> None:
        """Clear tokens and fail if the session sat idle too long.

        Raises:
            SessionTimeoutError: After more than 30 minutes of inactivity
        """
        now = self._clock()
        elapsed = now - self.last_activity
        if elapsed > SESSION_TIMEOUT_SECONDS:
            self.access_token = None
            self.refresh_token = None
            self.audit.record("security", "session_timeout", elapsed_ms=int(elapsed * 1000))
            raise SessionTimeoutError("Session timed out due to inactivity. Please re-authenticate.")
        self.last_activity = now

    def ensure_authenticated(self) -> None:
        """Make sure a usable access token is held before an API call.

        Order: inactivity timeout, current access token, refresh, login.
        Logging in here marks the session as self-acquired so ``cleanup``
        logs out afterwards.
        """
        self.check_session_timeout()

        if self.access_token and not is_token_expired(self.access_token, ACCESS_TOKEN_BUFFER_SECONDS):
            self._debug("Using existing valid token")
            return

        if self.refresh_token:
            if is_token_expired(self.refresh_token, REFRESH_TOKEN_BUFFER_SECONDS):
                self.audit.record("warn", "refresh_token_expiring")
                logger.warning(
                    "Refresh token is expired or about to expire. Re-authentication may be required."
                )
            self._debug("Refreshing token")
            self.refresh()
            return

        self._debug("No valid token, initiating login")
        self.login()
        self.acquired_via_login = True

    def cleanup(self) -> None:
        """Log out if this session performed its own login; otherwise no-op."""
        if not self.acquired_via_login or not self.refresh_token:
            return
        self.acquired_via_login = False
        self.logout()
