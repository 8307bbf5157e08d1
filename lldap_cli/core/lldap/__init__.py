"""LLDAP management API client library.

Architecture:
- client.py: GraphQL transport with on-demand authentication and uploads
- session.py: Login, refresh, logout and the inactivity timeout
- tokens.py: Bearer token expiry checks
- rate_limit.py: Backoff for rate-limited (429) operations
- users.py / groups.py / schema.py: Domain services
- attributes.py: Attribute mutation planning
- password.py: Password changes through ``lldap_set_password``
- exceptions.py: Typed exceptions carrying CLI exit codes

Usage:
    from lldap_cli.config import build_config
    from lldap_cli.core.lldap import LldapClient, UserService

    with LldapClient(build_config()) as client:
        users = UserService(client).list_user_ids()
"""
# exceptions first: validators and config import it while this package initializes
from .exceptions import (
    LldapError,
    UsageError,
    ValidationError,
    NotFoundError,
    ServiceUnavailableError,
    FileAccessError,
    RateLimitError,
    ProtocolError,
    GraphQLError,
    AuthError,
    SessionTimeoutError,
    ReauthenticationRequiredError,
    ConfigError,
    LldapAPIError,
    TooManyRequestsError,
)
from .tokens import (
    ACCESS_TOKEN_BUFFER_SECONDS,
    REFRESH_TOKEN_BUFFER_SECONDS,
    decode_claims,
    is_token_expired,
)
from .rate_limit import RateLimitedExecutor, is_rate_limited
from .session import (
    AuthTokens,
    SessionManager,
    REQUEST_TIMEOUT,
    SESSION_TIMEOUT_SECONDS,
)
from .client import LldapClient, validate_upload_path
from .attributes import AttributeChange, plan_attribute_change
from .password import set_password
from .users import UserService
from .groups import GroupService
from .schema import SchemaService

__all__ = [
    # Client
    "LldapClient",
    "SessionManager",
    "AuthTokens",
    "RateLimitedExecutor",
    "REQUEST_TIMEOUT",
    "SESSION_TIMEOUT_SECONDS",
    "ACCESS_TOKEN_BUFFER_SECONDS",
    "REFRESH_TOKEN_BUFFER_SECONDS",
    "decode_claims",
    "is_token_expired",
    "is_rate_limited",
    "validate_upload_path",

    # Exceptions
    "LldapError",
    "UsageError",
    "ValidationError",
    "NotFoundError",
    "ServiceUnavailableError",
    "FileAccessError",
    "RateLimitError",
    "ProtocolError",
    "GraphQLError",
    "AuthError",
    "SessionTimeoutError",
    "ReauthenticationRequiredError",
    "ConfigError",
    "LldapAPIError",
    "TooManyRequestsError",

    # Services
    "UserService",
    "GroupService",
    "SchemaService",
    "AttributeChange",
    "plan_attribute_change",
    "set_password",
]
