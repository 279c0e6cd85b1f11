"""Authentication strategy dispatch for inbound webhooks.

Each configured method has its own validation function, selected by a
pattern match over the configuration's authentication variant. Validation
is pure: it reads the request headers and the configuration and never
raises for malformed input, which simply yields an invalid result.

OAuth tokens are only checked for presence and minimum length; the result
is marked ``verified=False`` so callers and operators can tell it apart
from a credential that was actually matched.
"""

import base64
import binascii
import hmac
from collections.abc import Mapping

from hcm_webhooks.webhooks.types import (
    AuthBasic,
    AuthBearer,
    AuthNone,
    AuthOAuth,
    AuthResult,
    AuthSettings,
)

DEFAULT_OAUTH_MIN_TOKEN_LENGTH = 11
UNKNOWN_METHOD_REASON = "unknown authentication method"
OAUTH_UNVERIFIED_REASON = "oauth token not independently verified"


def _authorization_header(headers: Mapping[str, str]) -> str | None:
    for key, value in headers.items():
        if key.lower() == "authorization":
            return value
    return None


def _credential(headers: Mapping[str, str], scheme: str) -> str | None:
    """Return the credential part of ``Authorization: <scheme> <credential>``.

    Only the spaces separating scheme and credential are dropped; the
    credential itself is returned byte for byte.
    """
    header = _authorization_header(headers)
    if not header:
        return None
    name, _, credential = header.lstrip().partition(" ")
    if name.lower() != scheme:
        return None
    return credential.lstrip(" ") or None


def _same(supplied: str, expected: str) -> bool:
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def validate_basic(headers: Mapping[str, str], auth: AuthBasic) -> AuthResult:
    """Decode a Basic credential and compare username and password."""
    encoded = _credential(headers, "basic")
    if encoded is None:
        return AuthResult.failure("missing basic credentials")

    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return AuthResult.failure("malformed basic credentials")

    username, separator, password = decoded.partition(":")
    if not separator:
        return AuthResult.failure("malformed basic credentials")

    # Evaluate both comparisons so timing does not reveal which part differed
    username_ok = _same(username, auth.username)
    password_ok = _same(password, auth.password.get_secret_value())
    if username_ok and password_ok:
        return AuthResult.success()
    return AuthResult.failure("invalid basic credentials")


def validate_bearer(headers: Mapping[str, str], auth: AuthBearer) -> AuthResult:
    """Compare a Bearer token with the configured token."""
    token = _credential(headers, "bearer")
    if token is None:
        return AuthResult.failure("missing bearer token")
    if _same(token, auth.token.get_secret_value()):
        return AuthResult.success()
    return AuthResult.failure("invalid bearer token")


def validate_oauth(
    headers: Mapping[str, str],
    auth: AuthOAuth,
    min_token_length: int = DEFAULT_OAUTH_MIN_TOKEN_LENGTH,
) -> AuthResult:
    """Accept a Bearer access token of plausible length without verifying it."""
    token = _credential(headers, "bearer")
    if token is None:
        return AuthResult.failure("missing oauth access token")
    if len(token) < min_token_length:
        return AuthResult.failure("oauth access token too short")
    return AuthResult.success(verified=False, reason=OAUTH_UNVERIFIED_REASON)


def authenticate(
    headers: Mapping[str, str],
    auth: AuthSettings,
    *,
    oauth_min_token_length: int = DEFAULT_OAUTH_MIN_TOKEN_LENGTH,
) -> AuthResult:
    """Validate request headers against a configuration's authentication variant.

    Args:
        headers: Inbound request headers (any key case)
        auth: The configuration's authentication settings
        oauth_min_token_length: Minimum accepted OAuth token length

    Returns:
        AuthResult; never raises for malformed credentials
    """
    match auth:
        case AuthNone():
            return AuthResult.success()
        case AuthBasic():
            return validate_basic(headers, auth)
        case AuthBearer():
            return validate_bearer(headers, auth)
        case AuthOAuth():
            return validate_oauth(headers, auth, oauth_min_token_length)
        case _:
            return AuthResult.failure(UNKNOWN_METHOD_REASON)
