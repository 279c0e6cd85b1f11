"""Tests for the webhook authentication dispatcher."""

import base64

import pytest
from pydantic import SecretStr

from hcm_webhooks.webhooks.auth import (
    OAUTH_UNVERIFIED_REASON,
    UNKNOWN_METHOD_REASON,
    authenticate,
    validate_basic,
    validate_bearer,
    validate_oauth,
)
from hcm_webhooks.webhooks.types import (
    AuthBasic,
    AuthBearer,
    AuthNone,
    AuthOAuth,
    UnrecognizedAuth,
)


def basic_header(username: str, password: str) -> dict[str, str]:
    encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


BASIC = AuthBasic(username="hcm", password=SecretStr("s3cret"))
BEARER = AuthBearer(token=SecretStr("abc123"))
OAUTH = AuthOAuth(
    oauth_url="https://auth.example.com/token",
    client_id="client",
    client_secret=SecretStr("secret"),
)


def single_character_mutations(value: str) -> list[str]:
    """Every value one edit away: each position changed, one appended, one dropped."""
    changed = [
        value[:index] + ("x" if char != "x" else "y") + value[index + 1 :]
        for index, char in enumerate(value)
    ]
    dropped = [value[:index] + value[index + 1 :] for index in range(len(value))]
    return changed + dropped + [value + "x"]


class TestBasicAuthentication:
    """Tests for Basic credential validation."""

    def test_matching_credentials_are_valid(self):
        result = validate_basic(basic_header("hcm", "s3cret"), BASIC)
        assert result.valid is True
        assert result.verified is True

    def test_wrong_password_is_invalid(self):
        result = validate_basic(basic_header("hcm", "nope"), BASIC)
        assert result.valid is False
        assert result.reason == "invalid basic credentials"

    def test_wrong_username_is_invalid(self):
        assert validate_basic(basic_header("other", "s3cret"), BASIC).valid is False

    @pytest.mark.parametrize("username", single_character_mutations("hcm"))
    def test_any_username_mutation_is_invalid(self, username):
        assert validate_basic(basic_header(username, "s3cret"), BASIC).valid is False

    @pytest.mark.parametrize("password", single_character_mutations("s3cret"))
    def test_any_password_mutation_is_invalid(self, password):
        assert validate_basic(basic_header("hcm", password), BASIC).valid is False

    def test_password_may_contain_colon(self):
        auth = AuthBasic(username="hcm", password=SecretStr("a:b:c"))
        assert validate_basic(basic_header("hcm", "a:b:c"), auth).valid is True

    def test_missing_header_is_invalid(self):
        result = validate_basic({}, BASIC)
        assert result.valid is False
        assert result.reason == "missing basic credentials"

    def test_bearer_scheme_is_not_basic(self):
        assert validate_basic({"Authorization": "Bearer abc123"}, BASIC).valid is False

    def test_malformed_base64_is_invalid(self):
        result = validate_basic({"Authorization": "Basic !!!not-base64"}, BASIC)
        assert result.valid is False
        assert result.reason == "malformed basic credentials"

    def test_missing_separator_is_invalid(self):
        encoded = base64.b64encode(b"hcms3cret").decode()
        result = validate_basic({"Authorization": f"Basic {encoded}"}, BASIC)
        assert result.valid is False
        assert result.reason == "malformed basic credentials"

    def test_scheme_and_header_name_are_case_insensitive(self):
        encoded = base64.b64encode(b"hcm:s3cret").decode()
        assert validate_basic({"AUTHORIZATION": f"basic {encoded}"}, BASIC).valid is True


class TestBearerAuthentication:
    """Tests for static bearer token validation."""

    def test_matching_token_is_valid(self):
        assert validate_bearer({"Authorization": "Bearer abc123"}, BEARER).valid is True

    def test_wrong_token_is_invalid(self):
        result = validate_bearer({"Authorization": "Bearer wrong"}, BEARER)
        assert result.valid is False
        assert result.reason == "invalid bearer token"

    def test_missing_token_is_invalid(self):
        assert validate_bearer({}, BEARER).valid is False

    def test_empty_credential_is_invalid(self):
        assert validate_bearer({"Authorization": "Bearer "}, BEARER).valid is False

    def test_lowercase_header_key(self):
        assert validate_bearer({"authorization": "bearer abc123"}, BEARER).valid is True

    def test_credential_whitespace_is_significant(self):
        assert validate_bearer({"Authorization": "Bearer abc123 "}, BEARER).valid is False
        assert validate_bearer({"Authorization": "Bearer abc123\t"}, BEARER).valid is False

    def test_extra_separator_spaces_are_ignored(self):
        assert validate_bearer({"Authorization": "Bearer   abc123"}, BEARER).valid is True


class TestOAuthAuthentication:
    """Tests for the minimal OAuth token check."""

    def test_long_enough_token_is_valid_but_unverified(self):
        result = validate_oauth({"Authorization": "Bearer abcdefghijk"}, OAUTH)
        assert result.valid is True
        assert result.verified is False
        assert result.reason == OAUTH_UNVERIFIED_REASON

    def test_short_token_is_invalid(self):
        result = validate_oauth({"Authorization": "Bearer abcdefghij"}, OAUTH)
        assert result.valid is False
        assert result.reason == "oauth access token too short"

    def test_missing_token_is_invalid(self):
        assert validate_oauth({}, OAUTH).valid is False

    def test_minimum_length_is_configurable(self):
        result = validate_oauth({"Authorization": "Bearer abcd"}, OAUTH, min_token_length=4)
        assert result.valid is True


class TestAuthenticateDispatch:
    """Tests for selecting the validator by authentication variant."""

    def test_none_accepts_without_header(self):
        result = authenticate({}, AuthNone())
        assert result.valid is True
        assert result.verified is True

    @pytest.mark.parametrize(
        "headers",
        [
            {"Authorization": "Bearer wrong"},
            {"Authorization": "Basic !!!"},
            {"Authorization": "Digest username=x"},
            {"Authorization": ""},
        ],
    )
    def test_none_ignores_supplied_credentials(self, headers):
        result = authenticate(headers, AuthNone())
        assert result.valid is True
        assert result.verified is True

    def test_dispatches_basic(self):
        assert authenticate(basic_header("hcm", "s3cret"), BASIC).valid is True
        assert authenticate({"Authorization": "Bearer abc123"}, BASIC).valid is False

    def test_dispatches_bearer(self):
        assert authenticate({"Authorization": "Bearer abc123"}, BEARER).valid is True

    def test_dispatches_oauth_with_configured_length(self):
        headers = {"Authorization": "Bearer short"}
        assert authenticate(headers, OAUTH).valid is False
        assert authenticate(headers, OAUTH, oauth_min_token_length=5).valid is True

    def test_unrecognized_method_never_authenticates(self):
        result = authenticate({"Authorization": "Bearer abc123"}, UnrecognizedAuth(method="hmac"))
        assert result.valid is False
        assert result.reason == UNKNOWN_METHOD_REASON
