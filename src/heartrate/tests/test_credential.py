"""Tests for credential extraction from login cookies."""

from __future__ import annotations

import base64

import pytest

from src.heartrate.auth.credential import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    decode_token_claims,
    extract_credential,
)
from src.heartrate.base import Credential
from src.heartrate.errors import CredentialNotFound, LoginFailed, MalformedCredential
from src.heartrate.tests.conftest import TEST_NOW_MS, TEST_USER_ID


def _cookies(access: str | None, refresh: str | None = None) -> list[dict]:
    cookies = [{"name": "_ga", "value": "GA1.2.3", "domain": ".whoop.com"}]
    if access is not None:
        cookies.append({"name": ACCESS_TOKEN_COOKIE, "value": access, "domain": "app.whoop.com"})
    if refresh is not None:
        cookies.append({"name": REFRESH_TOKEN_COOKIE, "value": refresh, "domain": "app.whoop.com"})
    return cookies


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestExtractCredential:
    def test_extracts_user_id_and_expiry_in_ms(self, make_token) -> None:
        token = make_token(user_id="123456", exp=TEST_NOW_MS // 1000 + 3600)
        credential = extract_credential(_cookies(token, "refresh-abc"))

        assert isinstance(credential, Credential)
        assert credential.user_id == TEST_USER_ID
        assert credential.access_token == token
        assert credential.refresh_token == "refresh-abc"
        assert credential.expires_at == TEST_NOW_MS + 3_600_000

    def test_integer_user_id_claim_accepted(self, make_token) -> None:
        credential = extract_credential(_cookies(make_token(user_id=42)))
        assert credential.user_id == 42

    def test_fractional_exp_converted_to_ms(self, make_token) -> None:
        credential = extract_credential(_cookies(make_token(exp=1700000000.5)))
        assert credential.expires_at == 1700000000500

    def test_missing_refresh_cookie_gives_empty_string(self, make_token) -> None:
        credential = extract_credential(_cookies(make_token()))
        assert credential.refresh_token == ""

    def test_same_cookies_same_credential(self, make_token) -> None:
        cookies = _cookies(make_token(), "r")
        assert extract_credential(cookies) == extract_credential(list(cookies))

    def test_expired_token_still_extracted(self, make_token) -> None:
        """Expiry is the session cache's concern, not the extractor's."""
        credential = extract_credential(_cookies(make_token(exp=1000)))
        assert credential.expires_at == 1_000_000


class TestExtractCredentialFailures:
    def test_missing_access_cookie_raises_credential_not_found(self) -> None:
        with pytest.raises(CredentialNotFound):
            extract_credential(_cookies(None, "refresh-abc"))

    def test_credential_not_found_is_login_failed(self) -> None:
        with pytest.raises(LoginFailed):
            extract_credential([])

    def test_empty_access_cookie_treated_as_missing(self) -> None:
        with pytest.raises(CredentialNotFound):
            extract_credential(_cookies(""))

    def test_two_segment_token_is_malformed(self) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies("header.payload"))

    def test_four_segment_token_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token() + ".extra"))

    def test_non_json_payload_is_malformed(self) -> None:
        header = _b64(b'{"alg":"HS256","typ":"JWT"}')
        token = f"{header}.{_b64(b'not json at all')}.{_b64(b'sig')}"
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(token))

    def test_missing_user_id_claim_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(user_id=None)))

    def test_missing_exp_claim_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(exp=None)))

    def test_non_numeric_user_id_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(user_id="not-a-number")))

    def test_non_numeric_exp_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(exp="tomorrow")))

    def test_boolean_user_id_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(user_id=True)))

    def test_fractional_user_id_is_malformed(self, make_token) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(user_id=1.9)))

    @pytest.mark.parametrize("exp_literal", ["Infinity", "-Infinity", "NaN", "1e400"])
    def test_non_finite_exp_is_malformed(self, exp_literal: str) -> None:
        header = _b64(b'{"alg":"HS256","typ":"JWT"}')
        payload = _b64(f'{{"custom:user_id":{TEST_USER_ID},"exp":{exp_literal}}}'.encode())
        token = f"{header}.{payload}.{_b64(b'sig')}"
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(token))

    @pytest.mark.parametrize("exp", [10**20, -1])
    def test_out_of_range_exp_is_malformed(self, make_token, exp: int) -> None:
        with pytest.raises(MalformedCredential):
            extract_credential(_cookies(make_token(exp=exp)))

    def test_malformed_is_not_login_failed(self) -> None:
        with pytest.raises(MalformedCredential) as exc_info:
            extract_credential(_cookies("a.b"))
        assert not isinstance(exc_info.value, LoginFailed)


class TestDecodeTokenClaims:
    def test_returns_payload_without_verifying_signature(self, make_token) -> None:
        token = make_token()
        tampered = token.rsplit(".", 1)[0] + "." + _b64(b"wrong-signature")
        claims = decode_token_claims(tampered)
        assert claims["custom:user_id"] == TEST_USER_ID
