"""Turn the cookies of an authenticated Whoop web session into a Credential.

The access token is a JWT.  Its signature is not verified here: the token
is only forwarded to the API that issued it, and we just need two claims
from the payload (``custom:user_id`` and ``exp``).
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

import jwt as pyjwt

from src.heartrate.base import MAX_EPOCH_MS, Credential
from src.heartrate.errors import CredentialNotFound, MalformedCredential

ACCESS_TOKEN_COOKIE = "whoop-auth-token"
REFRESH_TOKEN_COOKIE = "whoop-auth-refresh-token"
USER_ID_CLAIM = "custom:user_id"

_DECODE_OPTIONS = {
    "verify_signature": False,
    "verify_exp": False,
    "verify_aud": False,
}


def _cookie_values(cookies: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    values: dict[str, str] = {}
    for cookie in cookies:
        name = cookie.get("name")
        if name and name not in values:
            values[name] = str(cookie.get("value", ""))
    return values


def decode_token_claims(token: str) -> dict[str, Any]:
    """Decode the JWT payload without verifying the signature.

    Raises:
        MalformedCredential: Not three segments, bad base64 or non-JSON payload.
    """
    if token.count(".") != 2:
        raise MalformedCredential("Access token is not a three-part JWT")
    try:
        claims = pyjwt.decode(token, options=_DECODE_OPTIONS)
    except pyjwt.InvalidTokenError as exc:
        raise MalformedCredential(f"Access token could not be decoded: {exc}") from exc
    if not isinstance(claims, dict):
        raise MalformedCredential("Access token payload is not a JSON object")
    return claims


def extract_credential(cookies: Iterable[Mapping[str, Any]]) -> Credential:
    """Build a Credential from the cookies of a logged-in browser context.

    Args:
        cookies: Cookie dicts with at least ``name`` and ``value`` keys, as
                 returned by ``BrowserContext.cookies()``.

    Returns:
        Credential with ``expires_at`` in epoch milliseconds.

    Raises:
        CredentialNotFound:  The access-token cookie is missing.
        MalformedCredential: The token or its claims cannot be decoded.
    """
    values = _cookie_values(cookies)

    access_token = values.get(ACCESS_TOKEN_COOKIE)
    if not access_token:
        raise CredentialNotFound(f"{ACCESS_TOKEN_COOKIE} cookie not found after login")

    claims = decode_token_claims(access_token)

    raw_user_id = claims.get(USER_ID_CLAIM)
    raw_exp = claims.get("exp")
    if raw_user_id is None or raw_exp is None:
        raise MalformedCredential(
            f"Access token is missing required claims ({USER_ID_CLAIM!r}, 'exp')"
        )

    if isinstance(raw_user_id, bool) or not isinstance(raw_user_id, (str, int)):
        raise MalformedCredential(f"Invalid {USER_ID_CLAIM} claim: {raw_user_id!r}")
    try:
        user_id = int(raw_user_id)
    except ValueError as exc:
        raise MalformedCredential(f"Invalid {USER_ID_CLAIM} claim: {raw_user_id!r}") from exc

    if isinstance(raw_exp, bool) or not isinstance(raw_exp, (int, float)):
        raise MalformedCredential(f"Invalid exp claim: {raw_exp!r}")
    if isinstance(raw_exp, float) and not math.isfinite(raw_exp):
        raise MalformedCredential(f"exp claim is not finite: {raw_exp!r}")
    if not 0 <= raw_exp * 1000 <= MAX_EPOCH_MS:
        raise MalformedCredential(f"exp claim out of range: {raw_exp!r}")

    return Credential(
        user_id=user_id,
        access_token=access_token,
        refresh_token=values.get(REFRESH_TOKEN_COOKIE, ""),
        expires_at=int(raw_exp * 1000),
    )
