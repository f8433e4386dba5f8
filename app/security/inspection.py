"""Unverified token diagnostics for troubleshooting client integrations.

Decodes what the caller sent and compares it with configuration.  Nothing
here checks a signature, so the output must never be used to grant access.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from app.core.config import Settings
from app.schemas.auth import ClaimChecks, ExpectedValues, TokenDiagnostics
from app.security.authenticator import extract_bearer_token, header_value
from app.security.claims import ClaimValidator
from app.security.errors import TokenVerificationError
from app.security.tokens import parse_token


def _format_epoch(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def describe_token(
    headers: Mapping[str, str],
    settings: Settings,
    clock: Callable[[], float] = time.time,
) -> TokenDiagnostics:
    authorization = header_value(headers, "Authorization")
    if not authorization:
        return TokenDiagnostics(
            authorization_present=False,
            error="No Authorization header found",
            hint="Send: Authorization: Bearer <token>",
        )

    token = extract_bearer_token(headers)
    if token is None:
        return TokenDiagnostics(
            authorization_present=True,
            error="Invalid Authorization header format",
            hint="Should be: Bearer <token>",
        )

    diagnostics = TokenDiagnostics(
        authorization_present=True,
        token_length=len(token),
        token_parts_count=len(token.split(".")),
    )
    try:
        parsed = parse_token(token)
    except TokenVerificationError as exc:
        diagnostics.error = exc.message
        return diagnostics

    now = clock()
    payload = parsed.payload
    expires_at = payload.get("exp")
    is_number = isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool)

    diagnostics.jwt_header = parsed.header
    diagnostics.jwt_payload = payload
    diagnostics.validation_checks = ClaimChecks(
        has_exp="exp" in payload,
        is_expired=(expires_at < now) if is_number else None,
        expires_at=_format_epoch(expires_at),
        current_time=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        has_iss="iss" in payload,
        issuer=_optional_str(payload.get("iss")),
        has_cid="cid" in payload,
        cid=_optional_str(payload.get("cid")),
        has_aud="aud" in payload,
        aud=payload.get("aud"),
        has_sub="sub" in payload,
        sub=_optional_str(payload.get("sub")),
    )

    validator = ClaimValidator(
        expected_issuer=settings.expected_issuer,
        expected_client_id=settings.okta_client_id,
    )
    diagnostics.expected_values = ExpectedValues(
        issuer=settings.expected_issuer,
        client_id=settings.okta_client_id,
        issuer_matches=payload.get("iss") == settings.expected_issuer,
        client_id_matches=validator.client_matches(payload),
    )
    return diagnostics
