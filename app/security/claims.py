from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from app.security.errors import FailureKind, TokenVerificationError

DEFAULT_IAT_LEEWAY_SECONDS = 300


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass(slots=True)
class ClaimValidator:
    """Check expiry, issue time, issuer and client binding, in that order."""

    expected_issuer: str
    expected_client_id: str
    iat_leeway_seconds: int = DEFAULT_IAT_LEEWAY_SECONDS
    clock: Callable[[], float] = time.time

    def validate(self, claims: Mapping[str, Any]) -> None:
        now = self.clock()

        expires_at = _numeric(claims.get("exp"))
        if expires_at is None or expires_at < now:
            raise TokenVerificationError(FailureKind.TOKEN_EXPIRED, "JWT token expired")

        if "iat" in claims:
            issued_at = _numeric(claims["iat"])
            if issued_at is None or issued_at > now + self.iat_leeway_seconds:
                raise TokenVerificationError(FailureKind.TOKEN_NOT_YET_VALID, "JWT issued in the future")

        if claims.get("iss") != self.expected_issuer:
            raise TokenVerificationError(FailureKind.INVALID_ISSUER, "Invalid JWT issuer")

        if not self.client_matches(claims):
            raise TokenVerificationError(FailureKind.INVALID_AUDIENCE, "Invalid JWT audience")

    def client_matches(self, claims: Mapping[str, Any]) -> bool:
        # Access tokens carry the client in ``cid``; ID tokens put it in ``aud``.
        if not self.expected_client_id:
            return False
        for name in ("cid", "aud"):
            value = claims.get(name)
            if isinstance(value, str) and value == self.expected_client_id:
                return True
        return False
