from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    MALFORMED_TOKEN = "MalformedToken"
    UNSUPPORTED_ALGORITHM = "UnsupportedAlgorithm"
    MISSING_KEY_ID = "MissingKeyId"
    UNSUPPORTED_KEY_TYPE = "UnsupportedKeyType"
    MALFORMED_KEY = "MalformedKey"
    KEY_SOURCE_UNAVAILABLE = "KeySourceUnavailable"
    KEY_NOT_FOUND = "KeyNotFound"
    INVALID_SIGNATURE = "InvalidSignature"
    TOKEN_EXPIRED = "TokenExpired"
    TOKEN_NOT_YET_VALID = "TokenNotYetValid"
    INVALID_ISSUER = "InvalidIssuer"
    INVALID_AUDIENCE = "InvalidAudience"

    @property
    def is_dependency_outage(self) -> bool:
        """True when the identity provider, not the caller, is at fault."""
        return self is FailureKind.KEY_SOURCE_UNAVAILABLE


class TokenVerificationError(Exception):
    """Raised by every verification stage; terminal for the current attempt."""

    def __init__(self, kind: FailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"TokenVerificationError({self.kind.value}, {self.message!r})"
