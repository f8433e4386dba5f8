from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from app.security.claims import ClaimValidator
from app.security.der import public_key_from_jwk
from app.security.errors import FailureKind, TokenVerificationError
from app.security.jwks import JWKSCache
from app.security.tokens import CompactToken, parse_token

SUPPORTED_ALGORITHM = "RS256"


@dataclass(slots=True)
class TokenVerifier:
    """Validate RS256 access and ID tokens issued by the configured Okta server.

    Structural and algorithm checks run before any key lookup so that junk
    never costs a network round trip, and the signature is checked before
    any claim so forged tokens never reach claim validation.
    """

    jwks_cache: JWKSCache
    claim_validator: ClaimValidator

    def verify(self, token: str) -> dict[str, Any]:
        parsed = parse_token(token)

        algorithm = parsed.header.get("alg")
        if algorithm != SUPPORTED_ALGORITHM:
            raise TokenVerificationError(
                FailureKind.UNSUPPORTED_ALGORITHM,
                f"Unsupported JWT algorithm {algorithm!r}",
            )

        kid = parsed.header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise TokenVerificationError(FailureKind.MISSING_KEY_ID, "Missing key ID in JWT header")

        jwk = self.jwks_cache.get_key(kid)
        self._verify_signature(parsed, public_key_from_jwk(jwk))

        self.claim_validator.validate(parsed.payload)
        return parsed.payload

    @staticmethod
    def _verify_signature(parsed: CompactToken, public_key: RSAPublicKey) -> None:
        try:
            public_key.verify(
                parsed.signature,
                parsed.signing_input,
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except InvalidSignature as exc:
            raise TokenVerificationError(FailureKind.INVALID_SIGNATURE, "Invalid JWT signature") from exc
