from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog

from app.core.config import Settings
from app.security.claims import ClaimValidator
from app.security.errors import TokenVerificationError
from app.security.jwks import JWKSCache
from app.security.verifier import TokenVerifier

logger = structlog.get_logger(__name__)

UNKNOWN_ORGANIZATION = "Unknown Organization"


@dataclass(frozen=True, slots=True)
class Identity:
    subject: str | None
    email: str | None
    display_name: str | None
    organization_name: str
    organization_id: str | None
    claims: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Identity":
        organization_name = _first_present(claims, "organization", "org")
        return cls(
            subject=_as_text(claims.get("sub")),
            email=_as_text(claims.get("email")),
            display_name=_as_text(_first_present(claims, "name", "email", "sub")),
            # Only an absent claim falls back; an empty string is kept as sent.
            organization_name=UNKNOWN_ORGANIZATION if organization_name is None else _as_text(organization_name),
            organization_id=_as_text(_first_present(claims, "organizationId", "org_id")),
            claims=dict(claims),
        )


def _as_text(value: Any) -> str | None:
    # Custom claims are not guaranteed to be strings, e.g. a numeric organizationId.
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _first_present(claims: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = claims.get(name)
        if value is not None:
            return value
    return None


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    authorization = header_value(headers, "Authorization")
    if not authorization:
        return None
    try:
        scheme, token = authorization.strip().split(None, 1)
    except ValueError:
        return None
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


@dataclass(slots=True)
class RequestAuthenticator:
    verifier: TokenVerifier

    def authenticate(self, headers: Mapping[str, str]) -> Identity | None:
        """Return the caller's identity, or None if the request is not authenticated.

        The reason for a rejection is logged but never returned.
        """
        token = extract_bearer_token(headers)
        if token is None:
            logger.debug("bearer_token_missing")
            return None

        try:
            claims = self.verifier.verify(token)
        except TokenVerificationError as exc:
            if exc.kind.is_dependency_outage:
                logger.error("identity_provider_unavailable", kind=exc.kind.value, error=exc.message)
            else:
                logger.warning("token_verification_failed", kind=exc.kind.value, error=exc.message)
            return None

        identity = Identity.from_claims(claims)
        logger.debug("request_authenticated", subject=identity.subject, organization_id=identity.organization_id)
        return identity


def build_authenticator(settings: Settings, jwks_cache: JWKSCache | None = None) -> RequestAuthenticator:
    if jwks_cache is None:
        jwks_cache = JWKSCache(
            jwks_url=settings.jwks_url,
            ttl_seconds=settings.jwks_cache_ttl,
            timeout_seconds=settings.jwks_fetch_timeout_seconds,
        )
    validator = ClaimValidator(
        expected_issuer=settings.expected_issuer,
        expected_client_id=settings.okta_client_id,
        iat_leeway_seconds=settings.iat_leeway_seconds,
    )
    return RequestAuthenticator(verifier=TokenVerifier(jwks_cache=jwks_cache, claim_validator=validator))
