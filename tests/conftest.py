import base64
import json
import time
from collections.abc import Iterator
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwt

from app.core.config import get_settings
from app.main import app
from app.security.claims import ClaimValidator
from app.security.jwks import JWKSCache
from app.security.verifier import TokenVerifier

ISSUER = "https://dev-example.okta.com/oauth2/default"
CLIENT_ID = "client123"
JWKS_URL = f"{ISSUER}/v1/keys"
WALL_CLOCK_START = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("OKTA_DOMAIN", "dev-example.okta.com")
    monkeypatch.setenv("OKTA_CLIENT_ID", CLIENT_ID)
    monkeypatch.delenv("OKTA_ISSUER", raising=False)
    monkeypatch.setenv("JWKS_CACHE_TTL", "3600")
    monkeypatch.setenv("LOG_JSON", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_json(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeJWKSEndpoint:
    """Stands in for ``httpx.Client.request`` against the Okta keys endpoint."""

    def __init__(self, keys: list[dict[str, Any]]) -> None:
        self.keys = keys
        self.calls: list[str] = []
        self.status_code = 200
        self.body: Any = None
        self.error: Exception | None = None
        self.delay = 0.0

    def __call__(self, method: str, url: str, *, timeout: float | None = None) -> httpx.Response:
        self.calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        request = httpx.Request(method, url)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body, request=request)
        return httpx.Response(self.status_code, json={"keys": self.keys}, request=request)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def make_jwk() -> Callable[..., dict[str, Any]]:
    def _builder(private_key: rsa.RSAPrivateKey, kid: str = "key-1") -> dict[str, Any]:
        numbers = private_key.public_key().public_numbers()
        return {
            "kty": "RSA",
            "alg": "RS256",
            "use": "sig",
            "kid": kid,
            "n": b64url_uint(numbers.n),
            "e": b64url_uint(numbers.e),
        }

    return _builder


@pytest.fixture()
def jwks_endpoint(rsa_key, make_jwk) -> FakeJWKSEndpoint:
    return FakeJWKSEndpoint([make_jwk(rsa_key, "key-1")])


@pytest.fixture()
def wall_clock() -> FakeClock:
    return FakeClock(WALL_CLOCK_START)


@pytest.fixture()
def base_claims(wall_clock: FakeClock) -> dict[str, Any]:
    now = int(wall_clock())
    return {
        "sub": "00u1abcd",
        "iss": ISSUER,
        "cid": CLIENT_ID,
        "aud": "api://default",
        "iat": now,
        "exp": now + 600,
        "email": "designer@example.com",
        "name": "Dana Designer",
        "organization": "Acme Corp",
        "organizationId": "org-42",
    }


@pytest.fixture()
def make_token(rsa_key, base_claims) -> Callable[..., str]:
    pem = rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")

    def _builder(
        claims: dict[str, Any] | None = None,
        *,
        kid: str | None = "key-1",
        key_pem: str | None = None,
        drop: tuple[str, ...] = (),
        **overrides: Any,
    ) -> str:
        payload = dict(base_claims if claims is None else claims)
        payload.update(overrides)
        for name in drop:
            payload.pop(name, None)
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key_pem or pem, algorithm="RS256", headers=headers)

    return _builder


@pytest.fixture()
def private_pem() -> Callable[[rsa.RSAPrivateKey], str]:
    def _pem(private_key: rsa.RSAPrivateKey) -> str:
        return private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")

    return _pem


@pytest.fixture()
def monotonic_clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture()
def make_unsigned_token(base_claims) -> Callable[..., str]:
    def _builder(header: dict[str, Any], claims: dict[str, Any] | None = None, signature: str = "c2lnbmF0dXJl") -> str:
        payload = base_claims if claims is None else claims
        return f"{b64url_json(header)}.{b64url_json(payload)}.{signature}"

    return _builder


@pytest.fixture()
def jwks_cache(jwks_endpoint: FakeJWKSEndpoint, monotonic_clock: FakeClock) -> JWKSCache:
    return JWKSCache(
        jwks_url=JWKS_URL,
        ttl_seconds=3600,
        request_func=jwks_endpoint,
        clock=monotonic_clock,
    )


@pytest.fixture()
def claim_validator(wall_clock: FakeClock) -> ClaimValidator:
    return ClaimValidator(expected_issuer=ISSUER, expected_client_id=CLIENT_ID, clock=wall_clock)


@pytest.fixture()
def verifier(jwks_cache: JWKSCache, claim_validator: ClaimValidator) -> TokenVerifier:
    return TokenVerifier(jwks_cache=jwks_cache, claim_validator=claim_validator)
