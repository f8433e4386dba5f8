"""In-memory cache of the identity provider's published signing keys."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

import httpx
import structlog

from app.security.errors import FailureKind, TokenVerificationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class JWKEntry:
    kid: str
    kty: str | None
    n: str | None = None
    e: str | None = None
    use: str | None = None
    alg: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JWKEntry":
        return cls(
            kid=data["kid"],
            kty=data.get("kty"),
            n=data.get("n"),
            e=data.get("e"),
            use=data.get("use"),
            alg=data.get("alg"),
        )


@dataclass(frozen=True, slots=True)
class JWKSCacheEntry:
    """One complete fetch of the key set. Replaced on refresh, never mutated."""

    keys: Mapping[str, JWKEntry]
    fetched_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl_seconds

    def find(self, kid: str) -> JWKEntry | None:
        return self.keys.get(kid)


def parse_key_set(document: Any) -> dict[str, JWKEntry]:
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise TokenVerificationError(FailureKind.KEY_SOURCE_UNAVAILABLE, "Invalid JWKS response")

    keys: dict[str, JWKEntry] = {}
    for raw in document["keys"]:
        if not isinstance(raw, dict) or not isinstance(raw.get("kid"), str):
            logger.warning("jwks_entry_skipped", reason="missing kid")
            continue
        kid = raw["kid"]
        if kid in keys:
            logger.warning("jwks_entry_skipped", reason="duplicate kid", kid=kid)
            continue
        keys[kid] = JWKEntry.from_dict(raw)
    return keys


@dataclass
class JWKSCache:
    jwks_url: str
    ttl_seconds: float = 3600
    timeout_seconds: float = 5.0
    request_func: Callable[..., httpx.Response] | None = None
    clock: Callable[[], float] = time.monotonic

    _entry: JWKSCacheEntry | None = field(default=None, init=False, repr=False)
    _refresh_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _client: httpx.Client | None = field(default=None, init=False, repr=False)
    _send: Callable[..., httpx.Response] = field(init=False, repr=False)
    _attempts: int = field(default=0, init=False, repr=False)
    _last_error: TokenVerificationError | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.request_func is not None:
            self._send = self.request_func
        else:
            self._client = httpx.Client(timeout=self.timeout_seconds)
            self._send = self._client.request

    @property
    def snapshot(self) -> JWKSCacheEntry | None:
        return self._entry

    def get_key(self, kid: str) -> JWKEntry:
        attempt = self._attempts
        entry = self._entry
        if entry is None or not entry.is_fresh(self.clock()):
            entry = self._refresh_from(attempt)

        key = entry.find(kid)
        if key is None:
            logger.debug("jwks_key_not_found", kid=kid, key_count=len(entry.keys))
            raise TokenVerificationError(FailureKind.KEY_NOT_FOUND, f"Public key not found for key ID: {kid}")
        return key

    def refresh(self) -> JWKSCacheEntry:
        return self._refresh_from(self._attempts, force=True)

    def clear(self) -> None:
        with self._refresh_lock:
            self._entry = None
            self._last_error = None

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def _refresh_from(self, attempt: int, *, force: bool = False) -> JWKSCacheEntry:
        """Fetch a new key set unless another caller already tried while we waited.

        ``attempt`` is the attempt counter the caller saw before deciding to
        refresh. If it moved, the outcome of that attempt is shared: the new
        snapshot on success, the same failure kind otherwise.
        """
        with self._refresh_lock:
            if not force and self._attempts != attempt:
                last_error = self._last_error
                if last_error is not None:
                    raise TokenVerificationError(last_error.kind, last_error.message) from last_error
                if self._entry is not None:
                    return self._entry

            self._attempts += 1
            try:
                keys = self._fetch()
            except TokenVerificationError as exc:
                self._last_error = exc
                raise
            entry = JWKSCacheEntry(
                keys=MappingProxyType(keys),
                fetched_at=self.clock(),
                ttl_seconds=self.ttl_seconds,
            )
            self._entry = entry
            self._last_error = None

        logger.info("jwks_refreshed", url=self.jwks_url, key_count=len(keys))
        return entry

    def _fetch(self) -> dict[str, JWKEntry]:
        try:
            response = self._send("GET", self.jwks_url, timeout=self.timeout_seconds)
        except httpx.HTTPError as exc:
            logger.error("jwks_fetch_failed", url=self.jwks_url, error=str(exc))
            raise TokenVerificationError(FailureKind.KEY_SOURCE_UNAVAILABLE, "Failed to fetch JWKS") from exc

        if not response.is_success:
            logger.error("jwks_fetch_failed", url=self.jwks_url, status_code=response.status_code)
            raise TokenVerificationError(
                FailureKind.KEY_SOURCE_UNAVAILABLE,
                f"JWKS endpoint returned {response.status_code}",
            )

        try:
            document = response.json()
        except ValueError as exc:
            logger.error("jwks_fetch_failed", url=self.jwks_url, error="invalid json")
            raise TokenVerificationError(FailureKind.KEY_SOURCE_UNAVAILABLE, "Invalid JWKS response") from exc

        try:
            return parse_key_set(document)
        except TokenVerificationError:
            logger.error("jwks_fetch_failed", url=self.jwks_url, error="missing keys")
            raise
