"""Structural decoding of compact-serialized JWTs.

Nothing here looks at claim values; a token that parses is merely well formed.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from app.security.errors import FailureKind, TokenVerificationError


def base64url_decode(segment: str) -> bytes:
    """Decode base64url text, tolerating stripped ``=`` padding."""
    remainder = len(segment) % 4
    if remainder:
        segment += "=" * (4 - remainder)
    try:
        return base64.b64decode(segment.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise TokenVerificationError(FailureKind.MALFORMED_TOKEN, "Invalid base64url segment") from exc


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are Python extensions, not JSON.
    raise ValueError(f"Non-standard JSON constant {name}")


def _decode_json_segment(segment: str, label: str) -> dict[str, Any]:
    raw = base64url_decode(segment)
    try:
        decoded = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TokenVerificationError(FailureKind.MALFORMED_TOKEN, f"Invalid JWT {label} encoding") from exc
    if not isinstance(decoded, dict):
        raise TokenVerificationError(FailureKind.MALFORMED_TOKEN, f"JWT {label} is not a JSON object")
    return decoded


@dataclass(frozen=True, slots=True)
class CompactToken:
    header_segment: str
    payload_segment: str
    signature_segment: str
    header: dict[str, Any]
    payload: dict[str, Any]
    signature: bytes

    @property
    def signing_input(self) -> bytes:
        # The received segment text is what was signed, never a re-encoding.
        return f"{self.header_segment}.{self.payload_segment}".encode("ascii")


def parse_token(token: str) -> CompactToken:
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenVerificationError(FailureKind.MALFORMED_TOKEN, "Invalid JWT format")
    if not all(parts):
        raise TokenVerificationError(FailureKind.MALFORMED_TOKEN, "JWT contains an empty segment")

    header_segment, payload_segment, signature_segment = parts
    header = _decode_json_segment(header_segment, "header")
    payload = _decode_json_segment(payload_segment, "payload")
    signature = base64url_decode(signature_segment)

    return CompactToken(
        header_segment=header_segment,
        payload_segment=payload_segment,
        signature_segment=signature_segment,
        header=header,
        payload=payload,
        signature=signature,
    )
