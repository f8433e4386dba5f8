"""Turn RSA JWK parameters into public keys and X.509 SubjectPublicKeyInfo encodings.

The modulus and exponent published in a JWK are big-endian unsigned
integers.  DER INTEGERs are two's complement, so a leading byte with its
high bit set needs a ``0x00`` prefix to stay positive.  The resulting
structure is::

    SubjectPublicKeyInfo ::= SEQUENCE {
        algorithm        SEQUENCE { OID rsaEncryption, NULL },
        subjectPublicKey BIT STRING { RSAPublicKey }
    }

    RSAPublicKey ::= SEQUENCE { modulus INTEGER, publicExponent INTEGER }
"""

from __future__ import annotations

import base64
import textwrap

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey, RSAPublicNumbers
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from app.security.errors import FailureKind, TokenVerificationError
from app.security.jwks import JWKEntry
from app.security.tokens import base64url_decode

TAG_INTEGER = 0x02
TAG_BIT_STRING = 0x03
TAG_NULL = 0x05
TAG_OID = 0x06
TAG_SEQUENCE = 0x30

# 1.2.840.113549.1.1.1
RSA_ENCRYPTION_OID = bytes([0x2A, 0x86, 0x48, 0x86, 0xF7, 0x0D, 0x01, 0x01, 0x01])

PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"


def encode_length(length: int) -> bytes:
    if length < 0:
        raise ValueError("DER length cannot be negative")
    if length <= 0x7F:
        return bytes([length])
    body = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def encode_tlv(tag: int, value: bytes) -> bytes:
    return bytes([tag]) + encode_length(len(value)) + value


def encode_integer(magnitude: bytes) -> bytes:
    """Encode big-endian unsigned bytes as a non-negative DER INTEGER."""
    stripped = magnitude.lstrip(b"\x00") or b"\x00"
    if stripped[0] & 0x80:
        stripped = b"\x00" + stripped
    return encode_tlv(TAG_INTEGER, stripped)


def rsa_public_key_der(modulus: bytes, exponent: bytes) -> bytes:
    return encode_tlv(TAG_SEQUENCE, encode_integer(modulus) + encode_integer(exponent))


def subject_public_key_info(rsa_public_key: bytes) -> bytes:
    algorithm = encode_tlv(TAG_SEQUENCE, encode_tlv(TAG_OID, RSA_ENCRYPTION_OID) + encode_tlv(TAG_NULL, b""))
    # Leading byte of a BIT STRING counts unused trailing bits.
    bit_string = encode_tlv(TAG_BIT_STRING, b"\x00" + rsa_public_key)
    return encode_tlv(TAG_SEQUENCE, algorithm + bit_string)


def der_to_pem(der: bytes) -> str:
    body = "\n".join(textwrap.wrap(base64.b64encode(der).decode("ascii"), 64))
    return f"{PEM_HEADER}\n{body}\n{PEM_FOOTER}\n"


def _rsa_components(entry: JWKEntry) -> tuple[bytes, bytes]:
    if entry.kty != "RSA":
        raise TokenVerificationError(
            FailureKind.UNSUPPORTED_KEY_TYPE,
            f"Unsupported key type {entry.kty!r} for key id {entry.kid}",
        )
    if not entry.n or not entry.e:
        raise TokenVerificationError(FailureKind.MALFORMED_KEY, f"Invalid JWK format for key id {entry.kid}")

    try:
        return base64url_decode(entry.n), base64url_decode(entry.e)
    except TokenVerificationError as exc:
        raise TokenVerificationError(
            FailureKind.MALFORMED_KEY, f"Invalid JWK encoding for key id {entry.kid}"
        ) from exc


def public_key_from_jwk(entry: JWKEntry) -> RSAPublicKey:
    """Import an RSA JWK directly through cryptography's public numbers.

    This is the path used to verify signatures. The DER builder below encodes
    the same key by hand and is kept for its byte-level tests.
    """
    modulus, exponent = _rsa_components(entry)
    numbers = RSAPublicNumbers(e=int.from_bytes(exponent, "big"), n=int.from_bytes(modulus, "big"))
    try:
        return numbers.public_key()
    except ValueError as exc:
        raise TokenVerificationError(FailureKind.MALFORMED_KEY, f"Invalid RSA key for key id {entry.kid}") from exc


def public_key_der_from_jwk(entry: JWKEntry) -> bytes:
    modulus, exponent = _rsa_components(entry)
    return subject_public_key_info(rsa_public_key_der(modulus, exponent))


def public_key_pem_from_jwk(entry: JWKEntry) -> str:
    return der_to_pem(public_key_der_from_jwk(entry))


def load_public_key(pem: str) -> RSAPublicKey:
    try:
        key = load_pem_public_key(pem.encode("ascii"))
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise TokenVerificationError(FailureKind.MALFORMED_KEY, "Public key could not be loaded") from exc
    if not isinstance(key, RSAPublicKey):
        raise TokenVerificationError(FailureKind.UNSUPPORTED_KEY_TYPE, "Public key is not an RSA key")
    return key
