from typing import Any

from pydantic import BaseModel, Field


class IdentityResponse(BaseModel):
    subject: str | None
    email: str | None
    display_name: str | None
    organization_name: str
    organization_id: str | None
    claims: dict[str, Any] = Field(default_factory=dict)


class ClaimChecks(BaseModel):
    has_exp: bool
    is_expired: bool | None
    expires_at: str | None
    current_time: str
    has_iss: bool
    issuer: str | None
    has_cid: bool
    cid: str | None
    has_aud: bool
    aud: Any = None
    has_sub: bool
    sub: str | None


class ExpectedValues(BaseModel):
    issuer: str
    client_id: str
    issuer_matches: bool
    client_id_matches: bool


class TokenDiagnostics(BaseModel):
    authorization_present: bool
    token_length: int | None = None
    token_parts_count: int | None = None
    error: str | None = None
    hint: str | None = None
    jwt_header: dict[str, Any] | None = None
    jwt_payload: dict[str, Any] | None = None
    validation_checks: ClaimChecks | None = None
    expected_values: ExpectedValues | None = None
