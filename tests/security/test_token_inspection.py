from app.core.config import get_settings
from app.security.inspection import describe_token


def test_missing_header_is_reported():
    diagnostics = describe_token({}, get_settings())

    assert diagnostics.authorization_present is False
    assert diagnostics.error == "No Authorization header found"


def test_wrong_scheme_is_reported():
    diagnostics = describe_token({"Authorization": "Token abc"}, get_settings())

    assert diagnostics.authorization_present is True
    assert diagnostics.error == "Invalid Authorization header format"


def test_structurally_broken_token_reports_part_count():
    diagnostics = describe_token({"Authorization": "Bearer a.b"}, get_settings())

    assert diagnostics.token_parts_count == 2
    assert diagnostics.error == "Invalid JWT format"
    assert diagnostics.jwt_payload is None


def test_decoded_token_is_compared_with_configuration(make_unsigned_token, base_claims, wall_clock):
    token = make_unsigned_token({"alg": "RS256", "kid": "key-1"})

    diagnostics = describe_token({"authorization": f"Bearer {token}"}, get_settings(), clock=wall_clock)

    assert diagnostics.error is None
    assert diagnostics.token_parts_count == 3
    assert diagnostics.jwt_header == {"alg": "RS256", "kid": "key-1"}
    assert diagnostics.jwt_payload == base_claims
    checks = diagnostics.validation_checks
    assert checks.has_exp is True
    assert checks.is_expired is False
    assert checks.issuer == "https://dev-example.okta.com/oauth2/default"
    assert checks.cid == "client123"
    assert checks.sub == "00u1abcd"
    assert diagnostics.expected_values.issuer_matches is True
    assert diagnostics.expected_values.client_id_matches is True


def test_mismatches_and_expiry_are_flagged(make_unsigned_token, wall_clock):
    token = make_unsigned_token(
        {"alg": "none"},
        {"iss": "https://evil.example", "aud": "other", "exp": int(wall_clock()) - 5},
    )

    diagnostics = describe_token({"Authorization": f"Bearer {token}"}, get_settings(), clock=wall_clock)

    checks = diagnostics.validation_checks
    assert checks.is_expired is True
    assert checks.has_cid is False
    assert checks.has_sub is False
    assert diagnostics.expected_values.issuer_matches is False
    assert diagnostics.expected_values.client_id_matches is False
