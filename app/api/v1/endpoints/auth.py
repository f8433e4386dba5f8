from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.dependencies.auth import get_current_identity
from app.core.config import Settings, get_settings
from app.schemas.auth import IdentityResponse, TokenDiagnostics
from app.security.authenticator import Identity
from app.security.inspection import describe_token

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.get("/session", response_model=IdentityResponse)
def read_session(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    return IdentityResponse(
        subject=identity.subject,
        email=identity.email,
        display_name=identity.display_name,
        organization_name=identity.organization_name,
        organization_id=identity.organization_id,
        claims=dict(identity.claims),
    )


@router.get("/token-debug", response_model=TokenDiagnostics)
def debug_token(request: Request, settings: Settings = Depends(get_settings)) -> TokenDiagnostics:
    if not settings.token_debug_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return describe_token(request.headers, settings)
