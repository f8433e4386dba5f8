from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from app.security.authenticator import Identity, RequestAuthenticator


def unauthorized(message: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": message, "code": "UNAUTHORIZED"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_authenticator(request: Request) -> RequestAuthenticator:
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise RuntimeError("Authenticator is not initialised; is the application lifespan running?")
    return authenticator


def get_current_identity(
    request: Request,
    authenticator: RequestAuthenticator = Depends(get_authenticator),
) -> Identity:
    identity = authenticator.authenticate(request.headers)
    if identity is None:
        raise unauthorized("Authentication required")
    return identity
