from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.security.authenticator import build_authenticator


class SettingsCORSMiddleware(CORSMiddleware):
    # Built with the middleware stack on first use, after settings are loadable.
    def __init__(self, app: ASGIApp) -> None:
        super().__init__(
            app,
            allow_origins=get_settings().cors_allowed_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(
        settings.log_level,
        json_output=settings.use_json_logs,
        cache_loggers=settings.app_env == "production",
    )
    authenticator = build_authenticator(settings)
    application.state.authenticator = authenticator
    try:
        yield
    finally:
        authenticator.verifier.jwks_cache.close()
        application.state.authenticator = None


def create_app() -> FastAPI:
    application = FastAPI(title="Customization Portal Auth", lifespan=lifespan)
    application.add_middleware(SettingsCORSMiddleware)
    application.include_router(api_router)
    return application


app = create_app()
