from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    app_env: Literal["development", "test", "production"] = "development"

    okta_domain: str = ""
    okta_issuer: str | None = None
    okta_client_id: str

    jwks_cache_ttl: int = Field(default=3600, ge=0)
    jwks_fetch_timeout_seconds: float = Field(default=5.0, gt=0)
    iat_leeway_seconds: int = Field(default=300, ge=0)

    log_level: str = "info"
    log_json: bool | None = None
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["*"])
    token_debug_enabled: bool = False

    @model_validator(mode="after")
    def _require_issuer_source(self) -> "Settings":
        if not self.okta_issuer and not self.okta_domain:
            raise ValueError("Either OKTA_ISSUER or OKTA_DOMAIN must be configured")
        return self

    @property
    def expected_issuer(self) -> str:
        if self.okta_issuer:
            return self.okta_issuer
        return f"https://{self.okta_domain}/oauth2/default"

    @property
    def jwks_url(self) -> str:
        return f"{self.expected_issuer}/v1/keys"

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.app_env != "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
