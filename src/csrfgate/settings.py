from typing import Optional
from urllib.parse import urlsplit

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    # === General ===
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    # === CSRF ===
    protect_by_default: bool = Field(default=False, validation_alias="CSRF_PROTECT_BY_DEFAULT")
    trusted_origin: Optional[str] = Field(default=None, validation_alias="CSRF_TRUSTED_ORIGIN")
    match_host_header: bool = Field(default=False, validation_alias="CSRF_MATCH_HOST_HEADER")
    # comma separated, e.g. "X-Requested-With,X-Client"
    required_headers: str = Field(default="", validation_alias="CSRF_REQUIRED_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("trusted_origin", mode="before")
    @classmethod
    def check_trusted_origin(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        v = str(v).strip().rstrip("/")
        try:
            url = urlsplit(v)
            url.port
        except ValueError as exc:
            raise ValueError(f"CSRF_TRUSTED_ORIGIN is not a valid origin: {exc}") from exc
        if not url.scheme or not url.hostname:
            raise ValueError("CSRF_TRUSTED_ORIGIN must look like scheme://host[:port]")
        if url.path or url.query or url.fragment:
            raise ValueError("CSRF_TRUSTED_ORIGIN must not carry a path, query or fragment")
        return v

    @property
    def trusted_origin_parts(self) -> tuple[str, str, Optional[int]]:
        url = urlsplit(self.trusted_origin or "")
        return url.scheme, url.hostname or "", url.port

    @property
    def required_header_names(self) -> list[str]:
        return [h.strip() for h in self.required_headers.split(",") if h.strip()]


def get_settings() -> Settings:
    return Settings()
