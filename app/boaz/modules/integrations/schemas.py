"""Integration (webhook / API key) API schemas."""

from pydantic import BaseModel, Field, field_validator

from app.boaz.utils import normalize_str_list


def _http_url(v: str) -> str:
    v = v.strip()
    if not v.lower().startswith(("http://", "https://")):
        raise ValueError("url must be http(s)")
    return v


class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)
    secret: str | None = Field(default=None, max_length=255)
    events: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        return _http_url(v)

    @field_validator("events")
    @classmethod
    def _events(cls, v: list[str]) -> list[str]:
        return normalize_str_list(v, max_items=50, max_len=128)


class WebhookUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    url: str | None = Field(default=None, min_length=1, max_length=2048)
    secret: str | None = Field(default=None, max_length=255)
    events: list[str] | None = None
    is_active: bool | None = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: str | None) -> str | None:
        return _http_url(v) if v is not None else v

    @field_validator("events")
    @classmethod
    def _events(cls, v: list[str] | None) -> list[str] | None:
        return normalize_str_list(v, max_items=50, max_len=128) if v is not None else v


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    scopes: list[str] = Field(default_factory=list)

    @field_validator("scopes")
    @classmethod
    def _scopes(cls, v: list[str]) -> list[str]:
        return normalize_str_list(v, max_items=50, max_len=128)
