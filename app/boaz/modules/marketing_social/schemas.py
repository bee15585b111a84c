"""Social marketing API schemas."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from app.boaz.utils import UtcDateTime, normalize_str_list

Platform = Literal["facebook", "twitter", "linkedin", "instagram"]
AccountStatus = Literal["active", "disconnected", "expired", "error"]
PostStatus = Literal["draft", "scheduled"]


class SocialAccountCreate(BaseModel):
    platform: Platform
    account_name: str = Field(..., min_length=1, max_length=255)
    account_id: str = Field(..., min_length=1, max_length=128)
    username: str | None = Field(default=None, max_length=255)
    access_token: str | None = None
    status: AccountStatus = "active"


class SocialAccountUpdate(BaseModel):
    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    username: str | None = Field(default=None, max_length=255)
    access_token: str | None = None
    status: AccountStatus | None = None


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    platforms: list[Platform] = Field(default_factory=list)
    account_ids: list[int] = Field(default_factory=list, max_length=50)
    images: list[str] = Field(default_factory=list, max_length=20)
    link: str | None = Field(default=None, max_length=2048)
    hashtags: list[str] = Field(default_factory=list)
    status: PostStatus = "draft"
    scheduled_for: UtcDateTime | None = None

    @field_validator("hashtags")
    @classmethod
    def _hashtags(cls, v: list[str]) -> list[str]:
        return normalize_str_list([h.lstrip("#") for h in v], max_items=30, max_len=80)


class PostUpdate(BaseModel):
    content: str | None = Field(default=None, min_length=1, max_length=5000)
    platforms: list[Platform] | None = None
    account_ids: list[int] | None = Field(default=None, max_length=50)
    images: list[str] | None = Field(default=None, max_length=20)
    link: str | None = Field(default=None, max_length=2048)
    hashtags: list[str] | None = None
    status: PostStatus | None = None
    scheduled_for: UtcDateTime | None = None

    @field_validator("hashtags")
    @classmethod
    def _hashtags(cls, v: list[str] | None) -> list[str] | None:
        return normalize_str_list([h.lstrip("#") for h in v], max_items=30, max_len=80) if v is not None else v


class PlatformMetrics(BaseModel):
    likes: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    reach: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)


class PostMetricsUpdate(BaseModel):
    metrics: dict[Platform, PlatformMetrics]
