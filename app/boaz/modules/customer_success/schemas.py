"""Customer success API schemas."""

from pydantic import BaseModel, Field


class SurveyResponseCreate(BaseModel):
    account_id: int
    score: int = Field(..., ge=0, le=10)
    comment: str | None = Field(default=None, max_length=4000)
