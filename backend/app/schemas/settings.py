"""Pydantic models for application configuration settings."""

from pydantic import BaseModel, ConfigDict, Field


class SettingsRead(BaseModel):
    site_name: str
    default_retake_cooldown_hours: int
    default_questions_per_attempt: int
    attempt_window_minutes: int

    model_config = ConfigDict(from_attributes=True)


class SettingsUpdate(BaseModel):
    site_name: str | None = None
    default_retake_cooldown_hours: int | None = Field(default=None, ge=0)
    default_questions_per_attempt: int | None = Field(default=None, ge=1)
    attempt_window_minutes: int | None = Field(default=None, ge=1)
