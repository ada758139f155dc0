"""Request bodies for the HTTP API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ValidateRequest(BaseModel):
    content: str = Field(description="Raw import JSON text")


class ImportRequest(BaseModel):
    content: str = Field(description="Raw import JSON text")
    config_id: Optional[str] = None
    source_batch_id: Optional[str] = None

    @field_validator("config_id", "source_batch_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None
