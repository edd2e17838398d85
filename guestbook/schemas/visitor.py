"""Pydantic schemas for visitor registration and listing."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RegisterRequest(BaseModel):
    """Body of POST /register.

    The nick is trimmed and must not be empty afterwards. Blank optional
    fields are stored as null.
    """

    nick: str = Field(..., description="Nickname, unique across all visitors (case-sensitive).")
    group: str | None = Field(default=None, description="Optional group the visitor belongs to.")
    email: str | None = Field(default=None, description="Optional contact address, admin-only.")
    extra: str | None = Field(default=None, description="Optional free-form note, admin-only.")

    @field_validator("nick")
    @classmethod
    def _strip_nick(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("nick must not be empty")
        return value

    @field_validator("group", "email", "extra")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class PublicVisitor(BaseModel):
    """Public view of a visitor. Contact data, address and timestamp stay hidden."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    nick: str
    group: str | None = None


class AdminVisitor(BaseModel):
    """Full visitor row, served to the admin only."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime = Field(..., description="UTC registration time.")
    ip: str = Field(..., description="Client address at registration time.")
    nick: str
    group: str | None = None
    email: str | None = None
    extra: str | None = None
