"""
LokSeva - Request / Response Schemas
=====================================
Pydantic models for the HTTP surface.  Field aliases keep the camelCase
names the mobile client already sends (``profilePic``, ``conversationId``,
``imageBase64`` …) while the Python side stays snake_case.

Required-field checks are done in the route handlers so that a missing
field produces a 400 with a field-specific message rather than FastAPI's
generic 422.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _assume_utc(v: datetime | None) -> datetime | None:
    """MongoDB hands back naive datetimes that are in UTC."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


def _number_as_text(v: object) -> object:
    """Phone numbers sometimes arrive as JSON numbers; keep them as text."""
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


# ── Profile ────────────────────────────────────────────────────────────

class ProfileIn(_CamelModel):
    email: str | None = None
    name: str | None = None
    profile_pic: str | None = Field(default=None, alias="profilePic")
    phone: str | None = None
    age: int | None = None
    address: str | None = None
    medical_history: str | None = Field(default=None, alias="medicalHistory")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    _phone_as_text = field_validator("phone", mode="before")(_number_as_text)

    def changes(self) -> dict[str, str | int]:
        """Non-empty fields keyed by their stored (camelCase) names, email excluded."""
        data = self.model_dump(by_alias=True, exclude={"email"})
        return {key: value for key, value in data.items() if value not in (None, "")}


class Profile(_CamelModel):
    email: str
    name: str | None = None
    profile_pic: str | None = Field(default=None, alias="profilePic")
    phone: str | None = None
    age: int | None = None
    address: str | None = None
    medical_history: str | None = Field(default=None, alias="medicalHistory")

    _phone_as_text = field_validator("phone", mode="before")(_number_as_text)


class ProfileSaved(BaseModel):
    message: str
    user: Profile


# ── Agencies ───────────────────────────────────────────────────────────

class Location(BaseModel):
    city: str | None = None
    area: str | None = None


class Agency(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str
    location: Location = Field(default_factory=Location)
    services: list[str] = Field(default_factory=list)
    rating: float | None = None
    contact: str | None = None
    policy: str | None = None


# ── Chat ───────────────────────────────────────────────────────────────

class ChatIn(_CamelModel):
    user_email: str | None = None
    message: str | None = None
    conversation_id: str | None = Field(default=None, alias="conversationId")


class Recommendation(BaseModel):
    name: str
    rating: float | None = None
    location: str | None = None
    reason: str | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def _unrated(cls, v: object) -> object:
        # The model writes "N/A" and similar for agencies without a rating.
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return None
        return v


class ChatReply(BaseModel):
    """Structured answer the model is asked to produce."""

    reply: str
    recommendations: list[Recommendation] = Field(default_factory=list)


class ChatOut(_CamelModel):
    reply: str
    recommendations: list[Recommendation]
    conversation_id: str = Field(alias="conversationId")
    title: str


class ConversationSummary(_CamelModel):
    conversation_id: str = Field(alias="conversationId")
    title: str
    date: str
    last_message: str = Field(alias="lastMessage")


class HistoryPage(_CamelModel):
    history: list[ConversationSummary]
    has_more: bool = Field(alias="hasMore")


class StoredMessage(BaseModel):
    sender: str
    text: str
    timestamp: datetime | None = None

    _utc_timestamp = field_validator("timestamp")(_assume_utc)


class Conversation(_CamelModel):
    id: str = Field(alias="_id")
    user_email: str
    title: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    messages: list[StoredMessage] = Field(default_factory=list)

    _utc_created_at = field_validator("created_at")(_assume_utc)


# ── Audit ──────────────────────────────────────────────────────────────

class AuditIn(_CamelModel):
    user_email: str | None = None
    room_type: str | None = Field(default=None, alias="roomType")
    image_base64: str | None = Field(default=None, alias="imageBase64")


class AuditOut(BaseModel):
    audit_report: str


# ── Seeding ────────────────────────────────────────────────────────────

class MessageOut(BaseModel):
    message: str
