"""Pydantic schemas for outgoing Gmail messages."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """HTML email addressed to a single recipient."""

    to: str
    subject: str
    body_html: str
    body_text: str | None = None
    from_email: str | None = None
    cc: list[str] = Field(default_factory=list)


class SentEmailResult(BaseModel):
    """Result from sending an email via Gmail API."""

    message_id: str
    thread_id: str
    label_ids: list[str] = Field(default_factory=list)
