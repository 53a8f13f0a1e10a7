"""Pydantic schemas for contact API."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional


def honeypot_text(value: Any) -> str:
    """
    Normalize a raw honeypot value to text.

    Anything a bot might put there counts as filled in, not only strings:
    `1` or `true` become non-empty text, while null, false, 0 and "" stay empty.
    """
    if isinstance(value, str):
        return value
    if value is None or value is False or value == 0:
        return ""
    return str(value)


class ContactSubmission(BaseModel):
    """
    Schema for a contact form submission.

    Fields are optional on the wire; absent or null values are normalized to
    empty strings so the intake pipeline can report them as missing. The
    honeypot is sent as `website` by the form.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(default="", description="Sender name")
    email: Optional[str] = Field(default="", description="Sender email address")
    message: Optional[str] = Field(default="", description="Message body")
    honeypot: Optional[str] = Field(
        default="",
        alias="website",
        description="Hidden field; must be left blank by real users",
    )

    @field_validator("name", "email", "message", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        """Treat null the same as an absent field."""
        return "" if v is None else v

    @field_validator("honeypot", mode="before")
    @classmethod
    def honeypot_as_text(cls, v):
        return honeypot_text(v)

    @classmethod
    def from_payload(cls, payload: Any) -> "ContactSubmission":
        """
        Build a submission from a decoded JSON body.

        A filled honeypot short-circuits parsing of the other fields, so bots
        are rejected as spam whatever else they sent. Raises ValidationError
        for non-object bodies and non-string name/email/message.
        """
        if isinstance(payload, dict):
            honeypot = honeypot_text(payload.get("website"))
            if honeypot:
                return cls(honeypot=honeypot)
        return cls.model_validate(payload)


class ContactResponse(BaseModel):
    """Schema for a successful contact submission."""
    success: bool
