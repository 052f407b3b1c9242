# Pydantic schemas

from pydantic import BaseModel, Field, field_validator
from urllib.parse import urlparse


class EmailCreate(BaseModel):
    """Schema for registering a tracked email"""

    subject: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    user_email: str = Field(..., alias="userEmail", min_length=1, max_length=320)

    @field_validator('subject', 'recipient', 'user_email')
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Field cannot be empty or whitespace')
        return v.strip()


class LinkCreate(BaseModel):
    """Schema for registering a tracked link"""

    email_id: str = Field(..., alias="emailId", min_length=1, max_length=32)
    original_url: str = Field(..., alias="originalUrl", min_length=1)

    @field_validator('email_id')
    @classmethod
    def validate_email_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Field cannot be empty or whitespace')
        return v.strip()

    @field_validator('original_url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError('originalUrl must be an absolute http(s) URL')
        return v


class EmailCreateResponse(BaseModel):
    emailId: str
    trackingPixel: str


class LinkCreateResponse(BaseModel):
    linkId: str
    trackedUrl: str
