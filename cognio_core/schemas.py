"""Shared domain records exchanged between agents and integrations."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not EMAIL_PATTERN.match(value):
        raise ValueError(f"Invalid email address: {value}")
    return value


def _check_recipients(value: Union[str, List[str], None]) -> Union[str, List[str], None]:
    if value is None:
        return value
    if isinstance(value, str):
        return _check_email(value)
    return [_check_email(item) for item in value]


class CRMProviderType(str, Enum):
    SALESFORCE = "salesforce"
    HUBSPOT = "hubspot"
    PIPEDRIVE = "pipedrive"
    CUSTOM = "custom"


class EmailProviderType(str, Enum):
    SENDGRID = "sendgrid"
    SES = "ses"
    SMTP = "smtp"
    CUSTOM = "custom"


class SMSProviderType(str, Enum):
    TWILIO = "twilio"
    VONAGE = "vonage"
    CUSTOM = "custom"


class LLMProviderType(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROQ = "groq"
    CUSTOM = "custom"


class ProviderConfig(BaseModel):
    """Connection settings of an external provider."""

    provider: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class Lead(BaseModel):
    """A sales lead."""

    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    industry: Optional[str] = None
    source: Optional[str] = None
    score: Optional[float] = Field(default=None, ge=0, le=100, description="Qualification score")
    status: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _check_email(v)


class Contact(BaseModel):
    """A person known to the business."""

    id: Optional[str] = None
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _check_email(v)


class EmailAttachment(BaseModel):
    filename: str
    content: Union[bytes, str]
    content_type: Optional[str] = None


class EmailMessage(BaseModel):
    """An outgoing email."""

    model_config = ConfigDict(populate_by_name=True)

    to: Union[str, List[str]]
    cc: Optional[Union[str, List[str]]] = None
    bcc: Optional[Union[str, List[str]]] = None
    subject: str = Field(min_length=1)
    text: Optional[str] = None
    html: Optional[str] = None
    attachments: List[EmailAttachment] = Field(default_factory=list)
    reply_to: Optional[str] = None
    sender: Optional[str] = Field(default=None, alias="from")

    @field_validator("to", "cc", "bcc")
    @classmethod
    def validate_recipients(cls, v):
        """Validate every recipient address."""
        return _check_recipients(v)

    @field_validator("reply_to", "sender")
    @classmethod
    def validate_sender(cls, v):
        """Validate optional single addresses."""
        return _check_email(v) if v is not None else v


class SMSMessage(BaseModel):
    """An outgoing text message."""

    model_config = ConfigDict(populate_by_name=True)

    to: str
    body: str = Field(min_length=1)
    sender: Optional[str] = Field(default=None, alias="from")
    media_urls: List[str] = Field(default_factory=list)

    @field_validator("media_urls")
    @classmethod
    def validate_media_urls(cls, v):
        """Only http(s) media links can be delivered."""
        for url in v:
            if not URL_PATTERN.match(url):
                raise ValueError(f"Invalid media URL: {url}")
        return v
