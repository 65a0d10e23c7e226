# newsletter_api/domain.py
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict

MAX_NAME_LENGTH = 256
FORBIDDEN_NAME_CHARACTERS = set('/()"<>\\{}')
SUBSCRIPTION_TOKEN_LENGTH = 25


class SubscriptionStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


class SubscriberName(str):
    @classmethod
    def parse(cls, value: Optional[str]) -> "SubscriberName":
        """Validate a subscriber name, raising ValueError when it is unusable"""
        if value is None or not value.strip():
            raise ValueError("Subscriber name must not be empty.")

        value = value.strip()
        if len(value) > MAX_NAME_LENGTH:
            raise ValueError(
                f"Subscriber name must be at most {MAX_NAME_LENGTH} characters long."
            )
        if any(c in FORBIDDEN_NAME_CHARACTERS for c in value):
            raise ValueError(f"{value} is not a valid subscriber name.")

        return cls(value)


class SubscriberEmail(str):
    @classmethod
    def parse(cls, value: Optional[str]) -> "SubscriberEmail":
        if value is None or not value.strip():
            raise ValueError("Subscriber email must not be empty.")

        value = value.strip()
        try:
            validated = validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError(f"{value} is not a valid subscriber email.")

        # case-insensitive uniqueness: Nick@x.com and nick@x.com are one subscriber
        return cls(validated.normalized.lower())


class NewSubscriber(BaseModel):
    email: str
    name: str

    @classmethod
    def parse(cls, email: Optional[str], name: Optional[str]) -> "NewSubscriber":
        return cls(
            email=SubscriberEmail.parse(email),
            name=SubscriberName.parse(name),
        )


class Subscriber(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    subscribed_at: datetime
    status: SubscriptionStatus


def is_valid_token_format(token: Optional[str]) -> bool:
    return (
        token is not None
        and len(token) == SUBSCRIPTION_TOKEN_LENGTH
        and token.isascii()
        and token.isalnum()
    )
