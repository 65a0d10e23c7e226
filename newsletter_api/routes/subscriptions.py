# newsletter_api/routes/subscriptions.py
import logging
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from pydantic import BaseModel

from newsletter_api.database.connection import get_db_connection
from newsletter_api.domain import NewSubscriber, is_valid_token_format
from newsletter_api.services.email_service import EmailClient
from newsletter_api.subscriptions import (
    ConfirmationEmailError,
    UnknownTokenError,
    subscription_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


class SubscribeResponse(BaseModel):
    success: bool
    message: str


class ConfirmResponse(BaseModel):
    success: bool
    message: str


def get_email_client(request: Request) -> EmailClient:
    return request.app.state.email_client


def get_base_url(request: Request) -> str:
    return request.app.state.settings.application.base_url


@router.post("", response_model=SubscribeResponse)
async def subscribe(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    connection: asyncpg.Connection = Depends(get_db_connection),
    email_client: EmailClient = Depends(get_email_client),
    base_url: str = Depends(get_base_url),
):
    """Register a pending subscriber and email them a confirmation link"""
    try:
        new_subscriber = NewSubscriber.parse(email=email, name=name)
    except ValueError as e:
        logger.warning(f"Rejected subscription request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Adding a new subscriber: {new_subscriber.email}")
    try:
        result = await subscription_service.subscribe(
            connection, new_subscriber, base_url, email_client
        )
    except ConfirmationEmailError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send the confirmation email.",
        )
    except Exception as e:
        logger.error(f"Subscription failed for {new_subscriber.email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Subscription failed. Please try again later.",
        )

    if result["status"] == "already_confirmed":
        return SubscribeResponse(success=True, message="You are already subscribed.")

    return SubscribeResponse(
        success=True,
        message="Check your inbox to confirm your subscription.",
    )


@router.get("/confirm", response_model=ConfirmResponse)
async def confirm(
    subscription_token: Optional[str] = Query(None),
    connection: asyncpg.Connection = Depends(get_db_connection),
):
    """Consume a subscription token and mark its subscriber as confirmed"""
    if not is_valid_token_format(subscription_token):
        logger.warning("Rejected confirmation with a missing or malformed token")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A valid subscription_token is required.",
        )

    try:
        await subscription_service.confirm(connection, subscription_token)
    except UnknownTokenError:
        logger.warning(f"Unknown subscription token: {subscription_token[:4]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown subscription token.",
        )
    except Exception as e:
        logger.error(f"Confirmation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Confirmation failed. Please try again later.",
        )

    return ConfirmResponse(success=True, message="Your subscription is confirmed.")
