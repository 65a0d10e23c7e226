import asyncio
import json

import boto3
import httpx
import pytest
from botocore.stub import ANY, Stubber

from newsletter_api.config import EmailClientSettings, EmailProvider
from newsletter_api.services.email_service import (
    PostmarkEmailClient,
    SesEmailClient,
    build_email_client,
)

SENDER = "newsletter@example.com"
RECIPIENT = "ursula_le_guin@gmail.com"


def postmark_client(handler):
    return PostmarkEmailClient(
        base_url="https://email.example.com",
        sender=SENDER,
        authorization_token="server-token",
        transport=httpx.MockTransport(handler),
    )


def send(client, **overrides):
    message = {
        "recipient": RECIPIENT,
        "subject": "Newsletter",
        "html_content": "<p>Hello</p>",
        "text_content": "Hello",
    }
    message.update(overrides)

    async def run():
        try:
            return await client.send_email(**message)
        finally:
            await client.close()

    return asyncio.run(run())


# ---------------------------------------------------------------------------
# Postmark
# ---------------------------------------------------------------------------

def test_send_email_sends_the_expected_request():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"MessageID": "1"})

    send(postmark_client(handler))

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/email"
    assert request.headers["X-Postmark-Server-Token"] == "server-token"

    body = json.loads(request.content)
    assert body == {
        "From": SENDER,
        "To": RECIPIENT,
        "Subject": "Newsletter",
        "HtmlBody": "<p>Hello</p>",
        "TextBody": "Hello",
    }


def test_send_email_succeeds_if_the_server_returns_200():
    result = send(postmark_client(lambda request: httpx.Response(200)))
    assert result["success"] is True


def test_send_email_fails_if_the_server_returns_500():
    with pytest.raises(httpx.HTTPStatusError):
        send(postmark_client(lambda request: httpx.Response(500)))


def test_send_email_fails_if_the_server_takes_too_long():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(httpx.TimeoutException):
        send(postmark_client(handler))


def test_confirmation_email_carries_the_link_in_both_bodies():
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200)

    client = postmark_client(handler)
    link = "http://127.0.0.1:8000/subscriptions/confirm?subscription_token=abc"

    async def run():
        try:
            await client.send_confirmation_email(RECIPIENT, "Ursula", link)
        finally:
            await client.close()

    asyncio.run(run())

    assert link in requests[0]["HtmlBody"]
    assert link in requests[0]["TextBody"]
    assert "Ursula" in requests[0]["TextBody"]


# ---------------------------------------------------------------------------
# SES
# ---------------------------------------------------------------------------

@pytest.fixture
def ses():
    client = boto3.client(
        "sesv2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber


def test_ses_send_email(ses):
    client, stubber = ses
    stubber.add_response(
        "send_email",
        {"MessageId": "ses-message-1"},
        {
            "FromEmailAddress": SENDER,
            "Destination": {"ToAddresses": [RECIPIENT]},
            "Content": ANY,
        },
    )

    result = send(SesEmailClient(sender=SENDER, ses_client=client))

    assert result["message_id"] == "ses-message-1"
    stubber.assert_no_pending_responses()


def test_ses_rejection_becomes_value_error(ses):
    client, stubber = ses
    stubber.add_client_error(
        "send_email",
        service_error_code="MessageRejected",
        service_message="Email address is not verified.",
    )

    with pytest.raises(ValueError, match="Email rejected"):
        send(SesEmailClient(sender=SENDER, ses_client=client))


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------

def test_build_email_client_defaults_to_postmark():
    client = build_email_client(
        EmailClientSettings(base_url="https://email.example.com", authorization_token="t")
    )
    assert isinstance(client, PostmarkEmailClient)
    asyncio.run(client.close())


def test_build_email_client_for_ses():
    client = build_email_client(
        EmailClientSettings(provider=EmailProvider.SES, aws_region="eu-west-1")
    )
    assert isinstance(client, SesEmailClient)
    assert client.ses_client.meta.region_name == "eu-west-1"
