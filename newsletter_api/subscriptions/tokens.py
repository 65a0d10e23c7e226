# newsletter_api/subscriptions/tokens.py
import secrets
import string

from newsletter_api.domain import SUBSCRIPTION_TOKEN_LENGTH

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_subscription_token() -> str:
    """25 case-sensitive alphanumerics from the OS CSPRNG (~149 bits)"""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(SUBSCRIPTION_TOKEN_LENGTH))


def confirmation_link(base_url: str, subscription_token: str) -> str:
    return f"{base_url.rstrip('/')}/subscriptions/confirm?subscription_token={subscription_token}"
