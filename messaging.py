import re
from urllib.parse import quote

from errors import ValidationError


def digits_only(value):
    return re.sub(r"\D", "", value or "")


def build_share_link(phone, message, base_url="https://wa.me", country_code="55"):
    """Deep link that opens a chat with `phone` and `message` pre-filled."""
    digits = digits_only(phone)
    if not digits:
        raise ValidationError("Client has no phone number")
    return f"{base_url.rstrip('/')}/{country_code}{digits}?text={quote(message, safe='')}"


def quote_message(client_name, total, currency="R$", greeting="Here is the requested quote."):
    return f"Hello {client_name}! {greeting}\n\nTotal: {currency} {total:.2f}"
