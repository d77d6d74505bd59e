"""
Domain: structured order identifiers.

Orders are externally addressed by a single string joining the client email
and the order token with an underscore (``"ana@x.com_INV-1"``). That string is
parsed exactly once, at the system boundary, into an `OrderId`; internal code
never re-splits it.

Parsing rules:
- The email part ends at the first ``_`` that follows the ``@``. Local parts
  may contain underscores, host names cannot.
- A string without ``@`` is a bare order token (client unknown).
- A string that is only an email is the degraded legacy form in which the
  email itself was used as the order token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

SEPARATOR = "_"


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class OrderId:
    """
    Structured `{client_email, order_token}` identifier.

    `client_email` is None for bare tokens.
    """

    order_token: str
    client_email: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.order_token:
            raise ValueError("order_token must be non-empty")
        if self.client_email is not None:
            object.__setattr__(self, "client_email", normalize_email(self.client_email))

    @classmethod
    def parse(cls, raw: str) -> "OrderId":
        """
        Parse a boundary identifier.

        Example:
            OrderId.parse("ana_b@x.com_INV_1")
            # OrderId(order_token="INV_1", client_email="ana_b@x.com")
        """

        text = (raw or "").strip()
        if not text:
            raise ValueError("Order identifier must be non-empty")

        at = text.find("@")
        if at == -1:
            return cls(order_token=text)

        sep = text.find(SEPARATOR, at)
        if sep == -1:
            # Degraded data: the email doubles as the token.
            return cls(order_token=normalize_email(text), client_email=text)

        email, token = text[:sep], text[sep + 1 :]
        if not token:
            return cls(order_token=normalize_email(email), client_email=email)
        return cls(order_token=token, client_email=email)

    @classmethod
    def for_record(cls, client_email: str, order_token: str) -> "OrderId":
        return cls(order_token=order_token, client_email=client_email)

    @property
    def is_bare(self) -> bool:
        return self.client_email is None

    def serialize(self) -> str:
        """Boundary form; also the canonical store key."""

        if self.client_email is None:
            return self.order_token
        if self.order_token == self.client_email:
            return self.client_email
        return f"{self.client_email}{SEPARATOR}{self.order_token}"

    def __str__(self) -> str:
        return self.serialize()


def strip_email_prefix(value: str) -> Optional[str]:
    """
    Return the trailing segment of an ``email_token`` shaped value.

    Returns None when the value is not in that shape.
    """

    if "@" not in value:
        return None
    parsed = OrderId.parse(value)
    if parsed.client_email is None or parsed.order_token == parsed.client_email:
        return None
    return parsed.order_token


__all__ = ["OrderId", "SEPARATOR", "normalize_email", "strip_email_prefix"]
