"""
Domain: Client contact data and client profiles.

`Client` is the canonical contact shape that every legacy alias is mapped onto
(see `domain.normalization`). `ClientProfile` is the per-client profile
record; while a profile is "legacy" it still carries an embedded list of
order snapshots, which the migration path moves into the canonical order
store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from .identifiers import normalize_email
from .time import require_utc_timestamp, to_iso_utc


@dataclass(frozen=True, slots=True)
class Client:
    """
    Canonical client contact information.

    Absent values are empty strings, never None, so the shape can be written
    back to any store generation without further checks.
    """

    email: str = ""
    name: str = ""
    surname: str = ""
    company: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    department: str = ""
    national_id: str = ""
    postal_code: str = ""
    external_id: str = ""

    def address_fields(self) -> "Client":
        """Subset kept on archived orders: who and where, without account ids."""

        return Client(
            email=self.email,
            name=self.name,
            surname=self.surname,
            company=self.company,
            phone=self.phone,
            address=self.address,
            city=self.city,
            department=self.department,
            postal_code=self.postal_code,
        )

    def to_document(self) -> Dict[str, str]:
        return {
            "email": self.email,
            "name": self.name,
            "surname": self.surname,
            "companyName": self.company,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "department": self.department,
            "nationalId": self.national_id,
            "postalCode": self.postal_code,
            "externalId": self.external_id,
        }


@dataclass(frozen=True, slots=True)
class ClientProfile:
    """
    Per-client profile record keyed by lowercased email.

    Invariant:
    - A profile is either legacy (`embedded_orders` non-empty) or migrated
      (`embedded_orders` empty); the migration path is the only transition.
    """

    email: str
    client: Client
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    # Raw legacy order snapshots, exactly as stored.
    embedded_orders: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "email", normalize_email(self.email))
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.last_login_at is not None:
            require_utc_timestamp("last_login_at", self.last_login_at)

    @property
    def is_legacy(self) -> bool:
        return len(self.embedded_orders) > 0

    def to_profile_document(self) -> Dict[str, Any]:
        """Profile-only document (no order data), used after migration."""

        doc: Dict[str, Any] = dict(self.client.to_document())
        doc["email"] = self.email
        doc["isActive"] = self.is_active
        doc["createdAt"] = to_iso_utc(self.created_at)
        doc["lastLogin"] = to_iso_utc(self.last_login_at)
        return doc


__all__ = ["Client", "ClientProfile"]
