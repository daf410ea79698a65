"""
app/resolvers/client_resolver.py

Client identity merge for the customer (RFV) ledger.

A purchase is attached to an existing customer by, in order: national ID
(digits only, at least 11 digits), trimmed record number, then normalized
full name. Failing all three is not an error; the caller creates a new
customer and registers it here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from app.domain.customers import CustomerProfile
from app.domain.sales import ParsedSale
from app.resolvers.names import digits_only, normalize_person_name

MIN_NATIONAL_ID_DIGITS = 11


def normalize_national_id(value: str | None) -> str | None:
    digits = digits_only(value)
    return digits if len(digits) >= MIN_NATIONAL_ID_DIGITS else None


def normalize_record_number(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


@dataclass
class ReconciliationStats:
    by_national_id: int = 0
    by_record_number: int = 0
    by_name: int = 0
    no_match: int = 0
    no_identity: int = 0
    created: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "by_national_id": self.by_national_id,
            "by_record_number": self.by_record_number,
            "by_name": self.by_name,
            "no_match": self.no_match,
            "no_identity": self.no_identity,
            "created": self.created,
        }


@dataclass(frozen=True)
class ClientIdentity:
    """
    Identity keys extracted from one purchase.
    """

    name: str
    national_id: str | None = None
    record_number: str | None = None
    name_key: str = field(default="", compare=False)

    @classmethod
    def from_sale(cls, sale: ParsedSale) -> "ClientIdentity":
        return cls(
            name=sale.client_name.strip(),
            national_id=normalize_national_id(sale.client_national_id),
            record_number=normalize_record_number(sale.client_record_number),
            name_key=normalize_person_name(sale.client_name),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.national_id or self.record_number or self.name_key)


class ClientResolver:
    """
    Indexes known customers and matches purchase identities against them.
    """

    def __init__(self, customers: Iterable[CustomerProfile] = ()) -> None:
        self._by_national_id: dict[str, CustomerProfile] = {}
        self._by_record_number: dict[str, CustomerProfile] = {}
        self._by_name: dict[str, CustomerProfile] = {}
        self.stats = ReconciliationStats()
        for customer in customers:
            self.register(customer)

    def register(self, customer: CustomerProfile) -> None:
        """
        Index a customer. Existing index entries are kept.
        """

        national_id = normalize_national_id(customer.national_id)
        if national_id:
            self._by_national_id.setdefault(national_id, customer)
        record_number = normalize_record_number(customer.record_number)
        if record_number:
            self._by_record_number.setdefault(record_number, customer)
        name_key = normalize_person_name(customer.name)
        if name_key:
            self._by_name.setdefault(name_key, customer)

    def resolve(self, identity: ClientIdentity) -> CustomerProfile | None:
        if identity.is_empty:
            self.stats.no_identity += 1
            return None
        if identity.national_id and identity.national_id in self._by_national_id:
            self.stats.by_national_id += 1
            return self._by_national_id[identity.national_id]
        if identity.record_number and identity.record_number in self._by_record_number:
            self.stats.by_record_number += 1
            return self._by_record_number[identity.record_number]
        if identity.name_key and identity.name_key in self._by_name:
            self.stats.by_name += 1
            return self._by_name[identity.name_key]
        self.stats.no_match += 1
        return None

