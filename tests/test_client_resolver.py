from __future__ import annotations

from datetime import date

from app.domain.customers import CustomerProfile
from app.resolvers.client_resolver import (
    ClientIdentity,
    ClientResolver,
    normalize_national_id,
    normalize_record_number,
)
from app.resolvers.names import normalize_person_name
from conftest import make_sale


def _customer(name: str, **kwargs) -> CustomerProfile:
    return CustomerProfile(
        name=name,
        first_purchase_date=date(2024, 1, 1),
        last_purchase_date=date(2024, 1, 1),
        **kwargs,
    )


def test_normalize_national_id_requires_eleven_digits() -> None:
    assert normalize_national_id("123.456.789-09") == "12345678909"
    assert normalize_national_id("1234") is None
    assert normalize_national_id(None) is None


def test_normalize_record_number_trims() -> None:
    assert normalize_record_number("  P-778 ") == "P-778"
    assert normalize_record_number("   ") is None


def test_normalize_person_name_drops_accents_and_numeric_names() -> None:
    assert normalize_person_name("  JOÃO   da  Silva ") == "joao da silva"
    assert normalize_person_name("12345") == ""


def test_national_id_wins_over_name() -> None:
    maria = _customer("Maria", national_id="12345678909")
    joao = _customer("João Silva")
    resolver = ClientResolver([maria, joao])

    found = resolver.resolve(
        ClientIdentity.from_sale(make_sale(client_name="João Silva", client_national_id="123.456.789-09"))
    )

    assert found is maria
    assert resolver.stats.by_national_id == 1
    assert resolver.stats.by_name == 0


def test_record_number_wins_over_name() -> None:
    first = _customer("Paciente A", record_number="P-1")
    second = _customer("Maria")
    resolver = ClientResolver([first, second])

    found = resolver.resolve(
        ClientIdentity.from_sale(make_sale(client_name="Maria", client_record_number=" P-1 "))
    )

    assert found is first
    assert resolver.stats.by_record_number == 1


def test_name_match_is_accent_and_case_insensitive() -> None:
    joao = _customer("João Silva")
    resolver = ClientResolver([joao])

    found = resolver.resolve(ClientIdentity.from_sale(make_sale(client_name="JOAO  SILVA")))

    assert found is joao
    assert resolver.stats.by_name == 1


def test_short_national_id_falls_back_to_name() -> None:
    joao = _customer("João Silva", national_id="12345678909")
    resolver = ClientResolver([joao])

    identity = ClientIdentity.from_sale(make_sale(client_name="Joao Silva", client_national_id="999"))

    assert identity.national_id is None
    assert resolver.resolve(identity) is joao


def test_unknown_identity_is_counted_as_no_match() -> None:
    resolver = ClientResolver([_customer("Maria")])

    assert resolver.resolve(ClientIdentity.from_sale(make_sale(client_name="Pedro"))) is None
    assert resolver.stats.no_match == 1


def test_empty_identity_is_skipped() -> None:
    resolver = ClientResolver([_customer("Maria")])
    identity = ClientIdentity.from_sale(make_sale(client_name="  000 "))

    assert identity.is_empty
    assert resolver.resolve(identity) is None
    assert resolver.stats.no_identity == 1
    assert resolver.stats.no_match == 0


def test_register_keeps_first_customer_per_key() -> None:
    first = _customer("Maria")
    resolver = ClientResolver([first])
    resolver.register(_customer("maria"))

    assert resolver.resolve(ClientIdentity(name="Maria", name_key="maria")) is first
