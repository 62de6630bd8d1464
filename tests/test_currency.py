import pytest

from clinic.services import currency
from clinic.services.currency import (
    format_currency, format_currency_whole, format_for_display, format_price_range,
    get_currency_placeholder, is_valid_currency_input, parse_currency, standardize_currency_input,
)

NNBSP = "\u202f"


def test_default_symbol_is_dirham():
    assert format_currency(1234.5) == f"1{NNBSP}234,50 DH"


def test_prefix_symbols():
    assert format_currency(12, symbol="$") == "$12,00"
    assert format_currency(12, symbol="€") == "12,00 €"
    assert format_currency(12, symbol="C$") == "C$12,00"


def test_format_rounds_half_up():
    assert format_currency(0.125, show_symbol=False) == "0,13"
    assert format_currency(2.675, show_symbol=False) == "2,68"


def test_whole_amounts_drop_decimals():
    assert format_currency_whole(1500) == f"1{NNBSP}500 DH"
    assert format_currency_whole(19.9) == "19,90 DH"


def test_symbol_provider_is_used():
    currency.use_symbol_provider(lambda: "CHF")
    assert format_currency(5) == "5,00 CHF"
    assert get_currency_placeholder() == "0,00 CHF"


def test_price_range_and_display():
    assert format_price_range(10, 10) == "10,00 DH"
    assert format_price_range(10, 25.5) == "10,00 DH - 25,50 DH"
    assert format_for_display(1500, compact=True) == "1.5k DH"
    assert format_for_display(999, compact=True) == "999,00 DH"
    assert get_currency_placeholder("$") == "$0.00"


@pytest.mark.parametrize(
    "text, expected",
    [("120,50 DH", 120.5), ("1 234,5", 1234.5), ("abc", 0.0), ("", 0.0)],
)
def test_parse_currency(text, expected):
    assert parse_currency(text) == expected


def test_currency_input_helpers():
    assert is_valid_currency_input("1 200,50 DH")
    assert not is_valid_currency_input("douze")
    assert standardize_currency_input("€1,234.50") == 1234.5
    assert standardize_currency_input("45,5 DH") == 45.5
    assert standardize_currency_input("n/a") == 0.0
