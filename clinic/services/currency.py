from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

DEFAULT_SYMBOL = "DH"
PREFIX_SYMBOLS = ("$", "£", "C$")
NARROW_NBSP = "\u202f"

_symbol_provider: Callable[[], str] = lambda: DEFAULT_SYMBOL


def use_symbol_provider(provider: Optional[Callable[[], str]]) -> None:
    """Branche la source du symbole (préférences de l'application)."""
    global _symbol_provider
    _symbol_provider = provider or (lambda: DEFAULT_SYMBOL)


def current_symbol() -> str:
    return _symbol_provider() or DEFAULT_SYMBOL


def _group(amount: float, decimals: int) -> str:
    # format fr-FR : espace fine insécable pour les milliers, virgule décimale
    q = Decimal(1).scaleb(-decimals)
    value = Decimal(str(amount)).quantize(q, rounding=ROUND_HALF_UP)
    text = f"{value:,.{decimals}f}"
    return text.replace(",", NARROW_NBSP).replace(".", ",")


def _place(text: str, symbol: str) -> str:
    if symbol in PREFIX_SYMBOLS:
        return f"{symbol}{text}"
    return f"{text} {symbol}"


def format_currency(amount: float, show_symbol: bool = True, symbol: Optional[str] = None) -> str:
    text = _group(amount, 2)
    if not show_symbol:
        return text
    return _place(text, symbol or current_symbol())


def format_currency_whole(amount: float, show_symbol: bool = True, symbol: Optional[str] = None) -> str:
    """Comme format_currency, sans décimales pour les montants entiers."""
    text = _group(amount, 0 if float(amount).is_integer() else 2)
    if not show_symbol:
        return text
    return _place(text, symbol or current_symbol())


def parse_currency(text: str) -> float:
    clean = re.sub(r"[^\d,-]", "", text or "").replace(",", ".", 1)
    try:
        return float(clean)
    except ValueError:
        return 0.0


def format_price_range(min_price: float, max_price: float, symbol: Optional[str] = None) -> str:
    if min_price == max_price:
        return format_currency(min_price, symbol=symbol)
    return f"{format_currency(min_price, symbol=symbol)} - {format_currency(max_price, symbol=symbol)}"


def get_currency_placeholder(symbol: Optional[str] = None) -> str:
    symbol = symbol or current_symbol()
    if symbol in PREFIX_SYMBOLS:
        return f"{symbol}0.00"
    return f"0,00 {symbol}"


def format_for_display(amount: float, compact: bool = False, symbol: Optional[str] = None) -> str:
    """Affichage tableau ; compact : 1.5k DH au-delà de 1000."""
    if compact and amount >= 1000:
        return _place(f"{amount / 1000:.1f}k", symbol or current_symbol())
    return format_currency(amount, symbol=symbol)


_INPUT_RE = re.compile(r"^[\d\s.,€$£]*(DH|CHF|C\$)?[\d\s.,€$£]*$", re.IGNORECASE)


def is_valid_currency_input(text: str) -> bool:
    return bool(_INPUT_RE.match((text or "").strip()))


def standardize_currency_input(text: str) -> float:
    clean = re.sub(r"[€$£]", "", text or "")
    clean = re.sub(r"DH|CHF|C\$", "", clean, flags=re.IGNORECASE).strip()
    clean = clean.replace(" ", "").replace(NARROW_NBSP, "")
    if "," in clean and "." not in clean:
        clean = clean.replace(",", ".", 1)
    elif "," in clean and "." in clean:
        clean = clean.replace(",", "")
    try:
        return float(clean)
    except ValueError:
        return 0.0
