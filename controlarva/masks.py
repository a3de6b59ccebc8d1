"""Display masks for quantity, currency and tax-id inputs.

Quantities are grouped with ``.`` as the thousands separator. Currency uses the
Brazilian layout (``1.250,50``) and round-trips through integer cents so that
masking never introduces floating point artefacts. Tax ids switch between the
CPF pattern (11 digits) and the CNPJ pattern (14 digits) as the operator types.
"""
from __future__ import annotations

import re
from typing import Any

_NON_DIGITS = re.compile(r"\D")
_THOUSANDS = re.compile(r"\B(?=(\d{3})+(?!\d))")

CURRENCY_PREFIX = "R$"
TAX_ID_MAX_LENGTH = 18


def only_digits(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def _group(digits: str) -> str:
    return _THOUSANDS.sub(".", digits)


def mask_quantity(text: Any) -> str:
    digits = only_digits(text)
    if not digits:
        return ""
    return _group(str(int(digits)))


def parse_quantity(text: Any) -> int:
    digits = only_digits(text)
    return int(digits) if digits else 0


def format_quantity(value: int) -> str:
    return _group(str(int(value)))


def format_currency(cents: int) -> str:
    """Render an amount in cents as ``1.250,50``."""

    cents = int(cents)
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{_group(str(whole))},{fraction:02d}"


def format_brl(cents: int) -> str:
    return f"{CURRENCY_PREFIX} {format_currency(cents)}"


def mask_currency(text: Any) -> str:
    """Reformat free text typed into a currency field.

    Every digit typed shifts the amount one place to the left, so ``"125050"``
    becomes ``"1.250,50"``. Empty input stays empty.
    """

    digits = only_digits(text)
    if not digits:
        return ""
    return format_currency(int(digits))


def parse_currency(text: Any) -> int:
    """Return the amount in cents for masked currency text."""

    digits = only_digits(text)
    return int(digits) if digits else 0


def cents_to_units(cents: int) -> float:
    return int(cents) / 100


def mask_tax_id(text: Any) -> str:
    digits = only_digits(text)
    if len(digits) <= 11:
        masked = re.sub(r"(\d{3})(\d)", r"\1.\2", digits, count=1)
        masked = re.sub(r"(\d{3})(\d)", r"\1.\2", masked, count=1)
        return re.sub(r"(\d{3})(\d{1,2})$", r"\1-\2", masked, count=1)
    masked = re.sub(r"^(\d{2})(\d)", r"\1.\2", digits, count=1)
    masked = re.sub(r"^(\d{2})\.(\d{3})(\d)", r"\1.\2.\3", masked, count=1)
    masked = re.sub(r"\.(\d{3})(\d)", r".\1/\2", masked, count=1)
    masked = re.sub(r"(\d{4})(\d)", r"\1-\2", masked, count=1)
    return masked[:TAX_ID_MAX_LENGTH]
