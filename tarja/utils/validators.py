"""Checksum and structural validators for Brazilian identifiers.

Every validator accepts an arbitrary value and returns ``bool``; none of them
raise. Formatting characters (dots, dashes, spaces) are stripped before the
digits are checked, so ``"529.982.247-25"`` and ``"52998224725"`` are
equivalent inputs.
"""

from __future__ import annotations

import re
from typing import Any

_NON_DIGIT = re.compile(r"[^0-9]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_RANDOM_PIX_KEY = re.compile(r"^[A-Za-z0-9]{32}$")
_WHITESPACE = re.compile(r"\s")


def only_digits(value: Any) -> str:
    """Return the decimal digits contained in ``value`` (empty for non-strings)."""
    if not isinstance(value, str):
        return ""
    return _NON_DIGIT.sub("", value)


def _all_same(digits: str) -> bool:
    return len(set(digits)) == 1


def _mod11_digit(total: int) -> int:
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(value: Any) -> bool:
    """Validate a CPF (Cadastro de Pessoas Físicas) number.

    Both check digits use the standard mod-11 scheme: weights 10..2 over the
    first nine digits, then 11..2 over the first ten.
    """
    digits = only_digits(value)
    if len(digits) != 11 or _all_same(digits):
        return False

    numbers = [int(char) for char in digits]
    first = _mod11_digit(sum(n * w for n, w in zip(numbers[:9], range(10, 1, -1))))
    if first != numbers[9]:
        return False

    second = _mod11_digit(sum(n * w for n, w in zip(numbers[:10], range(11, 1, -1))))
    return second == numbers[10]


def validate_cnh(value: Any) -> bool:
    """Validate a CNH (driver's licence) registration number.

    First check digit: weights 9..1. Second: weights 1..9. Both take the sum
    modulo 11 and map 10 to 0.
    """
    digits = only_digits(value)
    if len(digits) != 11 or _all_same(digits):
        return False

    numbers = [int(char) for char in digits]
    base = numbers[:9]

    first = sum(n * w for n, w in zip(base, range(9, 0, -1))) % 11
    if first >= 10:
        first = 0
    if first != numbers[9]:
        return False

    second = sum(n * w for n, w in zip(base, range(1, 10))) % 11
    if second >= 10:
        second = 0
    return second == numbers[10]


def validate_title(value: Any) -> bool:
    """Validate a Título de Eleitor (voter registration) number.

    Layout: eight sequential digits, a two-digit state code (01-28) and two
    check digits. The first check digit weighs the sequential digits 2..9; the
    second weighs the state code digits 2 and 3 and adds twice the first check
    digit.
    """
    digits = only_digits(value)
    if len(digits) != 12 or _all_same(digits):
        return False

    numbers = [int(char) for char in digits]
    state_code = int(digits[8:10])
    if state_code < 1 or state_code > 28:
        return False

    first = _mod11_digit(sum(n * w for n, w in zip(numbers[:8], range(2, 10))))
    if first != numbers[10]:
        return False

    second = _mod11_digit(numbers[8] * 2 + numbers[9] * 3 + first * 2)
    return second == numbers[11]


def validate_rg(value: Any) -> bool:
    """Validate an RG (state identity card) number.

    Only the São Paulo check digit is enforced, for nine-digit numbers. Other
    lengths in 7-9 pass on structure alone since each state has its own scheme.
    """
    digits = only_digits(value)
    if len(digits) < 7 or len(digits) > 9 or _all_same(digits):
        return False

    if len(digits) == 9:
        numbers = [int(char) for char in digits]
        check = _mod11_digit(sum(n * w for n, w in zip(numbers[:8], range(9, 1, -1))))
        return check == numbers[8]

    return True


def validate_cep(value: Any) -> bool:
    """Validate a CEP (postal code): eight digits, not one repeated digit."""
    digits = only_digits(value)
    return len(digits) == 8 and not _all_same(digits)


def validate_luhn(value: Any) -> bool:
    """Return True when the digits in ``value`` satisfy the Luhn checksum."""
    digits = only_digits(value)
    if not digits:
        return False

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_credit_card(value: Any) -> bool:
    """Sixteen-digit card numbers passing Luhn."""
    digits = only_digits(value)
    return len(digits) == 16 and validate_luhn(digits)


def validate_email(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return _EMAIL.match(value) is not None


def validate_pix(value: Any) -> bool:
    """Validate a PIX key by shape.

    Random keys are 32 alphanumerics; 11 digits must be a valid CPF; 14 digits
    are accepted as a CNPJ on structure alone; anything containing ``@`` must
    be a valid e-mail address.
    """
    if not isinstance(value, str):
        return False

    key = _WHITESPACE.sub("", value)
    if _RANDOM_PIX_KEY.match(key):
        return True
    if len(key) == 11 and key.isascii() and key.isdigit():
        return validate_cpf(key)
    if len(key) == 14 and key.isascii() and key.isdigit():
        return True
    if "@" in key:
        return validate_email(key)
    return False


__all__ = [
    "only_digits",
    "validate_cep",
    "validate_cnh",
    "validate_cpf",
    "validate_credit_card",
    "validate_email",
    "validate_luhn",
    "validate_pix",
    "validate_rg",
    "validate_title",
]
