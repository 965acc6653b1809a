"""CNPJ normalization, formatting and validation helpers."""

import re

NON_DIGITS = re.compile(r"\D")

CNPJ_LENGTH = 14
FIRST_CHECK_WEIGHTS = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
SECOND_CHECK_WEIGHTS = (6,) + FIRST_CHECK_WEIGHTS


def clean_cnpj(value: str) -> str:
    """Strip everything but digits."""
    return NON_DIGITS.sub("", value or "")


def is_valid_format(cnpj: str) -> bool:
    """14 digits and not a single repeated digit."""
    return len(cnpj) == CNPJ_LENGTH and cnpj.isdigit() and len(set(cnpj)) > 1


def _check_digit(digits: str, weights: tuple[int, ...]) -> str:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return "0" if remainder < 2 else str(11 - remainder)


def check_digits(base: str) -> str:
    """Compute the two check digits for a 12-digit CNPJ base."""
    first = _check_digit(base, FIRST_CHECK_WEIGHTS)
    second = _check_digit(base + first, SECOND_CHECK_WEIGHTS)
    return first + second


def complete_cnpj(base: str) -> str:
    """Append check digits to a 12-digit base."""
    base = clean_cnpj(base)
    if len(base) != CNPJ_LENGTH - 2:
        raise ValueError(f"CNPJ base must have 12 digits, got {len(base)}")
    return base + check_digits(base)


def is_valid_cnpj(cnpj: str) -> bool:
    """Format check plus check-digit verification."""
    cnpj = clean_cnpj(cnpj)
    if not is_valid_format(cnpj):
        return False
    return cnpj[-2:] == check_digits(cnpj[:12])


def format_cnpj(cnpj: str) -> str:
    """Render as 00.000.000/0000-00; other lengths are returned unchanged."""
    digits = clean_cnpj(cnpj)
    if len(digits) != CNPJ_LENGTH:
        return cnpj
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
