from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

CENTS = Decimal("0.01")

DEFAULT_SEAT_ROWS = "ABCDEFGH"
DEFAULT_SEATS_PER_ROW = 10


def seat_codes(rows: str = DEFAULT_SEAT_ROWS, cols: int = DEFAULT_SEATS_PER_ROW) -> List[str]:
    # "AB", 3 -> A1, A2, A3, B1, B2, B3
    return [f"{r}{c}" for r in rows for c in range(1, cols + 1)]


def default_grid(rows: str = DEFAULT_SEAT_ROWS, cols: int = DEFAULT_SEATS_PER_ROW) -> Dict[str, bool]:
    return {code: True for code in seat_codes(rows, cols)}


def seat_sort_key(code: str) -> tuple:
    """Order seats row first, then numerically (A2 before A10)."""
    row = code.rstrip("0123456789")
    number = code[len(row):]
    return (row, int(number) if number else 0, code)


def normalize_seat(code: str) -> str:
    return code.strip().upper()


def money(value) -> Decimal:
    """Coerce to a Decimal with exactly two fraction digits."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value) -> str:
    return f"{money(value):.2f}"


# =========================
#      FORMAT RULES
# =========================
def _ascii_digits(*parts: str) -> bool:
    # str.isdigit() alone also accepts e.g. Arabic-Indic digits
    return all(p.isascii() and p.isdigit() for p in parts)


def is_valid_date(value: str) -> bool:
    """YYYY-MM-DD, year >= 2023, month 1-12, day 1-31 (no calendar check)."""
    if len(value) != 10 or value[4] != "-" or value[7] != "-":
        return False
    year, month, day = value[0:4], value[5:7], value[8:10]
    if not _ascii_digits(year, month, day):
        return False
    return int(year) >= 2023 and 1 <= int(month) <= 12 and 1 <= int(day) <= 31


def is_valid_time(value: str) -> bool:
    """HH:MM in 24h."""
    if len(value) != 5 or value[2] != ":":
        return False
    hour, minute = value[0:2], value[3:5]
    if not _ascii_digits(hour, minute):
        return False
    return 0 <= int(hour) < 24 and 0 <= int(minute) < 60


def is_valid_credential(value: str) -> bool:
    """Usernames and passwords: non-empty, no spaces."""
    return bool(value) and not any(c.isspace() for c in value)


def is_single_line(value: str) -> bool:
    """Free text stored in one record line must not carry line breaks."""
    return "\n" not in value and "\r" not in value
