"""Luhn checksum for order numbers"""

import random

DIGITS = "0123456789"


def is_valid_order_number(number: str) -> bool:
    """
    Check an order number against the Luhn algorithm.

    Only ASCII decimal digits are accepted; anything else (spaces, signs,
    unicode digits) fails. The empty string is never valid.

    Example:
        "79927398713" -> True
        "1234567812345678" -> False
    """
    if not number or any(ch not in DIGITS for ch in number):
        return False

    total = 0
    for position, ch in enumerate(reversed(number)):
        digit = ord(ch) - ord("0")
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0


def luhn_check_digit(payload: str) -> str:
    """Return the digit that makes ``payload + digit`` Luhn-valid"""
    for candidate in DIGITS:
        if is_valid_order_number(payload + candidate):
            return candidate
    raise ValueError(f"Not a digit string: {payload!r}")


def generate_order_number(length: int = 16, rng: random.Random | None = None) -> str:
    """Generate a random Luhn-valid order number without a leading zero"""
    if length < 2:
        raise ValueError("length must be at least 2")
    rng = rng or random.Random()
    payload = str(rng.randint(1, 9)) + "".join(rng.choice(DIGITS) for _ in range(length - 2))
    return payload + luhn_check_digit(payload)
