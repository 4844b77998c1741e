"""Unit tests for order number checksum validation"""

import random
import pytest
from loyalty_gateway.domain.luhn import generate_order_number, is_valid_order_number, luhn_check_digit


def reference_luhn(number: str) -> bool:
    """Textbook Luhn: double every second digit from the right"""
    digits = [int(d) for d in number]
    checksum = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2 == 1:
            d = d * 2
            d = d - 9 if d > 9 else d
        checksum += d
    return checksum % 10 == 0


@pytest.mark.parametrize("number", ["79927398713", "6231543915765652", "4561261212345467", "0", "00"])
def test_valid_numbers(number):
    assert is_valid_order_number(number) is True


@pytest.mark.parametrize("number", ["1234567812345678", "79927398710", "6231543915765653", "1", "5"])
def test_invalid_checksums(number):
    assert is_valid_order_number(number) is False


@pytest.mark.parametrize(
    "number",
    ["", " 79927398713", "79927398713 ", "7992-7398713", "+79927398713", "abc", "７９９２７３９８７１３", "1.0"],
)
def test_non_digit_input_fails_closed(number):
    assert is_valid_order_number(number) is False


def test_agrees_with_reference_on_random_digit_strings():
    """Validator matches the textbook algorithm on arbitrary digit strings"""
    rng = random.Random(42)
    for _ in range(500):
        number = "".join(rng.choice("0123456789") for _ in range(rng.randint(1, 20)))
        assert is_valid_order_number(number) == reference_luhn(number), number


def test_check_digit_completes_payload():
    assert luhn_check_digit("7992739871") == "3"


def test_generated_numbers_are_valid():
    rng = random.Random(7)
    for _ in range(50):
        number = generate_order_number(rng=rng)
        assert len(number) == 16
        assert number[0] != "0"
        assert is_valid_order_number(number)


def test_generate_rejects_too_short_length():
    with pytest.raises(ValueError):
        generate_order_number(length=1)
