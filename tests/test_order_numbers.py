import random

import pytest

from loyalty_api.domain.orders import is_valid_number, luhn_check_digit, parse_number
from loyalty_api.domain.orders.numbers import MAX_ORDER_NUMBER


@pytest.mark.parametrize("number", [79927398713, 4561261212345467, 12345678903, 0, 18])
def test_known_numbers_pass_checksum(number):
    assert is_valid_number(number)


@pytest.mark.parametrize("number", [79927398710, 4561261212345464, 12345678901, 1, 17])
def test_known_numbers_fail_checksum(number):
    assert not is_valid_number(number)


def test_negative_numbers_are_rejected():
    assert not is_valid_number(-79927398713)


def test_appending_check_digit_yields_valid_number():
    rng = random.Random(20261019)
    for _ in range(200):
        payload = rng.randrange(1, 10**15)
        number = payload * 10 + luhn_check_digit(payload)
        assert is_valid_number(number)
        # bumping the last digit always breaks the checksum
        assert not is_valid_number(payload * 10 + (luhn_check_digit(payload) + 1) % 10)


def test_parse_number_strips_whitespace():
    assert parse_number(" 79927398713\n") == 79927398713


@pytest.mark.parametrize("raw", ["", "   ", "12a4", "-18", "1.5", "１２３", str(MAX_ORDER_NUMBER + 1)])
def test_parse_number_rejects_non_digit_text(raw):
    with pytest.raises(ValueError):
        parse_number(raw)
