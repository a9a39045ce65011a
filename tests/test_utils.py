from __future__ import annotations

import random
from decimal import Decimal

import pytest

from detector_engine.errors import ConfigurationError, InsufficientData
from detector_engine.utils import (
    DIVISION_CONTEXT,
    RollingWindow,
    format_decimal,
    is_address,
    percent_change,
)


def test_window_never_exceeds_capacity_and_keeps_most_recent():
    window = RollingWindow(5)
    added = []
    for value in range(1, 13):
        window.add_element(value)
        added.append(Decimal(value))
        assert window.get_num_elements() <= 5
        assert window.values() == added[-5:]


def test_empty_window_average_raises():
    window = RollingWindow(3)
    with pytest.raises(InsufficientData):
        window.get_average()


def test_capacity_must_be_positive():
    with pytest.raises(ConfigurationError):
        RollingWindow(0)


def test_average_has_no_drift_over_many_additions():
    window = RollingWindow(10_000)
    for _ in range(10_000):
        window.add_element("0.1")
    assert window.get_average() == Decimal("0.1")


def test_average_matches_mean_of_current_samples():
    rng = random.Random(7)
    window = RollingWindow(7)
    for _ in range(12_000):
        window.add_element(Decimal(rng.randint(0, 10**9)) / 1000)
    expected = window.values()
    assert window.get_average() == DIVISION_CONTEXT.divide(sum(expected), Decimal(len(expected)))


def test_large_integer_samples_stay_exact():
    big = 2**255
    window = RollingWindow(2)
    window.add_element(big)
    window.add_element(big + 2)
    assert window.get_average() == Decimal(big + 1)


@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("15.00"), "15"),
        (Decimal("100"), "100"),
        (Decimal("12.5000"), "12.5"),
        (Decimal("0"), "0"),
    ],
)
def test_format_decimal(value, expected):
    assert format_decimal(value) == expected


def test_percent_change_with_zero_average_is_undefined():
    assert percent_change(Decimal(5), Decimal(0)) is None
    assert percent_change(Decimal(85), Decimal(100)) == Decimal(15)


def test_is_address():
    assert is_address("0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D")
    assert not is_address("0x1234")
    assert not is_address(None)
