"""Shared helpers for detector evaluation."""

from __future__ import annotations

from collections import deque
from decimal import Context, Decimal, InvalidOperation, MAX_EMAX, MAX_PREC, MIN_EMIN
from typing import Deque, List, Optional, Union

from web3 import Web3

from .errors import ConfigurationError, InsufficientData

Number = Union[int, str, Decimal]

# additions of finite decimals never need more digits than their operands span
EXACT_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)
DIVISION_CONTEXT = Context(prec=96)
HUNDRED = Decimal(100)


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        # go through repr so 0.1 stays 0.1 instead of its binary expansion
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value '{value}'") from exc
    if not result.is_finite():
        raise ValueError(f"Non-finite sample '{value}'")
    return result


def format_decimal(value: Decimal) -> str:
    """Render without exponent or trailing zeros: Decimal('15.00') -> '15'."""
    if value == 0:
        return "0"
    return format(value.normalize(DIVISION_CONTEXT), "f")


def percent_change(value: Decimal, average: Decimal) -> Optional[Decimal]:
    if average == 0:
        return None
    delta = EXACT_CONTEXT.subtract(value, average).copy_abs()
    return DIVISION_CONTEXT.divide(EXACT_CONTEXT.multiply(delta, HUNDRED), average.copy_abs())


def is_filled_string(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_address(value: object) -> bool:
    return isinstance(value, str) and Web3.is_address(value)


class RollingWindow:
    """Bounded FIFO of decimal samples with an exactly maintained sum."""

    def __init__(self, max_elements: int) -> None:
        if int(max_elements) < 1:
            raise ConfigurationError(
                f"Rolling window capacity must be at least 1, got {max_elements}"
            )
        self.max_elements = int(max_elements)
        self._values: Deque[Decimal] = deque()
        self._sum = Decimal(0)

    def add_element(self, value: Number) -> None:
        sample = to_decimal(value)
        if len(self._values) == self.max_elements:
            evicted = self._values.popleft()
            self._sum = EXACT_CONTEXT.subtract(self._sum, evicted)
        self._values.append(sample)
        self._sum = EXACT_CONTEXT.add(self._sum, sample)

    def get_average(self) -> Decimal:
        if not self._values:
            raise InsufficientData("Rolling window is empty")
        return DIVISION_CONTEXT.divide(self._sum, Decimal(len(self._values)))

    def get_num_elements(self) -> int:
        return len(self._values)

    def values(self) -> List[Decimal]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RollingWindow(max_elements={self.max_elements}, size={len(self._values)})"
