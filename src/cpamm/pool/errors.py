"""Коды отказов Pool Engine.

Отказ — штатный, повторяемый исход операции (вызывающий код корректирует
входы и повторяет запрос). Движок возвращает код в OperationResult и не
бросает исключений; PoolOperationError нужен только тем, кто предпочитает
исключения (OperationResult.unwrap()).
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import OperationResult


class PoolError(str, Enum):
    """Причина отказа операции."""

    INVALID_AMOUNT = "InvalidAmount"
    INVALID_FEE_CONFIG = "InvalidFeeConfig"
    ALREADY_INITIALIZED = "AlreadyInitialized"
    POOL_NOT_INITIALIZED = "PoolNotInitialized"
    INSUFFICIENT_SHARES = "InsufficientShares"
    INSUFFICIENT_OUTPUT_LIQUIDITY = "InsufficientOutputLiquidity"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"


class PoolOperationError(Exception):
    """Отказ операции в виде исключения."""

    def __init__(self, result: "OperationResult"):
        self.result = result
        self.error = result.error
        super().__init__(f"{result.operation.value} rejected: {result.error.value}: {result.details}")
