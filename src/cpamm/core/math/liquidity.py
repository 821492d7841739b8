"""
Liquidity Math — выпуск и сжигание LP-долей

Формулы:
    initial_shares     = sqrt(amount_a * amount_b)         (геометрическое среднее)
    shares_minted      = total_shares * (amount_a / reserve_a)
    withdraw_fraction  = amount_a / reserve_a
    shares_burned      = total_shares * withdraw_fraction
    paired_amount      = amount * (reserve_to / reserve_from)

Сторона A авторитетна: пропорциональность суммы B текущему соотношению
резервов обеспечивает вызывающий код, формулы её не пересчитывают.
"""

import math

from cpamm.core.math.numerical_safeguards import (
    safe_divide,
    validate_non_negative,
    validate_positive,
)


def initial_shares(amount_a: float, amount_b: float) -> float:
    """
    Начальный выпуск долей при создании пула.

    Геометрическое среднее связывает стоимость доли со стоимостью пула
    независимо от начального соотношения активов.

    Raises:
        ValueError: Если любая сумма <= 0 или NaN/Inf

    Examples:
        >>> initial_shares(1000.0, 4800.0)  # doctest: +ELLIPSIS
        2190.89023...
    """
    validate_positive(amount_a, "amount_a")
    validate_positive(amount_b, "amount_b")
    return math.sqrt(amount_a * amount_b)


def shares_for_deposit(total_shares: float, amount_a: float, reserve_a: float) -> float:
    """
    Доли, выпускаемые за депозит amount_a (и парную сумму B).

    Raises:
        ValueError: Если reserve_a <= 0, amount_a <= 0 или total_shares < 0
    """
    validate_non_negative(total_shares, "total_shares")
    validate_positive(amount_a, "amount_a")
    validate_positive(reserve_a, "reserve_a")
    return total_shares * (amount_a / reserve_a)


def withdraw_fraction(amount_a: float, reserve_a: float) -> float:
    """
    Доля пула, соответствующая выводу amount_a.

    Может превышать 1 — проверку достаточности долей выполняет движок.
    """
    validate_non_negative(amount_a, "amount_a")
    validate_positive(reserve_a, "reserve_a")
    return amount_a / reserve_a


def shares_to_burn(total_shares: float, fraction: float) -> float:
    """Доли, сжигаемые при выводе fraction пула."""
    validate_non_negative(total_shares, "total_shares")
    validate_non_negative(fraction, "fraction")
    return total_shares * fraction


def paired_amount(amount: float, reserve_from: float, reserve_to: float) -> float:
    """
    Парная сумма в текущем соотношении резервов.

    Returns:
        amount * reserve_to / reserve_from; 0.0 для пустого пула

    Examples:
        >>> paired_amount(10.0, 1000.0, 4800.0)
        48.0
        >>> paired_amount(10.0, 0.0, 0.0)
        0.0
    """
    return safe_divide(amount * reserve_to, reserve_from)
