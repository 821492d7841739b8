"""
Numerical Safeguards — Safe Math Primitives для симулятора пула

Модуль обеспечивает численную устойчивость расчётов резервов, долей и цен:
- Безопасное деление с защитой от деления на ноль
- NaN/Inf санитизация для предотвращения распространения невалидных значений
- Сравнения float с относительной толерантностью (резервы и доли копятся
  через многократные сложения/вычитания, точное равенство недостижимо)
- Валидация параметров для чистых функций

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Деление на ноль никогда не происходит (возвращается fallback)
2. NaN/Inf никогда не пропагируют в состояние пула
3. Все сравнения долей и резервов используют одну и ту же толерантность
"""

import math
from typing import Final

# =============================================================================
# EPSILON-ПАРАМЕТРЫ
# =============================================================================

# Относительная толерантность сравнения float.
# Используется для проверки сохранения долей: sum(ledger) == total_shares
EPS_FLOAT_COMPARE_REL: Final[float] = 1e-9

# Абсолютная толерантность сравнения float (значения около нуля)
EPS_FLOAT_COMPARE_ABS: Final[float] = 1e-12


# =============================================================================
# БЕЗОПАСНОЕ ДЕЛЕНИЕ
# =============================================================================


def safe_divide(
    numerator: float,
    denominator: float,
    fallback: float = 0.0,
) -> float:
    """
    Безопасное деление с защитой от деления на ноль и NaN/Inf.

    В отличие от epsilon-зажима знаменателя, здесь любой нулевой или
    невалидный знаменатель даёт fallback: цена пустого пула — 0, а не 1e12.

    Args:
        numerator: Числитель
        denominator: Знаменатель
        fallback: Значение при делении на ноль (default: 0.0)

    Returns:
        Результат деления или fallback

    Examples:
        >>> safe_divide(4800.0, 1000.0)
        4.8
        >>> safe_divide(10.0, 0.0)
        0.0
        >>> safe_divide(float('nan'), 2.0, fallback=-1.0)
        -1.0
    """
    if not is_valid_float(numerator) or not is_valid_float(denominator):
        return fallback

    if denominator == 0.0:
        return fallback

    return sanitize_float(numerator / denominator, fallback=fallback)


# =============================================================================
# NaN/Inf САНИТИЗАЦИЯ
# =============================================================================


def is_valid_float(value: float) -> bool:
    """
    Проверка, является ли float валидным (не NaN, не Inf).

    Args:
        value: Проверяемое значение

    Returns:
        True если значение конечное
    """
    return math.isfinite(value)


def sanitize_float(value: float, fallback: float = 0.0) -> float:
    """
    Санитизация float: замена NaN/Inf на fallback значение.

    Examples:
        >>> sanitize_float(10.0)
        10.0
        >>> sanitize_float(float('inf'))
        0.0
    """
    if is_valid_float(value):
        return value
    return fallback


# =============================================================================
# EPSILON-СРАВНЕНИЯ FLOAT
# =============================================================================


def is_close(
    a: float,
    b: float,
    rel_tol: float = EPS_FLOAT_COMPARE_REL,
    abs_tol: float = EPS_FLOAT_COMPARE_ABS,
) -> bool:
    """
    Сравнение float с учётом машинной точности.

    Алгоритм:
        abs(a - b) <= max(rel_tol * max(abs(a), abs(b)), abs_tol)

    Args:
        a: Первое значение
        b: Второе значение
        rel_tol: Относительная толерантность (default: 1e-9)
        abs_tol: Абсолютная толерантность (default: 1e-12)

    Returns:
        True если значения близки с учётом толерантности

    Examples:
        >>> is_close(2190.890230020664, 2190.890230020665)
        True
        >>> is_close(1.0, 1.1)
        False
    """
    return math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)


def is_zero(value: float, tol: float = EPS_FLOAT_COMPARE_ABS) -> bool:
    """
    Проверка, близко ли значение к нулю с учётом толерантности.

    Returns:
        True если abs(value) <= tol
    """
    return abs(value) <= tol


def relative_deviation(actual: float, expected: float) -> float:
    """
    Относительное отклонение actual от expected.

    Используется для проверки согласованности пары сумм с текущим
    соотношением резервов.

    Returns:
        abs(actual - expected) / abs(expected); 0.0 если оба нуля,
        +inf если expected == 0, а actual нет

    Examples:
        >>> relative_deviation(48.0, 48.0)
        0.0
        >>> relative_deviation(60.0, 48.0)
        0.25
    """
    if expected == 0.0:
        return 0.0 if actual == 0.0 else math.inf
    return abs(actual - expected) / abs(expected)


def clamp(
    value: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """
    Ограничение значения в заданном диапазоне.

    Examples:
        >>> clamp(-1e-13, 0.0)
        0.0
        >>> clamp(15.0, 0.0, 10.0)
        10.0
    """
    result = value

    if min_value is not None:
        result = max(result, min_value)

    if max_value is not None:
        result = min(result, max_value)

    return result


# =============================================================================
# ВАЛИДАЦИЯ И ПРОВЕРКИ
# =============================================================================


def validate_positive(value: float, name: str) -> None:
    """
    Валидация, что значение строго положительное и конечное.

    Raises:
        ValueError: Если value <= 0 или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_non_negative(value: float, name: str) -> None:
    """
    Валидация, что значение неотрицательное и конечное.

    Raises:
        ValueError: Если value < 0 или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
