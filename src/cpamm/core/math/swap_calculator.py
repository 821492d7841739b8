"""
Swap Calculator — ценообразование свопа в пуле x*y=k

Модуль вычисляет для гипотетической или реальной сделки:
- выход по формуле постоянного произведения (после вычета комиссии)
- разделение комиссии на LP-часть и team/protocol-часть
- цену исполнения и проскальзывание относительно спотовой цены

Формулы:
    total_fee_rate     = fee_lp_rate + fee_team_rate
    fee_total          = amount_in * total_fee_rate
    fee_lp             = fee_total * fee_lp_rate / total_fee_rate
    fee_team           = fee_total * fee_team_rate / total_fee_rate
    amount_in_after_fee = amount_in - fee_total
    amount_out         = R_out * amount_in_after_fee / (R_in + amount_in_after_fee)
    price_before       = R_out / R_in
    price_exec         = amount_out / amount_in_after_fee
    slippage           = (price_before - price_exec) / price_before

amount_out точен для инварианта:
    (R_in + amount_in_after_fee) * (R_out - amount_out) = R_in * R_out

Функции модуля не имеют состояния и никогда не бросают исключений на
вырожденных входах: возвращается нулевая котировка (zero_quote).
"""

from dataclasses import dataclass
from typing import Final

from cpamm.core.domain.pool_state import SwapDirection
from cpamm.core.math.numerical_safeguards import clamp, is_valid_float, safe_divide


# Котировка без торговли (все поля нулевые)
_ZERO: Final[float] = 0.0


# =============================================================================
# ТИПЫ
# =============================================================================


@dataclass(frozen=True)
class SwapQuote:
    """Результат расчёта свопа.

    Все суммы в единицах соответствующего актива: amount_in и комиссии — в
    активе входа, amount_out — в активе выхода. Цены выражены как
    "единиц выхода за единицу входа".
    """

    amount_in: float
    amount_out: float

    # Комиссии (в активе входа)
    fee_lp: float
    fee_team: float
    fee_total: float
    amount_in_after_fee: float

    # Цены
    price_before: float  # R_out / R_in до сделки
    price_exec: float  # amount_out / amount_in_after_fee

    # Доля ухудшения цены исполнения относительно спота
    slippage: float

    @property
    def is_empty(self) -> bool:
        """True для нулевой котировки (вырожденный вход)."""
        return self.amount_in == 0.0 and self.amount_out == 0.0


def zero_quote() -> SwapQuote:
    """Нулевая котировка для вырожденных входов."""
    return SwapQuote(
        amount_in=_ZERO,
        amount_out=_ZERO,
        fee_lp=_ZERO,
        fee_team=_ZERO,
        fee_total=_ZERO,
        amount_in_after_fee=_ZERO,
        price_before=_ZERO,
        price_exec=_ZERO,
        slippage=_ZERO,
    )


# =============================================================================
# ВАЛИДАЦИЯ ВХОДОВ
# =============================================================================


def fee_rates_valid(fee_lp_rate: float, fee_team_rate: float) -> bool:
    """
    Проверка конфигурации комиссий.

    Условия: обе ставки конечны, каждая в [0, 1), сумма < 1.

    Examples:
        >>> fee_rates_valid(0.002, 0.001)
        True
        >>> fee_rates_valid(0.6, 0.5)
        False
    """
    if not (is_valid_float(fee_lp_rate) and is_valid_float(fee_team_rate)):
        return False
    if fee_lp_rate < 0 or fee_team_rate < 0:
        return False
    if fee_lp_rate >= 1 or fee_team_rate >= 1:
        return False
    return fee_lp_rate + fee_team_rate < 1


def _is_degenerate(amount: float, input_reserve: float, output_reserve: float) -> bool:
    values = (amount, input_reserve, output_reserve)
    if not all(is_valid_float(v) for v in values):
        return True
    return amount <= 0 or input_reserve <= 0 or output_reserve <= 0


# =============================================================================
# ПРЯМАЯ КОТИРОВКА
# =============================================================================


def quote_swap(
    amount_in: float,
    input_reserve: float,
    output_reserve: float,
    fee_lp_rate: float,
    fee_team_rate: float,
) -> SwapQuote:
    """
    Расчёт свопа по сумме входа.

    Args:
        amount_in: Сумма входа (в активе входа)
        input_reserve: Резерв актива входа
        output_reserve: Резерв актива выхода
        fee_lp_rate: Доля комиссии LP (остаётся в пуле)
        fee_team_rate: Доля комиссии team/protocol (выводится из резервов)

    Returns:
        SwapQuote; zero_quote() если amount_in <= 0, любой резерв <= 0
        или конфигурация комиссий невалидна

    Examples:
        >>> q = quote_swap(10.0, 1000.0, 4800.0, 0.002, 0.001)
        >>> round(q.amount_out, 2)
        47.38
        >>> round(q.fee_team, 6)
        0.01
    """
    if _is_degenerate(amount_in, input_reserve, output_reserve):
        return zero_quote()
    if not fee_rates_valid(fee_lp_rate, fee_team_rate):
        return zero_quote()

    total_fee_rate = fee_lp_rate + fee_team_rate
    fee_total = amount_in * total_fee_rate

    # При нулевой суммарной ставке деление пропускается
    if total_fee_rate > 0:
        fee_lp = fee_total * (fee_lp_rate / total_fee_rate)
        fee_team = fee_total * (fee_team_rate / total_fee_rate)
    else:
        fee_lp = 0.0
        fee_team = 0.0

    amount_in_after_fee = amount_in - fee_total

    # Постоянное произведение (Uniswap V2)
    amount_out = (output_reserve * amount_in_after_fee) / (
        input_reserve + amount_in_after_fee
    )

    price_before = output_reserve / input_reserve
    price_exec = safe_divide(amount_out, amount_in_after_fee)

    slippage = 0.0
    if price_before > 0:
        # Отрицательный остаток после вычитания: шум округления
        slippage = clamp((price_before - price_exec) / price_before, 0.0)

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        fee_lp=fee_lp,
        fee_team=fee_team,
        fee_total=fee_total,
        amount_in_after_fee=amount_in_after_fee,
        price_before=price_before,
        price_exec=price_exec,
        slippage=slippage,
    )


# =============================================================================
# ОБРАТНАЯ КОТИРОВКА
# =============================================================================


def required_amount_in(
    desired_out: float,
    input_reserve: float,
    output_reserve: float,
    fee_lp_rate: float,
    fee_team_rate: float,
) -> float:
    """
    Сумма входа, необходимая для получения desired_out.

    Алгебраическое обращение формулы выхода:
        amount_in = (R_in * desired_out) / ((1 - total_fee_rate) * (R_out - desired_out))

    Returns:
        Требуемая сумма входа; 0.0 если запрос неисполним
        (desired_out >= R_out, вырожденные резервы, невалидные комиссии)
    """
    if _is_degenerate(desired_out, input_reserve, output_reserve):
        return 0.0
    if not fee_rates_valid(fee_lp_rate, fee_team_rate):
        return 0.0
    if output_reserve - desired_out <= 0:
        return 0.0

    net_rate = 1.0 - (fee_lp_rate + fee_team_rate)
    denominator = net_rate * (output_reserve - desired_out)
    if denominator <= 0:
        return 0.0

    return safe_divide(input_reserve * desired_out, denominator)


def reverse_quote_swap(
    desired_out: float,
    input_reserve: float,
    output_reserve: float,
    fee_lp_rate: float,
    fee_team_rate: float,
) -> SwapQuote:
    """
    Котировка по желаемому выходу.

    Вычисляет требуемый вход (required_amount_in), затем прогоняет прямую
    котировку на этом входе: возвращённая котировка содержит разбивку
    комиссии, цену исполнения и проскальзывание сделки, которая даст
    desired_out.

    Returns:
        SwapQuote с amount_out ≈ desired_out; zero_quote() если запрос
        неисполним (бесконечный вход не вычисляется)

    Examples:
        >>> fwd = quote_swap(10.0, 1000.0, 4800.0, 0.002, 0.001)
        >>> q = reverse_quote_swap(fwd.amount_out, 1000.0, 4800.0, 0.002, 0.001)
        >>> round(q.amount_in, 6)
        10.0
        >>> reverse_quote_swap(4800.0, 1000.0, 4800.0, 0.002, 0.001).is_empty
        True
    """
    amount_in = required_amount_in(
        desired_out, input_reserve, output_reserve, fee_lp_rate, fee_team_rate
    )
    if amount_in <= 0:
        return zero_quote()

    return quote_swap(amount_in, input_reserve, output_reserve, fee_lp_rate, fee_team_rate)


# =============================================================================
# ОРИЕНТАЦИЯ ЦЕНЫ
# =============================================================================


def execution_price_b_per_a(direction: SwapDirection, quote: SwapQuote) -> float:
    """
    Цена исполнения в единой ориентации: единиц B за единицу A.

    Для A→B price_exec уже в B/A; для B→A она в A/B и инвертируется.

    Returns:
        Цена B/A; 0.0 для нулевой котировки
    """
    if quote.price_exec == 0.0:
        return 0.0
    if direction == SwapDirection.A_TO_B:
        return quote.price_exec
    return 1.0 / quote.price_exec
