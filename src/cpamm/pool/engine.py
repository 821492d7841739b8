"""Pool Engine — машина состояний пула постоянного произведения.

Операции (каждая атомарна: применяется целиком или отклоняется целиком):
- create_pool      : инициализация резервов, выпуск sqrt(a*b) долей
- add_liquidity    : депозит пары сумм, выпуск долей по стороне A
- remove_liquidity : вывод пары сумм, сжигание долей по стороне A
- swap             : обмен через Swap Calculator с разделением комиссии

Порядок каждой операции:
1. Валидация входов против текущего состояния
2. Расчёт нового PoolState, реестра LP и записи журнала (без мутаций)
3. Присваивание всех трёх под одной блокировкой

Отказы возвращаются как OperationResult с кодом PoolError; исключения
бросаются только на ошибках программирования.

Асимметрия add/remove: движок доверяет переданной паре сумм и считает
доли только по стороне A. Несогласованная сторона B логируется
(WARNING), а при strict_ratio_check=True отклоняется как InvalidAmount.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cpamm.core.contracts import validate_event_record, validate_pool_snapshot
from cpamm.core.domain.events import (
    AddLiquidityPayload,
    CreatePoolPayload,
    EventKind,
    EventPayload,
    EventRecord,
    RemoveLiquidityPayload,
    SwapPayload,
)
from cpamm.core.domain.pool_state import Asset, PoolSnapshot, PoolState, SwapDirection
from cpamm.core.math.liquidity import (
    initial_shares,
    paired_amount,
    shares_for_deposit,
    shares_to_burn,
    withdraw_fraction,
)
from cpamm.core.math.numerical_safeguards import (
    EPS_FLOAT_COMPARE_ABS,
    EPS_FLOAT_COMPARE_REL,
    clamp,
    is_close,
    is_valid_float,
    relative_deviation,
    safe_divide,
)
from cpamm.core.math.swap_calculator import (
    SwapQuote,
    execution_price_b_per_a,
    fee_rates_valid,
    quote_swap,
    reverse_quote_swap,
)

from .errors import PoolError, PoolOperationError
from .event_log import EventLog

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class PoolEngineConfig:
    """Конфигурация Pool Engine."""

    # Толерантность сравнений float (доли, пыль, полный вывод)
    rel_tolerance: float = EPS_FLOAT_COMPARE_REL
    abs_tolerance: float = EPS_FLOAT_COMPARE_ABS

    # Допустимое отклонение стороны B от соотношения резервов
    ratio_tolerance: float = 1e-6
    strict_ratio_check: bool = False

    # Комиссии по умолчанию для create_pool (0.2% LP + 0.1% team)
    default_fee_lp_rate: float = 0.002
    default_fee_team_rate: float = 0.001

    # Метки активов для снапшотов
    asset_a_symbol: str = "A"
    asset_b_symbol: str = "B"

    # Проверка записи журнала и снапшота по JSON Schema до присваивания
    validate_contracts: bool = False


# =============================================================================
# RESULTS
# =============================================================================


@dataclass(frozen=True)
class OperationResult:
    """Результат операции движка."""

    operation: EventKind
    accepted: bool
    error: Optional[PoolError]
    details: str

    # Состояние после операции (при отказе неизменное)
    snapshot: PoolSnapshot

    # LP-реестр затронутого провайдера
    provider_id: Optional[str] = None
    provider_shares: float = 0.0

    # Запись журнала (только для принятых операций)
    event: Optional[EventRecord] = None

    # Котировка, по которой принималось решение (только swap)
    quote: Optional[SwapQuote] = None

    def unwrap(self) -> "OperationResult":
        """Возвращает self или бросает PoolOperationError при отказе."""
        if not self.accepted:
            raise PoolOperationError(self)
        return self


@dataclass(frozen=True)
class LiquidityPreview:
    """Предпросмотр add/remove при текущем соотношении резервов."""

    amount_a: float
    amount_b: float
    shares: float  # выпускаемые (add) или сжигаемые (remove) доли
    fraction: float  # amount_a / reserve_a

    # Только для remove с указанным провайдером
    provider_shares: Optional[float] = None
    sufficient: bool = True


_EMPTY_PREVIEW = LiquidityPreview(amount_a=0.0, amount_b=0.0, shares=0.0, fraction=0.0)


# =============================================================================
# ENGINE
# =============================================================================


class PoolEngine:
    """Pool Engine: владелец состояния пула, LP-реестра и журнала.

    Состояние явное и принадлежит экземпляру: независимые движки не делят
    ничего. Одна RLock на экземпляр охватывает validate-then-mutate, так что
    ни одна операция не видит частично применённую предыдущую.
    """

    def __init__(self, config: Optional[PoolEngineConfig] = None):
        """
        Args:
            config: конфигурация движка (опционально, используется default)
        """
        self.config = config or PoolEngineConfig()
        self._lock = threading.RLock()
        self._state = PoolState(
            fee_lp_rate=self.config.default_fee_lp_rate,
            fee_team_rate=self.config.default_fee_team_rate,
        )
        self._ledger: Dict[str, float] = {}
        self._events = EventLog()

    # -------------------------------------------------------------------------
    # Read API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def events(self) -> tuple[EventRecord, ...]:
        """Снимок журнала операций (только чтение)."""
        return self._events.records()

    def events_of(self, kind: EventKind) -> tuple[EventRecord, ...]:
        """Записи журнала одного вида операции."""
        return self._events.records(EventKind(kind))

    @property
    def is_initialized(self) -> bool:
        return self._state.is_initialized

    def snapshot(self) -> PoolSnapshot:
        """Снапшот с производными k и спот-ценой."""
        with self._lock:
            return self._snapshot_of(self._state)

    def ledger(self) -> Dict[str, float]:
        """Копия LP-реестра provider_id -> доли."""
        with self._lock:
            return dict(self._ledger)

    def shares_of(self, provider_id: str) -> float:
        with self._lock:
            return self._ledger.get(provider_id, 0.0)

    # -------------------------------------------------------------------------
    # Quotes (read-only)
    # -------------------------------------------------------------------------

    def quote(self, direction: SwapDirection, amount_in: float) -> SwapQuote:
        """Котировка свопа по сумме входа на текущих резервах."""
        direction = SwapDirection(direction)
        with self._lock:
            state = self._state
        input_reserve, output_reserve = state.reserves_for(direction)
        result = quote_swap(
            amount_in, input_reserve, output_reserve, state.fee_lp_rate, state.fee_team_rate
        )
        logger.debug(
            "quote %s amount_in=%s -> amount_out=%.6f slippage=%.6f",
            direction.value, amount_in, result.amount_out, result.slippage,
        )
        return result

    def reverse_quote(self, direction: SwapDirection, desired_out: float) -> SwapQuote:
        """Котировка свопа по желаемому выходу на текущих резервах."""
        direction = SwapDirection(direction)
        with self._lock:
            state = self._state
        input_reserve, output_reserve = state.reserves_for(direction)
        result = reverse_quote_swap(
            desired_out, input_reserve, output_reserve, state.fee_lp_rate, state.fee_team_rate
        )
        logger.debug(
            "reverse quote %s desired_out=%s -> amount_in=%.6f",
            direction.value, desired_out, result.amount_in,
        )
        return result

    # -------------------------------------------------------------------------
    # Liquidity previews (read-only)
    # -------------------------------------------------------------------------

    def preview_add_liquidity(self, asset: Asset, amount: float) -> LiquidityPreview:
        """Парная сумма и выпускаемые доли для депозита amount актива asset.

        Returns:
            LiquidityPreview; нулевой для пустого пула или невалидной суммы
        """
        asset = Asset(asset)
        with self._lock:
            state = self._state
        if not state.is_initialized or not self._is_positive_amount(amount):
            return _EMPTY_PREVIEW

        amount_a, amount_b = self._pair_amounts(state, asset, amount)
        return LiquidityPreview(
            amount_a=amount_a,
            amount_b=amount_b,
            shares=shares_for_deposit(state.total_shares, amount_a, state.reserve_a),
            fraction=withdraw_fraction(amount_a, state.reserve_a),
        )

    def preview_remove_liquidity(
        self, asset: Asset, amount: float, provider_id: Optional[str] = None
    ) -> LiquidityPreview:
        """Парная сумма и сжигаемые доли для вывода amount актива asset.

        Если указан provider_id, заполняет provider_shares и sufficient.
        """
        asset = Asset(asset)
        with self._lock:
            state = self._state
            balance = self._ledger.get(provider_id, 0.0) if provider_id else None
        if not state.is_initialized or not self._is_positive_amount(amount):
            return _EMPTY_PREVIEW

        amount_a, amount_b = self._pair_amounts(state, asset, amount)
        fraction = withdraw_fraction(amount_a, state.reserve_a)
        shares = shares_to_burn(state.total_shares, fraction)

        sufficient = True
        if balance is not None:
            sufficient = not self._exceeds(shares, balance)

        return LiquidityPreview(
            amount_a=amount_a,
            amount_b=amount_b,
            shares=shares,
            fraction=fraction,
            provider_shares=balance,
            sufficient=sufficient,
        )

    # -------------------------------------------------------------------------
    # CreatePool
    # -------------------------------------------------------------------------

    def create_pool(
        self,
        amount_a: float,
        amount_b: float,
        fee_lp_rate: Optional[float] = None,
        fee_team_rate: Optional[float] = None,
        provider_id: str = "admin",
    ) -> OperationResult:
        """Создание пула.

        Выпускает sqrt(amount_a * amount_b) долей и зачисляет их provider_id.
        Обнуляет накопленный доход протокола.

        Отказы: AlreadyInitialized, InvalidAmount, InvalidFeeConfig.
        """
        op = EventKind.CREATE
        if fee_lp_rate is None:
            fee_lp_rate = self.config.default_fee_lp_rate
        if fee_team_rate is None:
            fee_team_rate = self.config.default_fee_team_rate

        with self._lock:
            state = self._state

            if state.is_initialized:
                return self._reject(op, PoolError.ALREADY_INITIALIZED,
                                    "pool already initialized", provider_id)
            if not self._is_provider(provider_id):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"invalid provider_id {provider_id!r}")
            if not (self._is_positive_amount(amount_a) and self._is_positive_amount(amount_b)):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"amounts must be positive, got a={amount_a}, b={amount_b}",
                                    provider_id)
            if not fee_rates_valid(fee_lp_rate, fee_team_rate):
                return self._reject(op, PoolError.INVALID_FEE_CONFIG,
                                    f"invalid fee rates: lp={fee_lp_rate}, team={fee_team_rate}",
                                    provider_id)

            minted = initial_shares(amount_a, amount_b)
            if not self._all_finite(amount_a, amount_b, minted):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"initial share mint overflows: a={amount_a}, b={amount_b}",
                                    provider_id)
            new_state = PoolState(
                reserve_a=amount_a,
                reserve_b=amount_b,
                total_shares=minted,
                fee_lp_rate=fee_lp_rate,
                fee_team_rate=fee_team_rate,
                protocol_earnings_a=0.0,
                protocol_earnings_b=0.0,
            )
            payload = CreatePoolPayload(
                provider_id=provider_id,
                amount_a=amount_a,
                amount_b=amount_b,
                fee_lp_rate=fee_lp_rate,
                fee_team_rate=fee_team_rate,
                shares_minted=minted,
            )
            return self._commit(op, new_state, {provider_id: minted}, payload, provider_id,
                                details=f"pool created, shares_minted={minted:.6f}")

    # -------------------------------------------------------------------------
    # AddLiquidity
    # -------------------------------------------------------------------------

    def add_liquidity(self, amount_a: float, amount_b: float, provider_id: str) -> OperationResult:
        """Добавление ликвидности.

        Доли: total_shares * amount_a / reserve_a. Сторона B принимается как
        передана (вызывающий код отвечает за соотношение резервов).

        Отказы: PoolNotInitialized, InvalidAmount.
        """
        op = EventKind.ADD
        with self._lock:
            state = self._state

            if not state.is_initialized:
                return self._reject(op, PoolError.POOL_NOT_INITIALIZED,
                                    "pool is not initialized", provider_id)
            if not self._is_provider(provider_id):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"invalid provider_id {provider_id!r}")
            if not (self._is_positive_amount(amount_a) and self._is_positive_amount(amount_b)):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"amounts must be positive, got a={amount_a}, b={amount_b}",
                                    provider_id)

            deviation = self._ratio_deviation(state, amount_a, amount_b)
            if deviation > self.config.ratio_tolerance:
                if self.config.strict_ratio_check:
                    return self._reject(op, PoolError.INVALID_AMOUNT,
                                        f"amount_b deviates from reserve ratio by {deviation:.6e}",
                                        provider_id)
                logger.warning(
                    "add_liquidity: amount_b off reserve ratio by %.6e (provider=%s), minting by A side",
                    deviation, provider_id,
                )

            minted = shares_for_deposit(state.total_shares, amount_a, state.reserve_a)
            new_reserve_a = state.reserve_a + amount_a
            new_reserve_b = state.reserve_b + amount_b
            new_total = state.total_shares + minted
            if not self._all_finite(new_reserve_a, new_reserve_b, new_total, minted):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"deposit overflows pool totals: a={amount_a}, b={amount_b}",
                                    provider_id)
            new_state = self._next_state(
                state,
                reserve_a=new_reserve_a,
                reserve_b=new_reserve_b,
                total_shares=new_total,
            )
            new_ledger = dict(self._ledger)
            new_ledger[provider_id] = new_ledger.get(provider_id, 0.0) + minted

            payload = AddLiquidityPayload(
                provider_id=provider_id,
                amount_a=amount_a,
                amount_b=amount_b,
                shares_minted=minted,
                ratio_deviation=deviation,
            )
            return self._commit(op, new_state, new_ledger, payload, provider_id,
                                details=f"liquidity added, shares_minted={minted:.6f}")

    # -------------------------------------------------------------------------
    # RemoveLiquidity
    # -------------------------------------------------------------------------

    def remove_liquidity(self, amount_a: float, amount_b: float, provider_id: str) -> OperationResult:
        """Вывод ликвидности.

        fraction = amount_a / reserve_a; сжигается total_shares * fraction.
        Сжигание последних долей обнуляет пул целиком (резервы и доли),
        после чего create_pool снова доступен. Такой вывод отдаёт оба резерва,
        поэтому сторона B обязана быть в пропорции при любом strict_ratio_check.

        Отказы: PoolNotInitialized, InvalidAmount, InsufficientShares.
        """
        op = EventKind.REMOVE
        with self._lock:
            state = self._state

            if not state.is_initialized:
                return self._reject(op, PoolError.POOL_NOT_INITIALIZED,
                                    "pool is not initialized", provider_id)
            if not self._is_provider(provider_id):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"invalid provider_id {provider_id!r}")
            if not (self._is_positive_amount(amount_a) and self._is_positive_amount(amount_b)):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"amounts must be positive, got a={amount_a}, b={amount_b}",
                                    provider_id)

            fraction = withdraw_fraction(amount_a, state.reserve_a)
            shares_needed = shares_to_burn(state.total_shares, fraction)
            balance = self._ledger.get(provider_id, 0.0)

            if self._exceeds(shares_needed, balance):
                return self._reject(
                    op, PoolError.INSUFFICIENT_SHARES,
                    f"provider {provider_id} holds {balance:.6f} shares, {shares_needed:.6f} required",
                    provider_id,
                )

            deviation = self._ratio_deviation(state, amount_a, amount_b)
            if deviation > self.config.ratio_tolerance:
                if self.config.strict_ratio_check:
                    return self._reject(op, PoolError.INVALID_AMOUNT,
                                        f"amount_b deviates from reserve ratio by {deviation:.6e}",
                                        provider_id)
                logger.warning(
                    "remove_liquidity: amount_b off reserve ratio by %.6e (provider=%s), burning by A side",
                    deviation, provider_id,
                )

            # Шум округления сверх баланса и пылевой остаток сжигают баланс целиком
            burned = min(shares_needed, balance)
            if self._is_dust(balance - burned, balance):
                burned = balance
            remaining_shares = state.total_shares - burned

            new_ledger = dict(self._ledger)
            if burned == balance:
                new_ledger.pop(provider_id, None)
            else:
                new_ledger[provider_id] = balance - burned

            released_a, released_b = amount_a, amount_b
            if self._is_dust(remaining_shares, state.total_shares):
                # Полный вывод отдаёт оба резерва целиком: B обязан быть в пропорции
                if deviation > self.config.ratio_tolerance:
                    return self._reject(
                        op, PoolError.INVALID_AMOUNT,
                        f"full withdrawal must release both reserves in ratio, "
                        f"amount_b deviates by {deviation:.6e}",
                        provider_id,
                    )
                # Оставшиеся записи реестра: пыль того же порядка
                new_ledger = {}
                released_a, released_b = state.reserve_a, state.reserve_b
                new_state = self._next_state(state, reserve_a=0.0, reserve_b=0.0, total_shares=0.0)
                logger.info("remove_liquidity: last shares burned, pool drained")
            else:
                new_reserve_a = clamp(state.reserve_a - amount_a, 0.0)
                new_reserve_b = clamp(state.reserve_b - amount_b, 0.0)
                if new_reserve_a <= 0 or new_reserve_b <= 0:
                    return self._reject(
                        op, PoolError.INVALID_AMOUNT,
                        "withdrawal would empty a reserve while shares remain outstanding",
                        provider_id,
                    )
                new_state = self._next_state(
                    state,
                    reserve_a=new_reserve_a,
                    reserve_b=new_reserve_b,
                    total_shares=remaining_shares,
                )

            payload = RemoveLiquidityPayload(
                provider_id=provider_id,
                amount_a=released_a,
                amount_b=released_b,
                fraction=min(fraction, 1.0),
                shares_burned=burned,
                ratio_deviation=deviation,
            )
            return self._commit(op, new_state, new_ledger, payload, provider_id,
                                details=f"liquidity removed, shares_burned={burned:.6f}")

    # -------------------------------------------------------------------------
    # Swap
    # -------------------------------------------------------------------------

    def swap(
        self, direction: SwapDirection, amount_in: float, max_slippage: float = 0.10
    ) -> OperationResult:
        """Своп amount_in в направлении direction.

        Резерв входа растёт на (amount_in - fee_team): LP-комиссия остаётся в
        пуле, team-комиссия уходит в protocol_earnings актива входа. Резерв
        выхода уменьшается на amount_out.

        Args:
            direction: A->B или B->A
            amount_in: сумма входа
            max_slippage: допустимое проскальзывание, доля в [0, 1]
                (1.0 — без ограничения)

        Отказы: PoolNotInitialized, InvalidAmount, SlippageExceeded,
        InsufficientOutputLiquidity.
        """
        op = EventKind.SWAP
        direction = SwapDirection(direction)

        with self._lock:
            state = self._state

            if not state.is_initialized:
                return self._reject(op, PoolError.POOL_NOT_INITIALIZED, "pool is not initialized")
            if not self._is_positive_amount(amount_in):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"amount_in must be positive, got {amount_in}")
            if not (is_valid_float(max_slippage) and 0 <= max_slippage <= 1):
                return self._reject(op, PoolError.INVALID_AMOUNT,
                                    f"max_slippage must be within [0, 1], got {max_slippage}")

            input_reserve, output_reserve = state.reserves_for(direction)
            quote = quote_swap(
                amount_in, input_reserve, output_reserve, state.fee_lp_rate, state.fee_team_rate
            )

            if quote.slippage > max_slippage:
                return self._reject(
                    op, PoolError.SLIPPAGE_EXCEEDED,
                    f"slippage {quote.slippage:.6f} > max {max_slippage:.6f}",
                    quote=quote,
                )
            if quote.is_empty or quote.amount_out >= output_reserve:
                return self._reject(
                    op, PoolError.INSUFFICIENT_OUTPUT_LIQUIDITY,
                    f"amount_out {quote.amount_out:.6f} would drain reserve {output_reserve:.6f}",
                    quote=quote,
                )

            new_input_reserve = input_reserve + (amount_in - quote.fee_team)
            new_output_reserve = output_reserve - quote.amount_out
            if direction is SwapDirection.A_TO_B:
                new_earnings = state.protocol_earnings_a + quote.fee_team
            else:
                new_earnings = state.protocol_earnings_b + quote.fee_team

            if not self._all_finite(new_input_reserve, new_output_reserve, new_earnings):
                return self._reject(
                    op, PoolError.INVALID_AMOUNT,
                    f"swap of {amount_in} overflows the input reserve {input_reserve}",
                    quote=quote,
                )

            if direction is SwapDirection.A_TO_B:
                new_state = self._next_state(
                    state,
                    reserve_a=new_input_reserve,
                    reserve_b=new_output_reserve,
                    protocol_earnings_a=new_earnings,
                )
            else:
                new_state = self._next_state(
                    state,
                    reserve_a=new_output_reserve,
                    reserve_b=new_input_reserve,
                    protocol_earnings_b=new_earnings,
                )

            payload = SwapPayload(
                direction=direction,
                amount_in=amount_in,
                amount_out=quote.amount_out,
                fee_lp=quote.fee_lp,
                fee_team=quote.fee_team,
                fee_total=quote.fee_total,
                price_exec=quote.price_exec,
                price_exec_b_per_a=execution_price_b_per_a(direction, quote),
                slippage=quote.slippage,
                max_slippage=max_slippage,
            )
            return self._commit(
                op, new_state, self._ledger, payload, None, quote=quote,
                details=f"swap {direction.value}: in={amount_in:.6f} out={quote.amount_out:.6f}",
            )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _snapshot_of(self, state: PoolState) -> PoolSnapshot:
        return PoolSnapshot.from_state(
            state, self.config.asset_a_symbol, self.config.asset_b_symbol
        )

    @staticmethod
    def _next_state(state: PoolState, **changes: Any) -> PoolState:
        # Полная валидация: model_copy(update=...) валидаторы не запускает
        return PoolState(**{**state.model_dump(), **changes})

    @staticmethod
    def _is_positive_amount(value: float) -> bool:
        return is_valid_float(value) and value > 0

    @staticmethod
    def _all_finite(reserve_a: float, reserve_b: float, *values: float) -> bool:
        """Новые резервы, их k и спот-цена и прочие итоги не переполнились в inf/NaN."""
        derived = (reserve_a * reserve_b, safe_divide(reserve_b, reserve_a))
        return all(is_valid_float(v) for v in (reserve_a, reserve_b, *values, *derived))

    @staticmethod
    def _is_provider(provider_id: str) -> bool:
        return isinstance(provider_id, str) and bool(provider_id.strip())

    @staticmethod
    def _pair_amounts(state: PoolState, asset: Asset, amount: float) -> tuple[float, float]:
        if asset is Asset.A:
            return amount, paired_amount(amount, state.reserve_a, state.reserve_b)
        return paired_amount(amount, state.reserve_b, state.reserve_a), amount

    @staticmethod
    def _ratio_deviation(state: PoolState, amount_a: float, amount_b: float) -> float:
        expected_b = paired_amount(amount_a, state.reserve_a, state.reserve_b)
        return relative_deviation(amount_b, expected_b)

    def _exceeds(self, required: float, available: float) -> bool:
        """required > available с учётом толерантности."""
        if required <= available:
            return False
        return not is_close(
            required, available,
            rel_tol=self.config.rel_tolerance, abs_tol=self.config.abs_tolerance,
        )

    def _is_dust(self, value: float, scale: float) -> bool:
        """Остаток неотличим от нуля относительно scale."""
        threshold = max(self.config.abs_tolerance, self.config.rel_tolerance * abs(scale))
        return abs(value) <= threshold

    def _reject(
        self,
        operation: EventKind,
        error: PoolError,
        details: str,
        provider_id: Optional[str] = None,
        quote: Optional[SwapQuote] = None,
    ) -> OperationResult:
        logger.warning("%s rejected: %s (%s)", operation.value, error.value, details)
        provider_shares = 0.0
        if isinstance(provider_id, str):
            provider_shares = self._ledger.get(provider_id, 0.0)
        return OperationResult(
            operation=operation,
            accepted=False,
            error=error,
            details=details,
            snapshot=self._snapshot_of(self._state),
            provider_id=provider_id,
            provider_shares=provider_shares,
            quote=quote,
        )

    def _commit(
        self,
        operation: EventKind,
        new_state: PoolState,
        new_ledger: Dict[str, float],
        payload: EventPayload,
        provider_id: Optional[str],
        details: str,
        quote: Optional[SwapQuote] = None,
    ) -> OperationResult:
        # Запись журнала строится до присваивания: ошибка валидации не оставит
        # частично применённого состояния
        record = EventRecord(
            sequence=self._events.next_sequence(),
            payload=payload,
            reserve_a=new_state.reserve_a,
            reserve_b=new_state.reserve_b,
            total_shares=new_state.total_shares,
            protocol_earnings_a=new_state.protocol_earnings_a,
            protocol_earnings_b=new_state.protocol_earnings_b,
        )
        snapshot = self._snapshot_of(new_state)
        if self.config.validate_contracts:
            # jsonschema.ValidationError здесь: ошибка программирования, состояние не тронуто
            validate_event_record(record)
            validate_pool_snapshot(snapshot)

        self._state = new_state
        self._ledger = new_ledger
        self._events.append(record)

        logger.info(
            "%s #%d accepted: reserve_a=%.6f reserve_b=%.6f total_shares=%.6f spot=%.6f",
            operation.value, record.sequence, new_state.reserve_a, new_state.reserve_b,
            new_state.total_shares, safe_divide(new_state.reserve_b, new_state.reserve_a),
        )
        return OperationResult(
            operation=operation,
            accepted=True,
            error=None,
            details=details,
            snapshot=snapshot,
            provider_id=provider_id,
            provider_shares=new_ledger.get(provider_id, 0.0) if provider_id else 0.0,
            event=record,
            quote=quote,
        )
