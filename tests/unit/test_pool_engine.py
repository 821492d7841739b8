"""
Тесты для Pool Engine

Проверяет:
1. CreatePool: выпуск sqrt(a*b) долей, комиссии, повторное создание
2. AddLiquidity: выпуск по стороне A, асимметрия и strict_ratio_check
3. RemoveLiquidity: сжигание долей, InsufficientShares, полный вывод
4. Swap: разделение комиссии, доход протокола, SlippageExceeded,
   InsufficientOutputLiquidity
5. Атомарность: отказ не меняет снапшот, реестр и журнал
6. Котировки, предпросмотры, unwrap и журнал
7. Потокобезопасность (RLock)
"""

import logging
import math
import threading

import pytest

from cpamm.core.domain import Asset, EventKind, SwapDirection
from cpamm.core.math.swap_calculator import quote_swap
from cpamm.pool import (
    OperationResult,
    PoolEngine,
    PoolEngineConfig,
    PoolError,
    PoolOperationError,
)

INITIAL_SHARES = math.sqrt(1000.0 * 4800.0)


@pytest.fixture
def engine() -> PoolEngine:
    """Пул 1000 A / 4800 B, 0.2% LP + 0.1% team, все доли у admin."""
    eng = PoolEngine()
    eng.create_pool(1000.0, 4800.0, 0.002, 0.001, "admin").unwrap()
    return eng


@pytest.fixture
def shared_engine(engine: PoolEngine) -> PoolEngine:
    """Пул с двумя провайдерами: admin и alice."""
    engine.add_liquidity(100.0, 480.0, "alice").unwrap()
    return engine


def _fingerprint(eng: PoolEngine):
    """Состояние, которое отказ обязан оставить неизменным."""
    return eng.snapshot(), eng.ledger(), len(eng.events)


def _assert_rejected(eng: PoolEngine, before, result: OperationResult, error: PoolError) -> None:
    assert not result.accepted
    assert result.error is error
    assert result.event is None
    assert _fingerprint(eng) == before
    assert result.snapshot == before[0]


# =============================================================================
# CREATE POOL
# =============================================================================


class TestCreatePool:
    """Тесты для create_pool"""

    def test_initial_mint(self, engine: PoolEngine) -> None:
        """Выпуск sqrt(a*b) долей, спот 4.8"""
        snap = engine.snapshot()
        assert snap.initialized
        assert snap.total_shares == pytest.approx(2190.890230020664)
        assert snap.spot_price == pytest.approx(4.8)
        assert snap.invariant_k == pytest.approx(4.8e6)
        assert engine.ledger() == {"admin": pytest.approx(INITIAL_SHARES)}

    def test_result_and_event(self) -> None:
        """Результат несёт снапшот, баланс провайдера и запись журнала"""
        eng = PoolEngine()
        result = eng.create_pool(1000.0, 4800.0, 0.002, 0.001, "admin")
        assert result.accepted
        assert result.error is None
        assert result.operation is EventKind.CREATE
        assert result.provider_id == "admin"
        assert result.provider_shares == pytest.approx(INITIAL_SHARES)
        assert result.event.sequence == 1
        assert result.event.kind is EventKind.CREATE
        assert result.event.payload.shares_minted == pytest.approx(INITIAL_SHARES)

    def test_default_fees_from_config(self) -> None:
        """Комиссии по умолчанию берутся из конфигурации"""
        eng = PoolEngine(PoolEngineConfig(default_fee_lp_rate=0.0025, default_fee_team_rate=0.0005))
        eng.create_pool(10.0, 10.0).unwrap()
        assert eng.state.fee_lp_rate == 0.0025
        assert eng.state.fee_team_rate == 0.0005
        assert eng.shares_of("admin") == pytest.approx(10.0)

    def test_asset_symbols_in_snapshot(self) -> None:
        """Метки активов из конфигурации"""
        eng = PoolEngine(PoolEngineConfig(asset_a_symbol="ETH", asset_b_symbol="USDC"))
        snap = eng.create_pool(1.0, 4800.0).snapshot
        assert (snap.asset_a, snap.asset_b) == ("ETH", "USDC")

    def test_already_initialized(self, engine: PoolEngine) -> None:
        """Повторное создание → AlreadyInitialized"""
        before = _fingerprint(engine)
        result = engine.create_pool(1.0, 1.0, 0.0, 0.0, "bob")
        _assert_rejected(engine, before, result, PoolError.ALREADY_INITIALIZED)

    @pytest.mark.parametrize(
        "amount_a,amount_b",
        [(0.0, 4800.0), (1000.0, 0.0), (-1.0, 4800.0), (float("nan"), 4800.0), (1000.0, float("inf"))],
    )
    def test_invalid_amounts(self, amount_a: float, amount_b: float) -> None:
        """Неположительные и NaN/Inf суммы → InvalidAmount"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.create_pool(amount_a, amount_b, 0.002, 0.001, "admin")
        _assert_rejected(eng, before, result, PoolError.INVALID_AMOUNT)

    @pytest.mark.parametrize(
        "fee_lp,fee_team",
        [(0.6, 0.5), (-0.001, 0.001), (1.0, 0.0), (float("nan"), 0.001)],
    )
    def test_invalid_fee_config(self, fee_lp: float, fee_team: float) -> None:
        """Невалидные комиссии → InvalidFeeConfig"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.create_pool(1000.0, 4800.0, fee_lp, fee_team, "admin")
        _assert_rejected(eng, before, result, PoolError.INVALID_FEE_CONFIG)
        assert not eng.is_initialized

    def test_mint_overflow_rejected(self) -> None:
        """sqrt(a*b) переполняется в inf → InvalidAmount, без исключения"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.create_pool(1e200, 1e200, 0.002, 0.001, "admin")
        _assert_rejected(eng, before, result, PoolError.INVALID_AMOUNT)
        assert not eng.is_initialized

    @pytest.mark.parametrize("provider_id", ["", "   "])
    def test_empty_provider(self, provider_id: str) -> None:
        """Пустой provider_id → InvalidAmount"""
        eng = PoolEngine()
        result = eng.create_pool(1000.0, 4800.0, 0.002, 0.001, provider_id)
        assert result.error is PoolError.INVALID_AMOUNT
        assert not eng.is_initialized


# =============================================================================
# ADD LIQUIDITY
# =============================================================================


class TestAddLiquidity:
    """Тесты для add_liquidity"""

    def test_proportional_mint(self, engine: PoolEngine) -> None:
        """Депозит 10% резервов выпускает 10% долей"""
        result = engine.add_liquidity(100.0, 480.0, "alice")
        assert result.accepted
        assert result.provider_shares == pytest.approx(INITIAL_SHARES * 0.1)
        snap = result.snapshot
        assert snap.reserve_a == pytest.approx(1100.0)
        assert snap.reserve_b == pytest.approx(5280.0)
        assert snap.total_shares == pytest.approx(INITIAL_SHARES * 1.1)
        assert snap.spot_price == pytest.approx(4.8)
        assert result.event.payload.ratio_deviation == pytest.approx(0.0, abs=1e-12)

    def test_existing_provider_accumulates(self, engine: PoolEngine) -> None:
        """Повторный депозит увеличивает баланс провайдера"""
        engine.add_liquidity(100.0, 480.0, "admin").unwrap()
        assert engine.shares_of("admin") == pytest.approx(INITIAL_SHARES * 1.1)
        assert list(engine.ledger()) == ["admin"]

    def test_ledger_sums_to_total(self, shared_engine: PoolEngine) -> None:
        """Сумма реестра равна total_shares"""
        total = shared_engine.state.total_shares
        assert sum(shared_engine.ledger().values()) == pytest.approx(total, rel=1e-9)

    def test_off_ratio_trusted_with_warning(self, engine: PoolEngine, caplog) -> None:
        """Несогласованная сторона B принимается, доли считаются по A"""
        with caplog.at_level(logging.WARNING, logger="cpamm.pool.engine"):
            result = engine.add_liquidity(100.0, 600.0, "alice")
        assert result.accepted
        assert result.provider_shares == pytest.approx(INITIAL_SHARES * 0.1)
        assert result.snapshot.reserve_b == pytest.approx(5400.0)
        assert result.event.payload.ratio_deviation == pytest.approx(0.25)
        assert "off reserve ratio" in caplog.text

    def test_strict_ratio_rejects(self) -> None:
        """strict_ratio_check: несогласованная пара → InvalidAmount"""
        eng = PoolEngine(PoolEngineConfig(strict_ratio_check=True))
        eng.create_pool(1000.0, 4800.0, 0.002, 0.001, "admin").unwrap()
        before = _fingerprint(eng)
        result = eng.add_liquidity(100.0, 500.0, "alice")
        _assert_rejected(eng, before, result, PoolError.INVALID_AMOUNT)
        assert eng.add_liquidity(100.0, 480.0, "alice").accepted

    def test_not_initialized(self) -> None:
        """Пустой пул → PoolNotInitialized"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.add_liquidity(100.0, 480.0, "alice")
        _assert_rejected(eng, before, result, PoolError.POOL_NOT_INITIALIZED)

    @pytest.mark.parametrize("amount_a,amount_b", [(0.0, 480.0), (100.0, -1.0), (float("nan"), 480.0)])
    def test_invalid_amounts(self, engine: PoolEngine, amount_a: float, amount_b: float) -> None:
        """Неположительные и NaN суммы → InvalidAmount"""
        before = _fingerprint(engine)
        result = engine.add_liquidity(amount_a, amount_b, "alice")
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)

    def test_empty_provider(self, engine: PoolEngine) -> None:
        """Пустой provider_id → InvalidAmount"""
        before = _fingerprint(engine)
        result = engine.add_liquidity(100.0, 480.0, "")
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)

    def test_overflowing_deposit_rejected(self, engine: PoolEngine) -> None:
        """Конечные суммы, переполняющие доли или резервы → InvalidAmount"""
        before = _fingerprint(engine)
        for _ in range(2):
            result = engine.add_liquidity(1e308, 4.8e307, "whale")
            _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)
        assert "overflows" in result.details
        assert engine.shares_of("whale") == 0.0


# =============================================================================
# REMOVE LIQUIDITY
# =============================================================================


class TestRemoveLiquidity:
    """Тесты для remove_liquidity"""

    def test_partial_withdrawal(self, engine: PoolEngine) -> None:
        """Вывод 10% пула сжигает 10% долей"""
        result = engine.remove_liquidity(100.0, 480.0, "admin")
        assert result.accepted
        snap = result.snapshot
        assert snap.reserve_a == pytest.approx(900.0)
        assert snap.reserve_b == pytest.approx(4320.0)
        assert snap.total_shares == pytest.approx(INITIAL_SHARES * 0.9)
        assert result.provider_shares == pytest.approx(INITIAL_SHARES * 0.9)
        assert result.event.payload.fraction == pytest.approx(0.1)
        assert result.event.payload.shares_burned == pytest.approx(INITIAL_SHARES * 0.1)

    def test_provider_exits_fully(self, shared_engine: PoolEngine) -> None:
        """Вывод всей доли провайдера удаляет запись реестра"""
        state = shared_engine.state
        alice = shared_engine.shares_of("alice")
        fraction = alice / state.total_shares
        result = shared_engine.remove_liquidity(
            state.reserve_a * fraction, state.reserve_b * fraction, "alice"
        )
        assert result.accepted
        assert "alice" not in shared_engine.ledger()
        assert result.provider_shares == 0.0
        assert shared_engine.state.total_shares == pytest.approx(INITIAL_SHARES)

    def test_insufficient_shares(self, shared_engine: PoolEngine) -> None:
        """Запрос больше баланса → InsufficientShares, состояние не меняется"""
        before = _fingerprint(shared_engine)
        result = shared_engine.remove_liquidity(200.0, 960.0, "alice")
        _assert_rejected(shared_engine, before, result, PoolError.INSUFFICIENT_SHARES)
        assert result.provider_shares == pytest.approx(INITIAL_SHARES * 0.1)

    def test_unknown_provider(self, engine: PoolEngine) -> None:
        """Провайдер без долей → InsufficientShares"""
        before = _fingerprint(engine)
        result = engine.remove_liquidity(1.0, 4.8, "bob")
        _assert_rejected(engine, before, result, PoolError.INSUFFICIENT_SHARES)

    def test_more_than_reserve(self, engine: PoolEngine) -> None:
        """Вывод больше резерва требует больше всех долей → InsufficientShares"""
        before = _fingerprint(engine)
        result = engine.remove_liquidity(1500.0, 7200.0, "admin")
        _assert_rejected(engine, before, result, PoolError.INSUFFICIENT_SHARES)

    def test_full_drain_resets_pool(self, engine: PoolEngine) -> None:
        """Сжигание последних долей обнуляет пул, create снова доступен"""
        engine.swap(SwapDirection.A_TO_B, 10.0, max_slippage=1.0).unwrap()
        state = engine.state
        result = engine.remove_liquidity(state.reserve_a, state.reserve_b, "admin")
        assert result.accepted
        snap = result.snapshot
        assert not snap.initialized
        assert (snap.reserve_a, snap.reserve_b, snap.total_shares) == (0.0, 0.0, 0.0)
        assert engine.ledger() == {}
        # Доход протокола сохраняется до нового create
        assert snap.protocol_earnings_a == pytest.approx(0.01)

        recreated = engine.create_pool(500.0, 500.0, 0.003, 0.0, "bob")
        assert recreated.accepted
        assert recreated.event.sequence == 4
        assert recreated.snapshot.protocol_earnings_a == 0.0
        assert engine.ledger() == {"bob": pytest.approx(500.0)}

    def test_tiny_provider_partial_withdrawal(self, engine: PoolEngine) -> None:
        """Мелкий LP выводит половину: сжигается половина его долей, не весь баланс"""
        preview = engine.preview_add_liquidity(Asset.A, 1.37e-6)
        engine.add_liquidity(preview.amount_a, preview.amount_b, "tiny").unwrap()
        balance = engine.shares_of("tiny")
        assert balance == pytest.approx(INITIAL_SHARES * 1.37e-9)

        state = engine.state
        half = 0.5 * balance / state.total_shares
        result = engine.remove_liquidity(half * state.reserve_a, half * state.reserve_b, "tiny")
        assert result.accepted
        assert result.event.payload.shares_burned == pytest.approx(balance / 2, rel=1e-9)
        assert engine.shares_of("tiny") == pytest.approx(balance / 2, rel=1e-9)
        assert sum(engine.ledger().values()) == pytest.approx(engine.state.total_shares, rel=1e-12)

    def test_off_ratio_drain_rejected(self, engine: PoolEngine) -> None:
        """Полный вывод с несогласованной стороной B → InvalidAmount, резервы целы"""
        before = _fingerprint(engine)
        result = engine.remove_liquidity(1000.0, 1.0, "admin")
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)
        assert "both reserves" in result.details
        assert engine.snapshot().reserve_b == 4800.0

    def test_drain_records_released_reserves(self, engine: PoolEngine) -> None:
        """Полный вывод в пределах толерантности пишет в журнал фактически выданные резервы"""
        engine.swap(SwapDirection.B_TO_A, 100.0).unwrap()
        state = engine.state
        result = engine.remove_liquidity(state.reserve_a, state.reserve_b * (1 + 1e-7), "admin")
        assert result.accepted
        assert not engine.is_initialized
        assert result.event.payload.amount_a == state.reserve_a
        assert result.event.payload.amount_b == state.reserve_b
        assert result.event.payload.fraction == 1.0

    def test_off_ratio_cannot_empty_reserve(self, shared_engine: PoolEngine) -> None:
        """Пара, обнуляющая резерв при оставшихся долях → InvalidAmount"""
        before = _fingerprint(shared_engine)
        result = shared_engine.remove_liquidity(100.0, 5280.0, "admin")
        _assert_rejected(shared_engine, before, result, PoolError.INVALID_AMOUNT)

    def test_strict_ratio_rejects(self) -> None:
        """strict_ratio_check: несогласованная пара → InvalidAmount"""
        eng = PoolEngine(PoolEngineConfig(strict_ratio_check=True))
        eng.create_pool(1000.0, 4800.0, 0.002, 0.001, "admin").unwrap()
        before = _fingerprint(eng)
        result = eng.remove_liquidity(100.0, 400.0, "admin")
        _assert_rejected(eng, before, result, PoolError.INVALID_AMOUNT)

    def test_not_initialized(self) -> None:
        """Пустой пул → PoolNotInitialized"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.remove_liquidity(1.0, 1.0, "admin")
        _assert_rejected(eng, before, result, PoolError.POOL_NOT_INITIALIZED)

    @pytest.mark.parametrize("amount_a,amount_b", [(0.0, 480.0), (100.0, 0.0), (float("inf"), 1.0)])
    def test_invalid_amounts(self, engine: PoolEngine, amount_a: float, amount_b: float) -> None:
        """Неположительные и NaN/Inf суммы → InvalidAmount"""
        before = _fingerprint(engine)
        result = engine.remove_liquidity(amount_a, amount_b, "admin")
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)


# =============================================================================
# SWAP
# =============================================================================


class TestSwap:
    """Тесты для swap"""

    def test_swap_ten_a_for_b(self, engine: PoolEngine) -> None:
        """Своп 10 A → B: team-комиссия уходит из резерва в доход протокола"""
        result = engine.swap(SwapDirection.A_TO_B, 10.0, max_slippage=1.0)
        assert result.accepted
        quote = result.quote
        assert quote.fee_total == pytest.approx(0.03)
        assert quote.fee_team == pytest.approx(0.01)
        assert quote.amount_in_after_fee == pytest.approx(9.97)
        assert quote.amount_out == pytest.approx(4800.0 * 9.97 / 1009.97)

        snap = result.snapshot
        assert snap.reserve_a == pytest.approx(1009.99)
        assert snap.reserve_b == pytest.approx(4800.0 - quote.amount_out)
        assert snap.protocol_earnings_a == pytest.approx(0.01)
        assert snap.protocol_earnings_b == 0.0
        # Доли не меняются
        assert snap.total_shares == pytest.approx(INITIAL_SHARES)

    def test_swap_b_to_a(self, engine: PoolEngine) -> None:
        """Своп B → A: доход протокола в B"""
        result = engine.swap("B->A", 48.0)
        assert result.accepted
        snap = result.snapshot
        assert snap.protocol_earnings_b == pytest.approx(0.048)
        assert snap.reserve_b == pytest.approx(4800.0 + 48.0 - 0.048)
        assert snap.reserve_a == pytest.approx(1000.0 - result.quote.amount_out)
        assert result.event.payload.direction is SwapDirection.B_TO_A
        assert result.event.payload.price_exec_b_per_a > 4.8

    def test_invariant_grows(self, engine: PoolEngine) -> None:
        """k растёт за счёт LP-комиссии"""
        k_before = engine.snapshot().invariant_k
        engine.swap(SwapDirection.A_TO_B, 10.0).unwrap()
        assert engine.snapshot().invariant_k > k_before

    def test_event_payload(self, engine: PoolEngine) -> None:
        """Запись журнала несёт входы, разбивку комиссии и итоговые резервы"""
        result = engine.swap(SwapDirection.A_TO_B, 10.0, max_slippage=0.5)
        record = result.event
        assert record.sequence == 2
        assert record.kind is EventKind.SWAP
        assert record.payload.amount_in == 10.0
        assert record.payload.fee_lp == pytest.approx(0.02)
        assert record.payload.max_slippage == 0.5
        assert record.reserve_a == pytest.approx(1009.99)
        assert record.protocol_earnings_a == pytest.approx(0.01)

    def test_slippage_exceeded(self, engine: PoolEngine) -> None:
        """Проскальзывание выше лимита → SlippageExceeded, без изменений"""
        before = _fingerprint(engine)
        result = engine.swap(SwapDirection.A_TO_B, 200.0, max_slippage=0.10)
        _assert_rejected(engine, before, result, PoolError.SLIPPAGE_EXCEEDED)
        # Котировка прикладывается для объяснения отказа
        assert result.quote.slippage > 0.10

    def test_zero_slippage_limit(self, engine: PoolEngine) -> None:
        """max_slippage=0 отклоняет любой своп"""
        before = _fingerprint(engine)
        result = engine.swap(SwapDirection.A_TO_B, 0.001, max_slippage=0.0)
        _assert_rejected(engine, before, result, PoolError.SLIPPAGE_EXCEEDED)

    def test_insufficient_output_liquidity(self) -> None:
        """Выход, округлённый до всего резерва → InsufficientOutputLiquidity"""
        eng = PoolEngine()
        eng.create_pool(1.0, 1024.0, 0.0, 0.0, "admin").unwrap()
        before = _fingerprint(eng)
        # R_in + amount_in == amount_in в float: amount_out == R_out точно
        result = eng.swap(SwapDirection.A_TO_B, float(2**200), max_slippage=1.0)
        _assert_rejected(eng, before, result, PoolError.INSUFFICIENT_OUTPUT_LIQUIDITY)
        assert result.quote.amount_out == 1024.0

    def test_input_reserve_overflow_rejected(self) -> None:
        """Резерв входа переполняется в inf → InvalidAmount, без исключения"""
        eng = PoolEngine()
        eng.create_pool(1e308, 1.0, 0.0, 0.0, "admin").unwrap()
        before = _fingerprint(eng)
        # R_in + amount_in == inf: amount_out == 0, slippage ровно 1
        result = eng.swap(SwapDirection.A_TO_B, 1e308, max_slippage=1.0)
        _assert_rejected(eng, before, result, PoolError.INVALID_AMOUNT)
        assert result.quote.amount_out == 0.0

    @pytest.mark.parametrize("amount_in", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_amount(self, engine: PoolEngine, amount_in: float) -> None:
        """Невалидная сумма входа → InvalidAmount"""
        before = _fingerprint(engine)
        result = engine.swap(SwapDirection.A_TO_B, amount_in)
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)

    @pytest.mark.parametrize("max_slippage", [-0.01, 1.01, float("nan")])
    def test_invalid_slippage_limit(self, engine: PoolEngine, max_slippage: float) -> None:
        """max_slippage вне [0, 1] → InvalidAmount"""
        before = _fingerprint(engine)
        result = engine.swap(SwapDirection.A_TO_B, 10.0, max_slippage=max_slippage)
        _assert_rejected(engine, before, result, PoolError.INVALID_AMOUNT)

    def test_not_initialized(self) -> None:
        """Пустой пул → PoolNotInitialized"""
        eng = PoolEngine()
        before = _fingerprint(eng)
        result = eng.swap(SwapDirection.A_TO_B, 10.0)
        _assert_rejected(eng, before, result, PoolError.POOL_NOT_INITIALIZED)


# =============================================================================
# QUOTES AND PREVIEWS
# =============================================================================


class TestQuotesAndPreviews:
    """Тесты для read-only котировок и предпросмотров"""

    def test_quote_matches_calculator(self, engine: PoolEngine) -> None:
        """Котировка движка совпадает с Swap Calculator на резервах направления"""
        assert engine.quote(SwapDirection.B_TO_A, 48.0) == quote_swap(48.0, 4800.0, 1000.0, 0.002, 0.001)

    def test_quote_does_not_mutate(self, engine: PoolEngine) -> None:
        """Котировка не меняет состояние"""
        before = _fingerprint(engine)
        engine.quote(SwapDirection.A_TO_B, 10.0)
        engine.reverse_quote(SwapDirection.A_TO_B, 10.0)
        assert _fingerprint(engine) == before

    def test_reverse_quote_then_swap(self, engine: PoolEngine) -> None:
        """Своп на входе обратной котировки даёт желаемый выход"""
        quote = engine.reverse_quote(SwapDirection.A_TO_B, 100.0)
        result = engine.swap(SwapDirection.A_TO_B, quote.amount_in)
        assert result.quote.amount_out == pytest.approx(100.0)

    def test_quotes_on_empty_pool(self) -> None:
        """Пустой пул → нулевые котировки"""
        eng = PoolEngine()
        assert eng.quote(SwapDirection.A_TO_B, 10.0).is_empty
        assert eng.reverse_quote(SwapDirection.A_TO_B, 10.0).is_empty

    def test_reverse_quote_unfillable(self, engine: PoolEngine) -> None:
        """Выход >= резерва → нулевая котировка"""
        assert engine.reverse_quote(SwapDirection.A_TO_B, 4800.0).is_empty

    def test_preview_add_from_b_side(self, engine: PoolEngine) -> None:
        """Предпросмотр депозита от стороны B"""
        preview = engine.preview_add_liquidity(Asset.B, 480.0)
        assert preview.amount_a == pytest.approx(100.0)
        assert preview.amount_b == 480.0
        assert preview.shares == pytest.approx(INITIAL_SHARES * 0.1)
        assert preview.fraction == pytest.approx(0.1)

    def test_preview_add_feeds_add_liquidity(self, engine: PoolEngine) -> None:
        """Пара из предпросмотра проходит strict-проверку соотношения"""
        preview = engine.preview_add_liquidity("A", 37.5)
        result = engine.add_liquidity(preview.amount_a, preview.amount_b, "alice")
        assert result.provider_shares == pytest.approx(preview.shares)
        assert result.event.payload.ratio_deviation <= 1e-12

    def test_preview_remove(self, shared_engine: PoolEngine) -> None:
        """Предпросмотр вывода с проверкой баланса провайдера"""
        ok = shared_engine.preview_remove_liquidity(Asset.A, 50.0, "alice")
        assert ok.amount_b == pytest.approx(240.0)
        assert ok.sufficient
        assert ok.provider_shares == pytest.approx(INITIAL_SHARES * 0.1)

        too_much = shared_engine.preview_remove_liquidity(Asset.A, 500.0, "alice")
        assert not too_much.sufficient

        anonymous = shared_engine.preview_remove_liquidity(Asset.B, 240.0)
        assert anonymous.provider_shares is None
        assert anonymous.amount_a == pytest.approx(50.0)

    def test_preview_on_empty_pool(self) -> None:
        """Пустой пул или невалидная сумма → нулевой предпросмотр"""
        eng = PoolEngine()
        assert eng.preview_add_liquidity(Asset.A, 10.0).shares == 0.0
        assert eng.preview_remove_liquidity(Asset.A, 10.0).amount_b == 0.0


# =============================================================================
# RESULTS AND JOURNAL
# =============================================================================


class TestResultsAndJournal:
    """Тесты для OperationResult.unwrap и журнала"""

    def test_unwrap_accepted(self, engine: PoolEngine) -> None:
        """unwrap принятой операции возвращает результат"""
        result = engine.swap(SwapDirection.A_TO_B, 1.0)
        assert result.unwrap() is result

    def test_unwrap_rejected_raises(self, engine: PoolEngine) -> None:
        """unwrap отказа бросает PoolOperationError"""
        result = engine.create_pool(1.0, 1.0)
        with pytest.raises(PoolOperationError, match="AlreadyInitialized") as exc_info:
            result.unwrap()
        assert exc_info.value.error is PoolError.ALREADY_INITIALIZED
        assert exc_info.value.result is result

    def test_rejections_not_journaled(self, engine: PoolEngine) -> None:
        """В журнал попадают только принятые операции, sequence без пропусков"""
        engine.swap(SwapDirection.A_TO_B, 0.0)
        engine.add_liquidity(100.0, 480.0, "alice").unwrap()
        engine.remove_liquidity(1e6, 1.0, "alice")
        engine.swap(SwapDirection.B_TO_A, 10.0).unwrap()
        assert [r.sequence for r in engine.events] == [1, 2, 3]
        assert [r.kind for r in engine.events] == [EventKind.CREATE, EventKind.ADD, EventKind.SWAP]

    def test_events_is_read_only_snapshot(self, engine: PoolEngine) -> None:
        """events — кортеж-снимок: без append, не растёт после новых операций"""
        journal = engine.events
        assert isinstance(journal, tuple)
        assert not hasattr(journal, "append")

        engine.swap(SwapDirection.A_TO_B, 1.0).unwrap()
        assert len(journal) == 1
        assert len(engine.events) == 2

    def test_events_of_kind(self, shared_engine: PoolEngine) -> None:
        """events_of фильтрует журнал по виду операции"""
        shared_engine.swap(SwapDirection.A_TO_B, 1.0).unwrap()
        shared_engine.swap("B->A", 4.0).unwrap()
        swaps = shared_engine.events_of(EventKind.SWAP)
        assert [r.sequence for r in swaps] == [3, 4]
        assert [r.sequence for r in shared_engine.events_of("ADD")] == [2]
        assert shared_engine.events_of(EventKind.REMOVE) == ()

    def test_rejection_is_logged(self, engine: PoolEngine, caplog) -> None:
        """Отказ логируется на уровне WARNING"""
        with caplog.at_level(logging.WARNING, logger="cpamm.pool.engine"):
            engine.swap(SwapDirection.A_TO_B, -5.0)
        assert "InvalidAmount" in caplog.text

    def test_ledger_is_copy(self, engine: PoolEngine) -> None:
        """ledger() возвращает копию"""
        ledger = engine.ledger()
        ledger["admin"] = 0.0
        assert engine.shares_of("admin") == pytest.approx(INITIAL_SHARES)

    def test_engines_are_independent(self) -> None:
        """Независимые экземпляры не делят состояние"""
        first = PoolEngine()
        second = PoolEngine()
        first.create_pool(1000.0, 4800.0).unwrap()
        assert not second.is_initialized
        assert len(second.events) == 0


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    """Тесты для сериализации операций под RLock"""

    def test_concurrent_swaps_and_deposits(self, engine: PoolEngine) -> None:
        """Параллельные операции не теряются и не нарушают инварианты"""
        errors = []

        def trader(direction: SwapDirection) -> None:
            for _ in range(50):
                if not engine.swap(direction, 1.0).accepted:
                    errors.append(direction)

        def provider(name: str) -> None:
            for _ in range(25):
                preview = engine.preview_add_liquidity(Asset.A, 1.0)
                if not engine.add_liquidity(preview.amount_a, preview.amount_b, name).accepted:
                    errors.append(name)

        threads = [
            threading.Thread(target=trader, args=(SwapDirection.A_TO_B,)),
            threading.Thread(target=trader, args=(SwapDirection.B_TO_A,)),
            threading.Thread(target=provider, args=("alice",)),
            threading.Thread(target=provider, args=("bob",)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(engine.events) == 1 + 100 + 50
        assert [r.sequence for r in engine.events] == list(range(1, 152))
        total = engine.state.total_shares
        assert sum(engine.ledger().values()) == pytest.approx(total, rel=1e-9)
