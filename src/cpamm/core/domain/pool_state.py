"""
PoolState — Модель состояния пула постоянного произведения

Immutable Pydantic модели:
- PoolState: резервы, LP-доли, ставки комиссий, накопленный доход протокола
- PoolSnapshot: сериализуемый снапшот с производными величинами (k, спот)

Производные величины не хранятся в PoolState, а пересчитываются:
    invariant_k = reserve_a * reserve_b
    spot_price  = reserve_b / reserve_a

Инвариант инициализации:
    reserve_a == 0 <=> reserve_b == 0 <=> total_shares == 0
"""

from enum import Enum

from pydantic import BaseModel, Field, ValidationInfo, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class Asset(str, Enum):
    """Актив пула"""

    A = "A"
    B = "B"

    @property
    def other(self) -> "Asset":
        """Парный актив"""
        return Asset.B if self is Asset.A else Asset.A


class SwapDirection(str, Enum):
    """Направление свопа"""

    A_TO_B = "A->B"
    B_TO_A = "B->A"

    @property
    def input_asset(self) -> Asset:
        return Asset.A if self is SwapDirection.A_TO_B else Asset.B

    @property
    def output_asset(self) -> Asset:
        return self.input_asset.other


# =============================================================================
# POOL STATE
# =============================================================================


class PoolState(BaseModel):
    """
    Состояние пула.

    Immutable модель (frozen=True): каждая операция движка строит новый
    экземпляр с полной валидацией, так что отклонённая операция физически не
    может оставить частично изменённое состояние.
    """

    # Резервы
    reserve_a: float = Field(0.0, ge=0, description="Резерв актива A")
    reserve_b: float = Field(0.0, ge=0, description="Резерв актива B")

    # LP-доли
    total_shares: float = Field(0.0, ge=0, description="Всего выпущено LP-долей")

    # Комиссии
    fee_lp_rate: float = Field(
        0.0, ge=0, lt=1, description="Доля комиссии LP (остаётся в резервах)"
    )
    fee_team_rate: float = Field(
        0.0, ge=0, lt=1, description="Доля комиссии team/protocol (выводится из резервов)"
    )

    # Доход протокола (монотонно неубывающий)
    protocol_earnings_a: float = Field(0.0, ge=0, description="Накопленная team-комиссия в A")
    protocol_earnings_b: float = Field(0.0, ge=0, description="Накопленная team-комиссия в B")

    model_config = {"frozen": True, "allow_inf_nan": False}

    @field_validator("total_shares")
    @classmethod
    def validate_initialization_invariant(cls, v: float, info: ValidationInfo) -> float:
        """
        Пул либо пуст целиком, либо инициализирован целиком.
        """
        reserve_a = info.data.get("reserve_a")
        reserve_b = info.data.get("reserve_b")
        if reserve_a is None or reserve_b is None:
            return v

        flags = {reserve_a == 0, reserve_b == 0, v == 0}
        if len(flags) != 1:
            raise ValueError(
                f"partially initialized pool: reserve_a={reserve_a}, "
                f"reserve_b={reserve_b}, total_shares={v}"
            )
        return v

    @field_validator("fee_team_rate")
    @classmethod
    def validate_total_fee(cls, v: float, info: ValidationInfo) -> float:
        """Суммарная комиссия строго меньше 100%."""
        fee_lp_rate = info.data.get("fee_lp_rate")
        if fee_lp_rate is not None and fee_lp_rate + v >= 1:
            raise ValueError(
                f"fee_lp_rate + fee_team_rate must be < 1, got {fee_lp_rate + v:.6f}"
            )
        return v

    @property
    def is_initialized(self) -> bool:
        return self.total_shares > 0

    def invariant_k(self) -> float:
        """Произведение резервов k = reserve_a * reserve_b."""
        return self.reserve_a * self.reserve_b

    def spot_price(self) -> float:
        """
        Спотовая цена B за единицу A.

        Returns:
            reserve_b / reserve_a; 0.0 для неинициализированного пула
        """
        if self.reserve_a <= 0:
            return 0.0
        return self.reserve_b / self.reserve_a

    def total_fee_rate(self) -> float:
        return self.fee_lp_rate + self.fee_team_rate

    def reserve_of(self, asset: Asset) -> float:
        return self.reserve_a if asset is Asset.A else self.reserve_b

    def reserves_for(self, direction: SwapDirection) -> tuple[float, float]:
        """
        Резервы (входа, выхода) для направления свопа.
        """
        return (
            self.reserve_of(direction.input_asset),
            self.reserve_of(direction.output_asset),
        )


# =============================================================================
# SNAPSHOT
# =============================================================================


class PoolSnapshot(BaseModel):
    """
    Снапшот пула для вызывающего кода.

    Содержит производные k и спот-цену, вычисленные в момент снятия.
    Сериализация совместима с contracts/schema/pool_snapshot.json.
    """

    asset_a: str = Field(..., min_length=1, description="Метка актива A")
    asset_b: str = Field(..., min_length=1, description="Метка актива B")
    initialized: bool = Field(..., description="Пул инициализирован")

    reserve_a: float = Field(..., ge=0)
    reserve_b: float = Field(..., ge=0)
    total_shares: float = Field(..., ge=0)

    invariant_k: float = Field(..., ge=0, description="reserve_a * reserve_b")
    spot_price: float = Field(..., ge=0, description="reserve_b / reserve_a (B за A)")

    fee_lp_rate: float = Field(..., ge=0, lt=1)
    fee_team_rate: float = Field(..., ge=0, lt=1)

    protocol_earnings_a: float = Field(..., ge=0)
    protocol_earnings_b: float = Field(..., ge=0)

    model_config = {"frozen": True}

    @classmethod
    def from_state(
        cls, state: PoolState, asset_a: str = "A", asset_b: str = "B"
    ) -> "PoolSnapshot":
        return cls(
            asset_a=asset_a,
            asset_b=asset_b,
            initialized=state.is_initialized,
            reserve_a=state.reserve_a,
            reserve_b=state.reserve_b,
            total_shares=state.total_shares,
            invariant_k=state.invariant_k(),
            spot_price=state.spot_price(),
            fee_lp_rate=state.fee_lp_rate,
            fee_team_rate=state.fee_team_rate,
            protocol_earnings_a=state.protocol_earnings_a,
            protocol_earnings_b=state.protocol_earnings_b,
        )
