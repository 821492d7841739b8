"""
EventRecord — Журнальная запись операции пула

Immutable Pydantic модели структурированного журнала:
- EventKind: CREATE / ADD / REMOVE / SWAP
- Payload-модель на каждый вид операции (входы и выходы)
- EventRecord: порядковый номер, payload и состояние пула после операции

Текстовые сообщения не формируются: отображение журнала — забота
вызывающего кода. Сериализация совместима с
contracts/schema/event_record.json.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .pool_state import SwapDirection


# =============================================================================
# ENUMS
# =============================================================================


class EventKind(str, Enum):
    """Вид операции"""

    CREATE = "CREATE"
    ADD = "ADD"
    REMOVE = "REMOVE"
    SWAP = "SWAP"


# =============================================================================
# PAYLOADS
# =============================================================================


class CreatePoolPayload(BaseModel):
    """Создание пула."""

    kind: Literal[EventKind.CREATE] = EventKind.CREATE
    provider_id: str = Field(..., min_length=1)
    amount_a: float = Field(..., gt=0)
    amount_b: float = Field(..., gt=0)
    fee_lp_rate: float = Field(..., ge=0, lt=1)
    fee_team_rate: float = Field(..., ge=0, lt=1)
    shares_minted: float = Field(..., gt=0)

    model_config = {"frozen": True}


class AddLiquidityPayload(BaseModel):
    """Добавление ликвидности."""

    kind: Literal[EventKind.ADD] = EventKind.ADD
    provider_id: str = Field(..., min_length=1)
    amount_a: float = Field(..., gt=0)
    amount_b: float = Field(..., gt=0)
    shares_minted: float = Field(..., ge=0)

    # Отклонение amount_b от суммы, подразумеваемой соотношением резервов
    ratio_deviation: float = Field(..., ge=0)

    model_config = {"frozen": True}


class RemoveLiquidityPayload(BaseModel):
    """Вывод ликвидности."""

    kind: Literal[EventKind.REMOVE] = EventKind.REMOVE
    provider_id: str = Field(..., min_length=1)
    amount_a: float = Field(..., gt=0)
    amount_b: float = Field(..., gt=0)
    fraction: float = Field(..., gt=0, le=1, description="Доля пула (amount_a / reserve_a)")
    shares_burned: float = Field(..., ge=0)
    ratio_deviation: float = Field(..., ge=0)

    model_config = {"frozen": True}


class SwapPayload(BaseModel):
    """Своп."""

    kind: Literal[EventKind.SWAP] = EventKind.SWAP
    direction: SwapDirection
    amount_in: float = Field(..., gt=0)
    amount_out: float = Field(..., ge=0)

    # Комиссии (в активе входа)
    fee_lp: float = Field(..., ge=0)
    fee_team: float = Field(..., ge=0)
    fee_total: float = Field(..., ge=0)

    # Цены
    price_exec: float = Field(..., ge=0, description="Выход за единицу входа после комиссии")
    price_exec_b_per_a: float = Field(..., ge=0, description="Цена исполнения в B за A")

    slippage: float = Field(..., ge=0)
    max_slippage: float = Field(..., ge=0, le=1)

    model_config = {"frozen": True}


EventPayload = Annotated[
    Union[CreatePoolPayload, AddLiquidityPayload, RemoveLiquidityPayload, SwapPayload],
    Field(discriminator="kind"),
]


# =============================================================================
# EVENT RECORD
# =============================================================================


class EventRecord(BaseModel):
    """
    Запись журнала операций.

    Immutable (frozen=True): после добавления в журнал не изменяется.
    """

    sequence: int = Field(..., ge=1, description="Порядковый номер в журнале")
    payload: EventPayload

    # Состояние пула после операции
    reserve_a: float = Field(..., ge=0)
    reserve_b: float = Field(..., ge=0)
    total_shares: float = Field(..., ge=0)
    protocol_earnings_a: float = Field(..., ge=0)
    protocol_earnings_b: float = Field(..., ge=0)

    model_config = {"frozen": True}

    @property
    def kind(self) -> EventKind:
        return self.payload.kind
