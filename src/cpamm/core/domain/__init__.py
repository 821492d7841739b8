"""
Domain models and value objects.

Contains pool state, snapshot and operation journal records.
"""

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

__all__ = [
    # Pool state
    "Asset",
    "SwapDirection",
    "PoolState",
    "PoolSnapshot",
    # Journal
    "EventKind",
    "EventPayload",
    "EventRecord",
    "CreatePoolPayload",
    "AddLiquidityPayload",
    "RemoveLiquidityPayload",
    "SwapPayload",
]
