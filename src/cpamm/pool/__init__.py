"""Pool — Pool Engine и его результаты.

- PoolEngine: create / add / remove / swap как атомарные переходы состояния
- OperationResult / LiquidityPreview: результаты операций и предпросмотров
- PoolError / PoolOperationError: коды отказов
- EventLog: append-only журнал операций
"""

from .engine import LiquidityPreview, OperationResult, PoolEngine, PoolEngineConfig
from .errors import PoolError, PoolOperationError
from .event_log import EventLog

__all__ = [
    "PoolEngine",
    "PoolEngineConfig",
    "OperationResult",
    "LiquidityPreview",
    "PoolError",
    "PoolOperationError",
    "EventLog",
]
