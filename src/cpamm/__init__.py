"""
cpamm — two-asset constant-product AMM pool simulator.

Layers:
- cpamm.core : swap/share math, domain models, JSON Schema contracts
- cpamm.pool : Pool Engine (create / add / remove / swap state transitions)
"""

__version__ = "0.1.0"
