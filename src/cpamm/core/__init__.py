"""
Core math primitives, domain models, and serialization contracts.

This module contains the pure building blocks of the pool simulator that are
independent of how operations are sequenced (engine, caller, UI).
"""
