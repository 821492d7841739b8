"""
Test suite for cpamm-sim

Contains:
- tests/unit/          : Unit tests for math, domain, contracts and Pool Engine
"""
