"""
Core math modules для симулятора пула

Математические примитивы, расчёт свопа и LP-долей.
"""

# Numerical Safeguards
from cpamm.core.math.numerical_safeguards import (
    # Epsilon constants
    EPS_FLOAT_COMPARE_ABS,
    EPS_FLOAT_COMPARE_REL,
    # Safe division
    safe_divide,
    # NaN/Inf sanitization
    is_valid_float,
    sanitize_float,
    # Epsilon comparisons
    is_close,
    is_zero,
    relative_deviation,
    # Utilities
    clamp,
    # Validation
    validate_non_negative,
    validate_positive,
)

# Swap Calculator
from cpamm.core.math.swap_calculator import (
    SwapQuote,
    execution_price_b_per_a,
    fee_rates_valid,
    quote_swap,
    required_amount_in,
    reverse_quote_swap,
    zero_quote,
)

# Liquidity Math
from cpamm.core.math.liquidity import (
    initial_shares,
    paired_amount,
    shares_for_deposit,
    shares_to_burn,
    withdraw_fraction,
)

__all__ = [
    # Numerical Safeguards
    "EPS_FLOAT_COMPARE_ABS",
    "EPS_FLOAT_COMPARE_REL",
    "safe_divide",
    "is_valid_float",
    "sanitize_float",
    "is_close",
    "is_zero",
    "relative_deviation",
    "clamp",
    "validate_non_negative",
    "validate_positive",
    # Swap Calculator
    "SwapQuote",
    "execution_price_b_per_a",
    "fee_rates_valid",
    "quote_swap",
    "required_amount_in",
    "reverse_quote_swap",
    "zero_quote",
    # Liquidity Math
    "initial_shares",
    "paired_amount",
    "shares_for_deposit",
    "shares_to_burn",
    "withdraw_fraction",
]
