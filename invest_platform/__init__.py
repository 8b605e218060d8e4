"""
Invest platform backend: daily earnings accrual for plan-based investments.
"""

__version__ = "0.1.0"
