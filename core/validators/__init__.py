"""
Validators module

Data quality validators for market data
"""

from core.validators.market_data import BarValidator

__all__ = ["BarValidator"]
