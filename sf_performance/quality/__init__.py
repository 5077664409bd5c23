"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, create_sales_orders_validator

__all__ = [
    "DataValidator",
    "ValidationResult",
    "create_sales_orders_validator",
]
