"""Comparison tables and printable reports across model variants."""

from src.reporting.comparison import (
    ComparisonRow,
    ComparisonTable,
    unreliable_predictors,
    format_record,
    format_table,
)

__all__ = [
    "ComparisonRow",
    "ComparisonTable",
    "unreliable_predictors",
    "format_record",
    "format_table",
]
