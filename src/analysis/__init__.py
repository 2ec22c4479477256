"""Ledger aggregation package."""

from src.analysis.engine import AggregationEngine

__all__ = ["AggregationEngine"]
