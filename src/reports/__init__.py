"""Report shaping package."""

from src.reports.assembler import ReportAssembler, format_currency, period_label

__all__ = ["ReportAssembler", "format_currency", "period_label"]
