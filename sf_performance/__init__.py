"""
Sales-Force Performance Dashboard

Spreadsheet ingestion, agent tiering and period-over-period metrics.
"""

__version__ = "1.0.0"
