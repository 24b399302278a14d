"""Cashwatch - 13-week cash flow forecasting and cash gap monitoring."""
