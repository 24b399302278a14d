"""Cash flow forecasting."""
