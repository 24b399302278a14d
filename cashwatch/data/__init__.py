"""Forecast input data: read-only ORM models and the data loader."""
