"""Alert notification delivery."""
