"""Cash gap alerting: detection, recommendations, monitoring and lifecycle."""
