"""Domain models and error types."""
