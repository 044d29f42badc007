"""Configuration, logging and shared error types."""
