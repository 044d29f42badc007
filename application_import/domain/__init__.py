"""Domain logic for the import engine."""
