"""File format processors."""
