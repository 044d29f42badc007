"""Small helpers shared by the import pipeline."""
