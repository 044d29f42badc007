"""Import and reconciliation engine for job application spreadsheets."""
