"""
CSV import pipeline: encoding, parsing, column detection, validation,
duplicate reconciliation and record conversion.
"""
