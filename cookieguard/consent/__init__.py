"""Consent dialog detection, control classification and safe interaction."""
