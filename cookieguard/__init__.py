"""Cookie-consent dialog detection, classification and safe interaction."""

__version__ = "0.4.0"
