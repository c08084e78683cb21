"""Compliance analysis of data processing agreements (Art. 28 GDPR)."""

__version__ = "0.1.0"
