"""Consent Sentinel: consent and tracking compliance audits."""

__version__ = "0.1.0"
