"""Telephony service exceptions."""


class TelephonyError(Exception):
    """Base exception for telephony operations."""


class TelephonyConfigurationError(TelephonyError):
    """Raised when telephony configuration is missing or invalid."""
