"""
Error types for the mock bank.

None of these are fatal: validation errors reject a user action, and storage
or directory errors are recovered locally by falling back to defaults.
"""

from typing import Dict, Optional


class MockBankError(Exception):
    """Base class for mock bank errors"""


class ValidationError(MockBankError, ValueError):
    """
    A submitted transfer or top-up was rejected.

    ``errors`` maps form field names to human-readable messages.
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            message = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(message)


class SimulatorBusyError(ValidationError):
    """Another submission is still pending"""

    def __init__(self):
        super().__init__(
            {"form": "Another transaction is still processing"},
            "Another transaction is still processing",
        )


class StorageReadError(MockBankError):
    """Persisted ledger data is absent or malformed"""


class DirectoryFetchError(MockBankError):
    """The remote bank list could not be fetched or parsed"""
