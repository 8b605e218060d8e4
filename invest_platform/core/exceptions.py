"""
Custom exception classes for the application.
Provides structured error handling across the API, scheduler and CLI.
"""

from typing import Any, Optional, Dict


class InvestPlatformException(Exception):
    """Base exception class for the invest platform backend."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(InvestPlatformException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class DatabaseError(InvestPlatformException):
    """Raised when there's a database error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class StoreReadError(DatabaseError):
    """Raised when profiles or ledger entries can't be read. Nothing has been written."""

    def __init__(self, store: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.store = store
        super().__init__(
            f"Failed to read {store}: {reason}",
            {"store": store, **(details or {})}
        )
        self.code = "STORE_READ_ERROR"


class StoreWriteError(DatabaseError):
    """Raised when the accrual write transaction fails. The transaction is rolled back."""

    def __init__(self, store: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.store = store
        super().__init__(
            f"Failed to write {store}: {reason}",
            {"store": store, **(details or {})}
        )
        self.code = "STORE_WRITE_ERROR"


class AuthorizationError(InvestPlatformException):
    """Raised when authorization fails."""

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTHORIZATION_ERROR", details)


class DataIntegrityWarning(InvestPlatformException):
    """Raised when a profile references data that doesn't exist, e.g. an unknown plan."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATA_INTEGRITY_WARNING", details)


class UnknownPlanError(DataIntegrityWarning):
    """Raised when a plan identifier is not in the plan table."""

    def __init__(self, plan_id: Optional[str]):
        self.plan_id = plan_id
        super().__init__(
            f"No plan details found for plan ID {plan_id}",
            {"plan_id": plan_id}
        )
