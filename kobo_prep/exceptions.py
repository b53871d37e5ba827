"""
Custom exceptions for survey data preparation.
"""

from typing import Any, Dict, List, Optional


class KoboPrepError(Exception):
    """Base preparation exception."""

    def __init__(
        self,
        message: str,
        error_type: str = "kobo_prep_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "error": self.error_type,
            "message": self.message,
            "details": self.details,
        }


class InputNotFoundError(KoboPrepError):
    """Source export file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            message=f"file not found: {path}",
            error_type="input_not_found",
            details={"path": path},
        )


class WriteError(KoboPrepError):
    """Prepared table could not be written."""

    def __init__(self, path: str, reason: Optional[str] = None):
        message = f"Cannot write prepared data to {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_type="write_failure",
            details={"path": path, "reason": reason},
        )


class ColumnCollisionError(KoboPrepError):
    """Two or more columns were renamed to the same final name."""

    def __init__(self, duplicates: Dict[str, int], sources: Optional[Dict[str, List[str]]] = None):
        names = ", ".join(f"'{name}' (x{count})" for name, count in duplicates.items())
        super().__init__(
            message=f"Rename rules produce duplicate column names: {names}",
            error_type="column_collision",
            details={"duplicates": duplicates, "sources": sources or {}},
        )


class ConfigurationError(KoboPrepError):
    """Invalid rule set or pipeline option."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            error_type="configuration_error",
            details=details,
        )
