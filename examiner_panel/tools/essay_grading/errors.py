"""Errors surfaced to callers of the grading orchestrator."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"          # missing credential or config, not retried
    VALIDATION_ERROR = "VALIDATION_ERROR"  # caller must fix the request
    GRADING_ERROR = "GRADING_ERROR"        # every examiner failed, may be retried


class GradingError(Exception):
    """A fatal grading failure with a machine-readable code."""

    def __init__(self, message: str, code: ErrorCode, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
