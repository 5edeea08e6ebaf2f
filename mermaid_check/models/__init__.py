"""Data models for mermaid-check."""

from .validation_schemas import (
    BlockResult,
    CheckSummary,
    DocumentReport,
    FailedFile,
    MermaidBlock,
    ValidationResult,
)
from .schemas import ErrorInfo, ErrorResponse

__all__ = [
    "BlockResult",
    "CheckSummary",
    "DocumentReport",
    "FailedFile",
    "MermaidBlock",
    "ValidationResult",
    "ErrorInfo",
    "ErrorResponse",
]
