"""Input validation package."""

from finance_tracker.validation.validator import (
    InputValidator,
    ValidationError,
    summarize_issues,
)

__all__ = ["InputValidator", "ValidationError", "summarize_issues"]
