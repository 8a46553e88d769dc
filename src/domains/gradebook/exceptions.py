# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for gradebook operations.

This module defines the exception hierarchy for the gradebook domain:
- GradebookError: Base exception, rendered as 500
- GradebookNotFoundError / TermNotFoundError / LessonNotFoundError: 404
- GradebookValidationError: Missing fields, bad date ranges, bad rosters (400)
- AttendanceAlreadyExistsError: Second attendance creation on a lesson (409)
- StaleGradebookError: Write based on an outdated gradebook version (409)
- ApprovalTransitionError: Illegal coordinator approval transition (409)
"""

from typing import Any


class GradebookError(Exception):
    """Base exception for all gradebook errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional error context.
        status_code: HTTP status the API layer answers with.
    """

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize gradebook error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class GradebookNotFoundError(GradebookError):
    """Raised when a gradebook id does not resolve for the requested track."""

    status_code = 404

    def __init__(self, gradebook_id: Any):
        super().__init__(
            f"Gradebook {gradebook_id} not found",
            {"gradebook_id": str(gradebook_id)},
        )


class TermNotFoundError(GradebookError):
    """Raised when a term id does not resolve inside a gradebook."""

    status_code = 404

    def __init__(self, term_id: Any):
        super().__init__(f"Term {term_id} not found", {"term_id": str(term_id)})


class LessonNotFoundError(GradebookError):
    """Raised when a lesson id does not resolve inside a term."""

    status_code = 404

    def __init__(self, lesson_id: Any):
        super().__init__(
            f"Lesson {lesson_id} not found", {"lesson_id": str(lesson_id)}
        )


class GradebookValidationError(GradebookError):
    """Raised when a request is missing required data or breaks an invariant."""

    status_code = 400


class AttendanceAlreadyExistsError(GradebookError):
    """Raised when creating attendance for a lesson that already has a ledger."""

    status_code = 409

    def __init__(self, lesson_id: Any):
        super().__init__(
            "Attendance already recorded for this lesson; use update instead",
            {"lesson_id": str(lesson_id)},
        )


class StaleGradebookError(GradebookError):
    """Raised when a write is based on an outdated gradebook version."""

    status_code = 409

    def __init__(
        self,
        gradebook_id: Any,
        expected_version: int | None = None,
        current_version: int | None = None,
    ):
        details: dict[str, Any] = {"gradebook_id": str(gradebook_id)}
        if expected_version is not None:
            details["expected_version"] = expected_version
        if current_version is not None:
            details["current_version"] = current_version
        super().__init__(
            "Gradebook was modified by another request; reload and retry",
            details,
        )


class ApprovalTransitionError(GradebookError):
    """Raised when a coordinator approval transition is not allowed."""

    status_code = 409
