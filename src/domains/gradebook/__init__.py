# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gradebook domain package.

This package provides the gradebook aggregate and its operations:
- Term lifecycle and coordinator approval
- Lessons and attendance ledgers
- Numeric and qualitative evaluation upserts
- Annual learning record and kindergarten general record

The service lives in ``src.domains.gradebook.service`` and is imported
from there.
"""

from src.domains.gradebook.exceptions import (
    ApprovalTransitionError,
    AttendanceAlreadyExistsError,
    GradebookError,
    GradebookNotFoundError,
    GradebookValidationError,
    LessonNotFoundError,
    StaleGradebookError,
    TermNotFoundError,
)
from src.domains.gradebook.models import (
    ApprovalAction,
    ApprovalStatus,
    DevelopmentStatus,
    Gradebook,
    GradebookTrack,
    KindergartenGradebook,
    RegularGradebook,
)

__all__ = [
    "ApprovalAction",
    "ApprovalStatus",
    "ApprovalTransitionError",
    "AttendanceAlreadyExistsError",
    "DevelopmentStatus",
    "Gradebook",
    "GradebookError",
    "GradebookNotFoundError",
    "GradebookTrack",
    "GradebookValidationError",
    "KindergartenGradebook",
    "LessonNotFoundError",
    "RegularGradebook",
    "StaleGradebookError",
    "TermNotFoundError",
]
