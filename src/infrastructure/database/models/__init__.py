# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models."""

from src.infrastructure.database.models.base import Base, JSONBCompatible, TimestampMixin
from src.infrastructure.database.models.gradebook import GradebookRecord
from src.infrastructure.database.models.school import (
    Classroom,
    ClassroomStudent,
    ExperienceField,
    Student,
)

__all__ = [
    "Base",
    "JSONBCompatible",
    "TimestampMixin",
    "GradebookRecord",
    "Classroom",
    "ClassroomStudent",
    "ExperienceField",
    "Student",
]
