# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only collaborators of the gradebook: classroom rosters and the
experience field catalog.

The service depends on the two protocols below; the SQL implementations
read the school reference tables.
"""

from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.gradebook.models import StudentSnapshot
from src.infrastructure.database.models.school import (
    ClassroomStudent,
    ExperienceField,
    Student,
)


class BnccCode(BaseModel):
    """BNCC curriculum code linked to an experience field."""

    code: str
    description: str | None = None


class EvaluationCriterion(BaseModel):
    """Observable criterion used when assessing an experience field."""

    label: str
    description: str | None = None


class ExperienceFieldInfo(BaseModel):
    """Experience field defined by a school."""

    id: UUID
    name: str
    description: str | None = None
    bncc_codes: list[BnccCode] = Field(default_factory=list)
    evaluation_criteria: list[EvaluationCriterion] = Field(default_factory=list)


class RosterProvider(Protocol):
    """Resolves the current student roster of a classroom."""

    async def get_roster(self, classroom_id: UUID) -> list[StudentSnapshot]:
        """Return the classroom's students in roster order."""
        ...


class ExperienceFieldCatalog(Protocol):
    """Lists the experience fields a school evaluates."""

    async def list_fields(self, school_id: UUID) -> list[ExperienceFieldInfo]:
        """Return the school's experience fields ordered by name."""
        ...


class SqlRosterProvider:
    """Roster provider backed by the classroom_students table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_roster(self, classroom_id: UUID) -> list[StudentSnapshot]:
        stmt = (
            select(Student)
            .join(ClassroomStudent, ClassroomStudent.student_id == Student.id)
            .where(ClassroomStudent.classroom_id == str(classroom_id))
            .order_by(ClassroomStudent.position, Student.name)
        )
        result = await self.db.execute(stmt)
        return [
            StudentSnapshot(id=student.id, name=student.name, cpf=student.cpf)
            for student in result.scalars().all()
        ]


class SqlExperienceFieldCatalog:
    """Experience field catalog backed by the experience_fields table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_fields(self, school_id: UUID) -> list[ExperienceFieldInfo]:
        stmt = (
            select(ExperienceField)
            .where(ExperienceField.school_id == str(school_id))
            .order_by(ExperienceField.name)
        )
        result = await self.db.execute(stmt)
        return [
            ExperienceFieldInfo(
                id=field.id,
                name=field.name,
                description=field.description,
                bncc_codes=field.bncc_codes or [],
                evaluation_criteria=field.evaluation_criteria or [],
            )
            for field in result.scalars().all()
        ]
