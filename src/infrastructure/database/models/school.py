# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School reference tables read by the gradebook service.

Classrooms, students and experience fields are maintained by the school
administration endpoints. The gradebook only reads them: the classroom
roster when lessons and evaluations are built, and the experience field
catalog when kindergarten evaluations are displayed.
"""

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, JSONBCompatible, TimestampMixin


class Student(Base, TimestampMixin):
    """Student registered in a school."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    school_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cpf: Mapped[str | None] = mapped_column(String(14), nullable=True)

    __table_args__ = (Index("ix_students_school_id", "school_id"),)


class Classroom(Base, TimestampMixin):
    """Classroom of a school, owner of a student roster."""

    __tablename__ = "classrooms"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    school_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    shift: Mapped[str | None] = mapped_column(String(20), nullable=True)

    __table_args__ = (Index("ix_classrooms_school_id", "school_id"),)


class ClassroomStudent(Base):
    """Roster membership. ``position`` keeps the roster order."""

    __tablename__ = "classroom_students"

    classroom_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("students.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ExperienceField(Base, TimestampMixin):
    """Early-childhood experience field defined by a school.

    Attributes:
        name: Field name shown on kindergarten evaluations.
        description: Free-text description.
        bncc_codes: List of {"code", "description"} objects.
        evaluation_criteria: List of {"label", "description"} objects.
    """

    __tablename__ = "experience_fields"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    school_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    bncc_codes: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONBCompatible,
        nullable=False,
        default=list,
    )
    evaluation_criteria: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONBCompatible,
        nullable=False,
        default=list,
    )

    __table_args__ = (Index("ix_experience_fields_school_id", "school_id"),)
