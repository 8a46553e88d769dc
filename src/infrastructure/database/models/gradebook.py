# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gradebook document table.

Each row stores one whole gradebook aggregate (terms, lessons, attendance
and evaluations) as a JSON document. The header references are duplicated
into indexed columns so gradebooks can be listed by teacher or school
without reading the documents.

The ``version`` column is SQLAlchemy's version counter: every UPDATE is
issued with ``WHERE version = <loaded version>`` and a concurrent write
surfaces as ``StaleDataError`` on flush.
"""

import uuid
from typing import Any

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, JSONBCompatible, TimestampMixin


class GradebookRecord(Base, TimestampMixin):
    """Persisted gradebook aggregate.

    Attributes:
        id: Gradebook identifier.
        track: "regular" or "kindergarten".
        academic_year: School year the gradebook covers.
        school_id: Owning school.
        classroom_id: Classroom whose roster is graded.
        teacher_id: Responsible teacher.
        subject_id: Subject (regular track only).
        skill: Optional free-text skill label.
        document: Serialized aggregate (terms and everything below them).
        version: Optimistic concurrency counter.
    """

    __tablename__ = "gradebooks"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    track: Mapped[str] = mapped_column(String(20), nullable=False)
    academic_year: Mapped[int] = mapped_column(Integer, nullable=False)
    school_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    classroom_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    teacher_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    skill: Mapped[str | None] = mapped_column(Text, nullable=True)
    document: Mapped[dict[str, Any]] = mapped_column(
        JSONBCompatible,
        nullable=False,
        default=dict,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "track IN ('regular', 'kindergarten')",
            name="ck_gradebooks_track",
        ),
        Index("ix_gradebooks_teacher_id", "teacher_id"),
        Index("ix_gradebooks_school_id", "school_id"),
        Index("ix_gradebooks_classroom_id", "classroom_id"),
    )

    def __repr__(self) -> str:
        return f"<GradebookRecord {self.id} track={self.track} v{self.version}>"
