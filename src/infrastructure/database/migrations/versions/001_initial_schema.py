# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial gradebook database schema.

Creates the gradebook document table and the school reference tables it
reads (students, classrooms, classroom rosters, experience fields).

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-02-01
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Create gradebook database tables."""
    # =========================================================================
    # SCHOOL REFERENCE TABLES
    # =========================================================================

    op.create_table(
        "students",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("cpf", sa.String(14), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_students_school_id", "students", ["school_id"])

    op.create_table(
        "classrooms",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("shift", sa.String(20), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_classrooms_school_id", "classrooms", ["school_id"])

    op.create_table(
        "classroom_students",
        sa.Column(
            "classroom_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("classrooms.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "experience_fields",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("bncc_codes", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column(
            "evaluation_criteria", postgresql.JSONB, nullable=False, server_default="[]"
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_experience_fields_school_id", "experience_fields", ["school_id"]
    )

    # =========================================================================
    # GRADEBOOK DOCUMENTS
    # =========================================================================

    op.create_table(
        "gradebooks",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("track", sa.String(20), nullable=False),
        sa.Column("academic_year", sa.Integer, nullable=False),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("classroom_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("skill", sa.Text, nullable=True),
        sa.Column("document", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint(
            "track IN ('regular', 'kindergarten')",
            name="ck_gradebooks_track",
        ),
    )
    op.create_index("ix_gradebooks_teacher_id", "gradebooks", ["teacher_id"])
    op.create_index("ix_gradebooks_school_id", "gradebooks", ["school_id"])
    op.create_index("ix_gradebooks_classroom_id", "gradebooks", ["classroom_id"])


def downgrade() -> None:
    """Drop gradebook database tables."""
    op.drop_table("gradebooks")
    op.drop_table("experience_fields")
    op.drop_table("classroom_students")
    op.drop_table("classrooms")
    op.drop_table("students")
