# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gradebook API request and response models.

Requests keep their domain-required fields optional so the service can
report every missing field in one validation error. Responses are read
views computed from the aggregate; absences in them are always derived
from attendance ledgers.
"""

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, Field

from src.domains.gradebook.models import (
    SCORE_FIELDS,
    DevelopmentStatus,
    KindergartenGradebook,
    RegularGradebook,
    Score,
    StudentSnapshot,
)


# ============================================================================
# Gradebook header
# ============================================================================


class GradebookCreateRequest(BaseModel):
    """Request model for creating a gradebook.

    ``subject_id`` is required on the regular track and ignored on the
    kindergarten track.
    """

    academic_year: int = Field(..., ge=1900, le=2999, description="School year")
    school_id: UUID
    classroom_id: UUID
    teacher_id: UUID
    subject_id: UUID | None = None
    skill: str | None = Field(default=None, max_length=500)


class GradebookUpdateRequest(BaseModel):
    """Request model for a partial gradebook header update."""

    academic_year: int | None = Field(default=None, ge=1900, le=2999)
    school_id: UUID | None = None
    classroom_id: UUID | None = None
    teacher_id: UUID | None = None
    subject_id: UUID | None = None
    skill: str | None = Field(default=None, max_length=500)


class RegularGradebookListResponse(BaseModel):
    """Response model for regular gradebook listings."""

    items: list[RegularGradebook]
    total: int


class KindergartenGradebookListResponse(BaseModel):
    """Response model for kindergarten gradebook listings."""

    items: list[KindergartenGradebook]
    total: int


# ============================================================================
# Terms and approval
# ============================================================================


class TermCreateRequest(BaseModel):
    """Request model for adding a term."""

    name: str | None = Field(default=None, max_length=100)
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class TermUpdateRequest(BaseModel):
    """Request model for a partial term update. Omitted fields are kept."""

    name: str | None = Field(default=None, max_length=100)
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class ApprovalRequest(BaseModel):
    """Optional coordinator comment attached to an approval transition."""

    comments: str | None = Field(default=None, max_length=2000)


# ============================================================================
# Lessons and attendance
# ============================================================================


class LessonCreateRequest(BaseModel):
    """Request model for adding a lesson."""

    topic: str | None = Field(default=None, max_length=500)
    date: dt.date | None = None
    workload: float | None = Field(
        default=None, allow_inf_nan=False, description="Workload in hours"
    )


class LessonUpdateRequest(BaseModel):
    """Request model for a partial lesson update."""

    topic: str | None = Field(default=None, max_length=500)
    date: dt.date | None = None
    workload: float | None = Field(default=None, allow_inf_nan=False)


class AttendanceEntryInput(BaseModel):
    """One attendance entry as sent by the client."""

    student_id: UUID | None = None
    present: bool = True


class AttendanceRequest(BaseModel):
    """Request model for creating or overwriting a lesson's attendance."""

    attendance: list[AttendanceEntryInput]


class AttendanceEntryView(BaseModel):
    """Attendance entry enriched with the student's current roster name."""

    student_id: UUID
    name: str | None = None
    present: bool


class LessonAttendanceResponse(BaseModel):
    """Response model for a lesson's attendance ledger."""

    lesson_id: UUID
    version: int
    topic: str
    date: dt.date
    attendance: list[AttendanceEntryView]


# ============================================================================
# Evaluations
# ============================================================================


class StudentRef(BaseModel):
    """Student reference carried by evaluation writes.

    ``name`` and ``cpf`` are only used when the student is not on the
    classroom roster.
    """

    id: UUID
    name: str | None = None
    cpf: str | None = None


class NumericEvaluationInput(BaseModel):
    """Scores of one student. ``total_absences`` is accepted and ignored."""

    student: StudentRef
    monthly_exam: Score = None
    bimonthly_exam: Score = None
    qualitative_assessment: Score = None
    bimonthly_grade: Score = None
    bimonthly_recovery: Score = None
    bimonthly_average: Score = None
    total_absences: int | None = None

    def scores(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in SCORE_FIELDS}


class NumericEvaluationsRequest(BaseModel):
    """Batch of regular-track evaluations for one term."""

    evaluations: list[NumericEvaluationInput]


class NumericEvaluationView(BaseModel):
    """Regular-track evaluation as displayed for one roster student.

    ``persisted`` is False for zero-valued placeholders.
    """

    student: StudentSnapshot
    monthly_exam: float | None = None
    bimonthly_exam: float | None = None
    qualitative_assessment: float | None = None
    bimonthly_grade: float | None = None
    bimonthly_recovery: float | None = None
    bimonthly_average: float | None = None
    total_absences: int = 0
    persisted: bool = True


class NumericEvaluationsResponse(BaseModel):
    """Response model for a term's regular-track evaluations."""

    term_id: UUID
    version: int
    changed: bool | None = None
    evaluations: list[NumericEvaluationView]


class FieldAssessmentInput(BaseModel):
    """Status of one experience field as sent by the client."""

    field_name: str = Field(..., min_length=1, max_length=200)
    status: DevelopmentStatus
    bncc_code: str | None = Field(default=None, max_length=50)
    observations: str | None = Field(default=None, max_length=2000)


class QualitativeEvaluationInput(BaseModel):
    """Field statuses of one student. ``total_absences`` is ignored."""

    student: StudentRef
    assessments: list[FieldAssessmentInput] = Field(default_factory=list)
    total_absences: int | None = None


class QualitativeEvaluationsRequest(BaseModel):
    """Batch of kindergarten evaluations for one term."""

    evaluations: list[QualitativeEvaluationInput]


class FieldAssessmentView(BaseModel):
    """Field status as displayed. ``persisted`` is False for filled-in fields."""

    field_name: str
    status: DevelopmentStatus
    bncc_code: str | None = None
    observations: str | None = None
    persisted: bool = True


class QualitativeEvaluationView(BaseModel):
    """Kindergarten evaluation covering every catalog field."""

    student: StudentSnapshot
    assessments: list[FieldAssessmentView]
    total_absences: int = 0
    persisted: bool = True


class QualitativeEvaluationsResponse(BaseModel):
    """Response model for a term's kindergarten evaluations."""

    term_id: UUID
    version: int
    changed: bool | None = None
    evaluations: list[QualitativeEvaluationView]


# ============================================================================
# Annual roll-ups
# ============================================================================


class TermAverageView(BaseModel):
    """Stored bimonthly average of a student in one term.

    ``recorded`` is False when the student has no evaluation in the term
    and the average shown is the zero fill.
    """

    term_id: UUID
    term_name: str | None = None
    average: float
    recorded: bool


class LearningRecordEntry(BaseModel):
    """Annual summary of one student on the regular track."""

    student: StudentSnapshot
    terms: list[TermAverageView]
    total_absences: int
    annual_average: float


class LearningRecordResponse(BaseModel):
    """Annual learning record of a regular gradebook."""

    gradebook_id: UUID
    academic_year: int
    students: list[LearningRecordEntry]


class FieldStatusView(BaseModel):
    """Best status reached by a student in one experience field."""

    field_name: str
    status: DevelopmentStatus


class GeneralRecordEntry(BaseModel):
    """Annual summary of one student on the kindergarten track."""

    student: StudentSnapshot
    field_statuses: list[FieldStatusView]
    total_absences: int


class GeneralRecordResponse(BaseModel):
    """General record of a kindergarten gradebook."""

    gradebook_id: UUID
    academic_year: int
    students: list[GeneralRecordEntry]
