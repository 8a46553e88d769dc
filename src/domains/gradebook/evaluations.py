# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Evaluation read views and batch upserts for both tracks.

Reads cover the current roster: students without a stored record get a
placeholder that is never persisted. Writes apply a whole batch to the
in-memory term and report whether anything actually changed, so the
caller can skip the save for a no-op batch.
"""

from typing import Sequence
from uuid import UUID

from src.domains.gradebook.aggregation import absences_by_student, sort_by_student_name
from src.domains.gradebook.exceptions import GradebookValidationError
from src.domains.gradebook.models import (
    SCORE_FIELDS,
    DevelopmentStatus,
    FieldAssessment,
    KindergartenTerm,
    NumericEvaluation,
    QualitativeEvaluation,
    RegularTerm,
    StudentSnapshot,
)
from src.models.gradebook import (
    FieldAssessmentView,
    NumericEvaluationInput,
    NumericEvaluationView,
    QualitativeEvaluationInput,
    QualitativeEvaluationView,
    StudentRef,
)


def _snapshot_for(ref: StudentRef, roster_by_id: dict[UUID, StudentSnapshot]) -> StudentSnapshot:
    """Snapshot the roster entry, or the client-supplied identity off-roster."""
    student = roster_by_id.get(ref.id)
    if student is not None:
        return student.model_copy()
    if not ref.name:
        raise GradebookValidationError(
            "Student is not on the classroom roster and no name was supplied",
            {"student_id": str(ref.id)},
        )
    return StudentSnapshot(id=ref.id, name=ref.name, cpf=ref.cpf)


def _reject_duplicates(student_ids: Sequence[UUID]) -> None:
    seen: set[UUID] = set()
    duplicates = []
    for student_id in student_ids:
        if student_id in seen:
            duplicates.append(str(student_id))
        seen.add(student_id)
    if duplicates:
        raise GradebookValidationError(
            "Evaluation batch lists a student more than once",
            {"duplicates": duplicates},
        )


# ============================================================================
# Regular track
# ============================================================================


def numeric_evaluation_views(
    term: RegularTerm,
    roster: Sequence[StudentSnapshot],
    locale_name: str | None = None,
) -> list[NumericEvaluationView]:
    """Evaluations of every roster student with derived absences.

    Args:
        term: Term to read.
        roster: Current classroom roster.
        locale_name: Collation locale for the name order.

    Returns:
        One view per roster student sorted by name; zero-valued
        placeholders for students without a record.
    """
    absences = absences_by_student(term.lessons)
    views = []
    for student in roster:
        evaluation = term.find_evaluation(student.id)
        if evaluation is None:
            views.append(
                NumericEvaluationView(
                    student=student,
                    total_absences=absences[student.id],
                    persisted=False,
                    **{name: 0.0 for name in SCORE_FIELDS},
                )
            )
        else:
            views.append(
                NumericEvaluationView(
                    student=evaluation.student,
                    total_absences=absences[student.id],
                    **{name: value or 0.0 for name, value in evaluation.scores().items()},
                )
            )
    return sort_by_student_name(views, lambda view: view.student.name, locale_name)


def upsert_numeric_evaluations(
    term: RegularTerm,
    incoming: Sequence[NumericEvaluationInput],
    roster: Sequence[StudentSnapshot],
) -> bool:
    """Apply a batch of numeric evaluations to ``term``.

    New students get a record with a snapshot of their identity. Existing
    records have all score fields replaced, but only when at least one
    value differs; the snapshot is refreshed from the roster at that point.
    Client-supplied absences are ignored.

    Args:
        term: Term to write.
        incoming: Evaluations keyed by student id.
        roster: Current classroom roster.

    Returns:
        True if any record was created or changed.

    Raises:
        GradebookValidationError: On duplicate students, or an off-roster
            student with no name.
    """
    _reject_duplicates([item.student.id for item in incoming])
    roster_by_id = {student.id: student for student in roster}

    changed = False
    for item in incoming:
        existing = term.find_evaluation(item.student.id)
        if existing is None:
            term.evaluations.append(
                NumericEvaluation(student=_snapshot_for(item.student, roster_by_id), **item.scores())
            )
            changed = True
        elif existing.apply_scores(item.scores()):
            if item.student.id in roster_by_id:
                existing.student = roster_by_id[item.student.id].model_copy()
            changed = True
    return changed


# ============================================================================
# Kindergarten track
# ============================================================================


def qualitative_evaluation_views(
    term: KindergartenTerm,
    roster: Sequence[StudentSnapshot],
    field_names: Sequence[str],
    locale_name: str | None = None,
) -> list[QualitativeEvaluationView]:
    """Evaluations of every roster student covering every catalog field.

    Catalog fields without a stored status are shown as not-yet; stored
    fields missing from the catalog are kept after the catalog ones.

    Args:
        term: Term to read.
        roster: Current classroom roster.
        field_names: Experience field names of the school, in display order.
        locale_name: Collation locale for the name order.

    Returns:
        One view per roster student sorted by name.
    """
    absences = absences_by_student(term.lessons)
    views = []
    for student in roster:
        evaluation = term.find_evaluation(student.id)
        stored = {a.field_name: a for a in evaluation.assessments} if evaluation else {}

        assessments = []
        for name in field_names:
            assessment = stored.pop(name, None)
            if assessment is None:
                assessments.append(
                    FieldAssessmentView(
                        field_name=name,
                        status=DevelopmentStatus.NOT_YET,
                        persisted=False,
                    )
                )
            else:
                assessments.append(FieldAssessmentView(**assessment.model_dump()))
        assessments.extend(FieldAssessmentView(**a.model_dump()) for a in stored.values())

        views.append(
            QualitativeEvaluationView(
                student=evaluation.student if evaluation else student,
                assessments=assessments,
                total_absences=absences[student.id],
                persisted=evaluation is not None,
            )
        )
    return sort_by_student_name(views, lambda view: view.student.name, locale_name)


def upsert_qualitative_evaluations(
    term: KindergartenTerm,
    incoming: Sequence[QualitativeEvaluationInput],
    roster: Sequence[StudentSnapshot],
) -> bool:
    """Apply a batch of per-field statuses to ``term``.

    For each student, a field already on the record has its status
    overwritten; a new field is appended. Fields not in the payload are
    left untouched.

    Returns:
        True if any record was created or changed.

    Raises:
        GradebookValidationError: On duplicate students or fields, or an
            off-roster student with no name.
    """
    _reject_duplicates([item.student.id for item in incoming])
    roster_by_id = {student.id: student for student in roster}

    changed = False
    for item in incoming:
        field_names = [assessment.field_name for assessment in item.assessments]
        if len(set(field_names)) != len(field_names):
            raise GradebookValidationError(
                "Evaluation lists an experience field more than once",
                {"student_id": str(item.student.id)},
            )

        evaluation = term.find_evaluation(item.student.id)
        if evaluation is None:
            evaluation = QualitativeEvaluation(student=_snapshot_for(item.student, roster_by_id))
            term.evaluations.append(evaluation)
            changed = True

        for assessment in item.assessments:
            if evaluation.upsert_assessment(FieldAssessment(**assessment.model_dump())):
                changed = True
    return changed
