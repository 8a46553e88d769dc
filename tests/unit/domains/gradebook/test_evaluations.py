# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for evaluation views and batch upserts."""

import datetime as dt
from uuid import uuid4

import pytest

from src.domains.gradebook.evaluations import (
    numeric_evaluation_views,
    qualitative_evaluation_views,
    upsert_numeric_evaluations,
    upsert_qualitative_evaluations,
)
from src.domains.gradebook.exceptions import GradebookValidationError
from src.domains.gradebook.models import (
    AttendanceEntry,
    DevelopmentStatus,
    KindergartenTerm,
    RegularTerm,
    StudentSnapshot,
)
from src.models.gradebook import (
    FieldAssessmentInput,
    NumericEvaluationInput,
    QualitativeEvaluationInput,
    StudentRef,
)


@pytest.fixture
def regular_term() -> RegularTerm:
    return RegularTerm(start_date=dt.date(2025, 2, 3), end_date=dt.date(2025, 4, 11))


@pytest.fixture
def kindergarten_term() -> KindergartenTerm:
    return KindergartenTerm(start_date=dt.date(2025, 2, 3), end_date=dt.date(2025, 7, 4))


def _numeric(student: StudentSnapshot, **scores: float) -> NumericEvaluationInput:
    return NumericEvaluationInput(student=StudentRef(id=student.id), **scores)


class TestNumericUpsert:
    """Tests for regular-track evaluation upserts."""

    def test_creates_record_with_roster_snapshot(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster

        changed = upsert_numeric_evaluations(
            regular_term, [_numeric(ana, monthly_exam=8.0, bimonthly_average=7.5)], roster
        )

        assert changed is True
        record = regular_term.find_evaluation(ana.id)
        assert record.student == ana
        assert record.monthly_exam == 8.0
        assert record.bimonthly_average == 7.5

    def test_identical_batch_is_noop(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        batch = [_numeric(ana, monthly_exam=8.0)]
        upsert_numeric_evaluations(regular_term, batch, roster)

        assert upsert_numeric_evaluations(regular_term, batch, roster) is False
        assert len(regular_term.evaluations) == 1

    def test_changed_scores_refresh_snapshot(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        upsert_numeric_evaluations(regular_term, [_numeric(ana, monthly_exam=8.0)], roster)
        renamed = [StudentSnapshot(id=ana.id, name="Ana Lima Prado")]

        changed = upsert_numeric_evaluations(regular_term, [_numeric(ana, monthly_exam=9.0)], renamed)

        assert changed is True
        assert regular_term.find_evaluation(ana.id).student.name == "Ana Lima Prado"

    def test_unchanged_scores_keep_snapshot(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        upsert_numeric_evaluations(regular_term, [_numeric(ana, monthly_exam=8.0)], roster)
        renamed = [StudentSnapshot(id=ana.id, name="Ana Lima Prado")]

        upsert_numeric_evaluations(regular_term, [_numeric(ana, monthly_exam=8.0)], renamed)

        assert regular_term.find_evaluation(ana.id).student.name == "Ana Lima"

    def test_client_absences_are_ignored(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        item = NumericEvaluationInput(student=StudentRef(id=ana.id), total_absences=12)

        upsert_numeric_evaluations(regular_term, [item], roster)
        views = numeric_evaluation_views(regular_term, roster, "C")

        assert next(v for v in views if v.student.id == ana.id).total_absences == 0

    def test_off_roster_student_needs_name(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        item = NumericEvaluationInput(student=StudentRef(id=uuid4()), monthly_exam=5.0)

        with pytest.raises(GradebookValidationError):
            upsert_numeric_evaluations(regular_term, [item], roster)

    def test_off_roster_student_with_name(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        ref = StudentRef(id=uuid4(), name="Transferred Student", cpf="000.000.000-00")

        upsert_numeric_evaluations(regular_term, [NumericEvaluationInput(student=ref)], roster)

        assert regular_term.find_evaluation(ref.id).student.name == "Transferred Student"

    def test_duplicate_students_rejected(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster

        with pytest.raises(GradebookValidationError):
            upsert_numeric_evaluations(
                regular_term, [_numeric(ana, monthly_exam=1.0), _numeric(ana, monthly_exam=2.0)], roster
            )


class TestNumericViews:
    """Tests for regular-track evaluation reads."""

    def test_placeholders_and_absences(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        carla, ana, _ = roster
        upsert_numeric_evaluations(regular_term, [_numeric(ana, monthly_exam=8.0)], roster)
        lesson = regular_term.add_lesson("Fractions", dt.date(2025, 2, 10), 2, roster)
        regular_term.update_attendance(
            lesson.id,
            [AttendanceEntry(student_id=carla.id, present=False)],
        )

        views = numeric_evaluation_views(regular_term, roster, "C")

        assert [view.student.name for view in views] == ["Ana Lima", "Bruno Alves", "Carla Souza"]
        ana_view, bruno_view, carla_view = views
        assert ana_view.persisted is True
        assert ana_view.monthly_exam == 8.0
        # unset scores of a stored record read as zero, like placeholders
        assert ana_view.bimonthly_exam == 0.0
        assert ana_view.bimonthly_average == 0.0
        assert bruno_view.persisted is False
        assert bruno_view.monthly_exam == 0.0
        assert carla_view.total_absences == 1

    def test_reading_does_not_persist_placeholders(
        self, regular_term: RegularTerm, roster: list[StudentSnapshot]
    ) -> None:
        numeric_evaluation_views(regular_term, roster, "C")

        assert regular_term.evaluations == []


class TestQualitativeUpsert:
    """Tests for kindergarten evaluation upserts."""

    def test_upsert_keeps_unlisted_fields(
        self, kindergarten_term: KindergartenTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        first = QualitativeEvaluationInput(
            student=StudentRef(id=ana.id),
            assessments=[
                FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.NOT_YET),
                FieldAssessmentInput(field_name="Music", status=DevelopmentStatus.DEVELOPED),
            ],
        )
        second = QualitativeEvaluationInput(
            student=StudentRef(id=ana.id),
            assessments=[
                FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.UNDER_DEVELOPMENT),
            ],
        )

        upsert_qualitative_evaluations(kindergarten_term, [first], roster)
        changed = upsert_qualitative_evaluations(kindergarten_term, [second], roster)

        record = kindergarten_term.find_evaluation(ana.id)
        assert changed is True
        assert record.find_assessment("Body").status == DevelopmentStatus.UNDER_DEVELOPMENT
        assert record.find_assessment("Music").status == DevelopmentStatus.DEVELOPED

    def test_same_statuses_are_noop(
        self, kindergarten_term: KindergartenTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        batch = [
            QualitativeEvaluationInput(
                student=StudentRef(id=ana.id),
                assessments=[FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.DEVELOPED)],
            )
        ]
        upsert_qualitative_evaluations(kindergarten_term, batch, roster)

        assert upsert_qualitative_evaluations(kindergarten_term, batch, roster) is False

    def test_duplicate_field_rejected(
        self, kindergarten_term: KindergartenTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        item = QualitativeEvaluationInput(
            student=StudentRef(id=ana.id),
            assessments=[
                FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.DEVELOPED),
                FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.NOT_YET),
            ],
        )

        with pytest.raises(GradebookValidationError):
            upsert_qualitative_evaluations(kindergarten_term, [item], roster)


class TestQualitativeViews:
    """Tests for kindergarten evaluation reads."""

    def test_catalog_fields_filled_with_not_yet(
        self, kindergarten_term: KindergartenTerm, roster: list[StudentSnapshot]
    ) -> None:
        _, ana, _ = roster
        upsert_qualitative_evaluations(
            kindergarten_term,
            [
                QualitativeEvaluationInput(
                    student=StudentRef(id=ana.id),
                    assessments=[
                        FieldAssessmentInput(
                            field_name="Music",
                            status=DevelopmentStatus.DEVELOPED,
                            bncc_code="EI03TS01",
                        ),
                        FieldAssessmentInput(field_name="Body", status=DevelopmentStatus.DEVELOPED),
                    ],
                )
            ],
            roster,
        )

        views = qualitative_evaluation_views(kindergarten_term, roster, ["Body", "Speech"], "C")

        ana_view = views[0]
        assert ana_view.student.id == ana.id
        assert [a.field_name for a in ana_view.assessments] == ["Body", "Speech", "Music"]
        speech = ana_view.assessments[1]
        assert speech.status == DevelopmentStatus.NOT_YET
        assert speech.persisted is False
        assert ana_view.assessments[2].bncc_code == "EI03TS01"
        assert views[1].persisted is False
