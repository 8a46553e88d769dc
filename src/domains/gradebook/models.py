# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gradebook aggregate.

A gradebook owns an ordered list of terms. Each term owns its lessons
(with one attendance ledger per lesson) and one evaluation record per
student. Both tracks share the same term, lesson and attendance rules;
they differ only in the evaluation variant a term holds:

- RegularGradebook: terms hold NumericEvaluation records and carry a
  coordinator approval.
- KindergartenGradebook: terms hold QualitativeEvaluation records, one
  developmental status per experience field.

The ``Gradebook`` tagged union (discriminated by ``track``) is what the
repository loads and saves. Every mutation in this module works on the
in-memory aggregate only; persisting it is the repository's job.
"""

import datetime as dt
import math
from enum import Enum
from typing import Annotated, Any, ClassVar, Generic, Iterable, Literal, Sequence, TypeVar, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, TypeAdapter, computed_field

from src.domains.gradebook.exceptions import (
    ApprovalTransitionError,
    AttendanceAlreadyExistsError,
    GradebookValidationError,
    LessonNotFoundError,
    TermNotFoundError,
)
from src.utils.datetime import utc_now


class GradebookTrack(str, Enum):
    """Gradebook variants."""

    REGULAR = "regular"
    KINDERGARTEN = "kindergarten"


class DevelopmentStatus(str, Enum):
    """Developmental status of a student in one experience field.

    Ordered: not-yet < under-development < developed.
    """

    NOT_YET = "not-yet"
    UNDER_DEVELOPMENT = "under-development"
    DEVELOPED = "developed"

    @property
    def rank(self) -> int:
        """Position in the progression order, starting at 0."""
        return _DEVELOPMENT_ORDER.index(self)


_DEVELOPMENT_ORDER = (
    DevelopmentStatus.NOT_YET,
    DevelopmentStatus.UNDER_DEVELOPMENT,
    DevelopmentStatus.DEVELOPED,
)


class ApprovalStatus(str, Enum):
    """Coordinator approval state of a regular-track term."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    """Directional approval transitions."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REOPEN = "reopen"


# action -> (allowed source states, target state)
_APPROVAL_TRANSITIONS: dict[ApprovalAction, tuple[frozenset[ApprovalStatus], ApprovalStatus]] = {
    ApprovalAction.SUBMIT: (
        frozenset({ApprovalStatus.DRAFT, ApprovalStatus.REJECTED}),
        ApprovalStatus.SUBMITTED,
    ),
    ApprovalAction.APPROVE: (
        frozenset({ApprovalStatus.DRAFT, ApprovalStatus.SUBMITTED}),
        ApprovalStatus.APPROVED,
    ),
    ApprovalAction.REJECT: (
        frozenset({ApprovalStatus.SUBMITTED}),
        ApprovalStatus.REJECTED,
    ),
    ApprovalAction.REOPEN: (
        frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
        ApprovalStatus.DRAFT,
    ),
}

SCORE_FIELDS: tuple[str, ...] = (
    "monthly_exam",
    "bimonthly_exam",
    "qualitative_assessment",
    "bimonthly_grade",
    "bimonthly_recovery",
    "bimonthly_average",
)

# NaN and Infinity have no JSON encoding
Score = Annotated[float | None, Field(allow_inf_nan=False)]


# ============================================================================
# Leaf records
# ============================================================================


class StudentSnapshot(BaseModel):
    """Student identity copied into a record when it is written.

    Not a live reference: later renames in the roster do not change it.
    """

    id: UUID
    name: str
    cpf: str | None = None


class AttendanceEntry(BaseModel):
    """Presence of one student in one lesson."""

    student_id: UUID
    present: bool = True


class Lesson(BaseModel):
    """A single class session with its attendance ledger."""

    id: UUID = Field(default_factory=uuid4)
    topic: str
    date: dt.date
    workload: float = Field(gt=0, allow_inf_nan=False, description="Workload in hours")
    attendance: list[AttendanceEntry] = Field(default_factory=list)

    @property
    def has_attendance(self) -> bool:
        return bool(self.attendance)

    def ledger_student_ids(self) -> set[UUID]:
        return {entry.student_id for entry in self.attendance}


class NumericEvaluation(BaseModel):
    """Regular-track evaluation of one student in one term.

    Absences are not stored here; they are always derived from the
    term's attendance ledgers.
    """

    student: StudentSnapshot
    monthly_exam: Score = None
    bimonthly_exam: Score = None
    qualitative_assessment: Score = None
    bimonthly_grade: Score = None
    bimonthly_recovery: Score = None
    bimonthly_average: Score = None

    @property
    def student_id(self) -> UUID:
        return self.student.id

    def scores(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in SCORE_FIELDS}

    def apply_scores(self, scores: dict[str, float | None]) -> bool:
        """Overwrite the score fields with ``scores``.

        Args:
            scores: Mapping of score field name to value. Missing keys are
                treated as None.

        Returns:
            True if at least one stored value changed.
        """
        incoming = {name: scores.get(name) for name in SCORE_FIELDS}
        if incoming == self.scores():
            return False
        for name, value in incoming.items():
            setattr(self, name, value)
        return True


class FieldAssessment(BaseModel):
    """Status of a student in one experience field."""

    field_name: str
    status: DevelopmentStatus
    bncc_code: str | None = None
    observations: str | None = None


class QualitativeEvaluation(BaseModel):
    """Kindergarten evaluation of one student in one term."""

    student: StudentSnapshot
    assessments: list[FieldAssessment] = Field(default_factory=list)

    @property
    def student_id(self) -> UUID:
        return self.student.id

    def find_assessment(self, field_name: str) -> FieldAssessment | None:
        for assessment in self.assessments:
            if assessment.field_name == field_name:
                return assessment
        return None

    def upsert_assessment(self, incoming: FieldAssessment) -> bool:
        """Overwrite the field's status if present, append it otherwise.

        ``bncc_code`` and ``observations`` are only overwritten when the
        incoming assessment carries them.

        Returns:
            True if the record changed.
        """
        existing = self.find_assessment(incoming.field_name)
        if existing is None:
            self.assessments.append(incoming.model_copy())
            return True

        changed = False
        if existing.status != incoming.status:
            existing.status = incoming.status
            changed = True
        for attr in ("bncc_code", "observations"):
            value = getattr(incoming, attr)
            if value is not None and value != getattr(existing, attr):
                setattr(existing, attr, value)
                changed = True
        return changed


class CoordinatorApproval(BaseModel):
    """Coordinator sign-off of a regular-track term."""

    status: ApprovalStatus = ApprovalStatus.DRAFT
    approved_by: str | None = None
    approved_at: dt.datetime | None = None
    comments: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED

    def transition(
        self,
        action: ApprovalAction,
        actor_id: str,
        comments: str | None = None,
    ) -> None:
        """Apply a directional approval transition.

        Args:
            action: Transition to apply.
            actor_id: Id of the authenticated caller.
            comments: Optional comment; required when rejecting.

        Raises:
            ApprovalTransitionError: If the current status does not allow it.
            GradebookValidationError: If a rejection carries no comment.
        """
        allowed, target = _APPROVAL_TRANSITIONS[action]
        if self.status not in allowed:
            raise ApprovalTransitionError(
                f"Cannot {action.value} a term whose approval is {self.status.value}",
                {
                    "action": action.value,
                    "status": self.status.value,
                    "allowed_from": sorted(s.value for s in allowed),
                },
            )
        if action == ApprovalAction.REJECT and not (comments and comments.strip()):
            raise GradebookValidationError("A comment is required to reject a term")
        self._move_to(target, actor_id, comments)

    def toggle(self, actor_id: str, comments: str | None = None) -> None:
        """Flip between approved and draft.

        Approved terms go back to draft; any other status becomes approved.
        """
        if self.status == ApprovalStatus.APPROVED:
            self._move_to(ApprovalStatus.DRAFT, actor_id, comments)
        else:
            self._move_to(ApprovalStatus.APPROVED, actor_id, comments)

    def _move_to(self, target: ApprovalStatus, actor_id: str, comments: str | None) -> None:
        self.status = target
        if target == ApprovalStatus.APPROVED:
            self.approved_by = actor_id
            self.approved_at = utc_now()
        elif target == ApprovalStatus.DRAFT:
            self.approved_by = None
            self.approved_at = None
        if comments is not None:
            self.comments = comments


# ============================================================================
# Term
# ============================================================================

EvaluationT = TypeVar("EvaluationT", NumericEvaluation, QualitativeEvaluation)


def _check_date_range(start_date: dt.date, end_date: dt.date) -> None:
    if end_date < start_date:
        raise GradebookValidationError(
            "Term end date must not be before its start date",
            {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


def _missing_fields(**values: Any) -> list[str]:
    return [name for name, value in values.items() if value is None or value == ""]


class Term(BaseModel, Generic[EvaluationT]):
    """A bounded grading period owning lessons and evaluations."""

    id: UUID = Field(default_factory=uuid4)
    name: str | None = None
    start_date: dt.date
    end_date: dt.date
    lessons: list[Lesson] = Field(default_factory=list)
    evaluations: list[EvaluationT] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        name: str | None,
        start_date: dt.date | None,
        end_date: dt.date | None,
    ) -> "Term":
        """Build an empty term after checking required dates and their order.

        Raises:
            GradebookValidationError: If a date is missing or end < start.
        """
        missing = _missing_fields(start_date=start_date, end_date=end_date)
        if missing:
            raise GradebookValidationError(
                f"Missing required fields: {', '.join(missing)}",
                {"missing": missing},
            )
        _check_date_range(start_date, end_date)
        return cls(name=name, start_date=start_date, end_date=end_date)

    def update(self, changes: dict[str, Any]) -> None:
        """Merge the provided fields into the term.

        Args:
            changes: Subset of ``name``, ``start_date`` and ``end_date``.
                Omitted keys are left unchanged.

        Raises:
            GradebookValidationError: If a date is cleared or the merged
                range is inverted.
        """
        cleared = [key for key in ("start_date", "end_date") if key in changes and changes[key] is None]
        if cleared:
            raise GradebookValidationError(
                f"Fields cannot be null: {', '.join(cleared)}",
                {"fields": cleared},
            )
        start_date = changes.get("start_date", self.start_date)
        end_date = changes.get("end_date", self.end_date)
        _check_date_range(start_date, end_date)
        if "name" in changes:
            self.name = changes["name"]
        self.start_date = start_date
        self.end_date = end_date

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    def find_lesson(self, lesson_id: UUID) -> Lesson:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        raise LessonNotFoundError(lesson_id)

    def add_lesson(
        self,
        topic: str | None,
        date: dt.date | None,
        workload: float | None,
        roster: Sequence[StudentSnapshot] = (),
    ) -> Lesson:
        """Append a lesson, pre-filling attendance from the roster.

        Every current roster member is marked present. An empty roster
        leaves the ledger empty so attendance can be created later.

        Args:
            topic: Lesson topic.
            date: Lesson date.
            workload: Workload in hours, must be positive.
            roster: Current classroom roster.

        Returns:
            The created lesson.

        Raises:
            GradebookValidationError: If a field is missing or workload <= 0.
        """
        missing = _missing_fields(topic=topic, date=date, workload=workload)
        if missing:
            raise GradebookValidationError(
                f"Missing required fields: {', '.join(missing)}",
                {"missing": missing},
            )
        _check_workload(workload)

        lesson = Lesson(
            topic=topic,
            date=date,
            workload=workload,
            attendance=[AttendanceEntry(student_id=student.id, present=True) for student in roster],
        )
        self.lessons.append(lesson)
        return lesson

    def update_lesson(self, lesson_id: UUID, changes: dict[str, Any]) -> Lesson:
        """Merge provided lesson fields, then re-sort lessons by date.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
            GradebookValidationError: If a field is cleared or workload <= 0.
        """
        lesson = self.find_lesson(lesson_id)
        cleared = [key for key in ("topic", "date", "workload") if key in changes and changes[key] in (None, "")]
        if cleared:
            raise GradebookValidationError(
                f"Fields cannot be empty: {', '.join(cleared)}",
                {"fields": cleared},
            )
        if "workload" in changes:
            _check_workload(changes["workload"])

        for key in ("topic", "date", "workload"):
            if key in changes:
                setattr(lesson, key, changes[key])

        # stable: lessons sharing a date keep their relative order
        self.lessons.sort(key=lambda item: item.date)
        return lesson

    def remove_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = self.find_lesson(lesson_id)
        self.lessons.remove(lesson)
        return lesson

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def create_attendance(
        self,
        lesson_id: UUID,
        entries: Sequence[AttendanceEntry],
        roster_ids: Iterable[UUID] | None = None,
    ) -> Lesson:
        """Record the attendance ledger of a lesson that has none yet.

        Args:
            lesson_id: Target lesson.
            entries: Attendance entries.
            roster_ids: Allowed student ids, or None to skip the roster check.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
            AttendanceAlreadyExistsError: If the ledger is non-empty.
            GradebookValidationError: On duplicate or non-roster students.
        """
        lesson = self.find_lesson(lesson_id)
        if lesson.has_attendance:
            raise AttendanceAlreadyExistsError(lesson_id)
        _validate_attendance(entries, None if roster_ids is None else set(roster_ids))
        lesson.attendance = [entry.model_copy() for entry in entries]
        return lesson

    def update_attendance(
        self,
        lesson_id: UUID,
        entries: Sequence[AttendanceEntry],
        roster_ids: Iterable[UUID] | None = None,
    ) -> Lesson:
        """Overwrite the attendance ledger of a lesson.

        Students already in the ledger stay editable after they leave the
        classroom, so they are accepted alongside the current roster.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
            GradebookValidationError: On duplicate or unknown students.
        """
        lesson = self.find_lesson(lesson_id)
        allowed = None
        if roster_ids is not None:
            allowed = set(roster_ids) | lesson.ledger_student_ids()
        _validate_attendance(entries, allowed)
        lesson.attendance = [entry.model_copy() for entry in entries]
        return lesson

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    def find_evaluation(self, student_id: UUID) -> EvaluationT | None:
        for evaluation in self.evaluations:
            if evaluation.student.id == student_id:
                return evaluation
        return None


def _check_workload(workload: Any) -> None:
    if not math.isfinite(workload) or workload <= 0:
        raise GradebookValidationError(
            "Lesson workload must be a positive number of hours",
            {"workload": str(workload)},
        )


def _validate_attendance(
    entries: Sequence[AttendanceEntry],
    allowed_ids: set[UUID] | None,
) -> None:
    seen: set[UUID] = set()
    duplicates: list[str] = []
    for entry in entries:
        if entry.student_id in seen:
            duplicates.append(str(entry.student_id))
        seen.add(entry.student_id)
    if duplicates:
        raise GradebookValidationError(
            "Attendance lists a student more than once",
            {"duplicates": duplicates},
        )

    if allowed_ids is not None:
        unknown = [str(entry.student_id) for entry in entries if entry.student_id not in allowed_ids]
        if unknown:
            raise GradebookValidationError(
                "Attendance references students outside the classroom roster",
                {"unknown_students": unknown},
            )


class RegularTerm(Term[NumericEvaluation]):
    """Regular-track term with numeric evaluations and coordinator approval."""

    approval: CoordinatorApproval = Field(default_factory=CoordinatorApproval)


class KindergartenTerm(Term[QualitativeEvaluation]):
    """Kindergarten term with qualitative evaluations."""


# ============================================================================
# Gradebook aggregate
# ============================================================================


class GradebookBase(BaseModel):
    """Fields and term operations shared by both gradebook tracks.

    ``version``, ``created_at`` and ``updated_at`` mirror the stored row and
    are filled by the repository.
    """

    term_model: ClassVar[type[Term]]

    id: UUID = Field(default_factory=uuid4)
    academic_year: int
    school_id: UUID
    classroom_id: UUID
    teacher_id: UUID
    skill: str | None = None
    version: int = 0
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def find_term(self, term_id: UUID) -> Term:
        for term in self.terms:
            if term.id == term_id:
                return term
        raise TermNotFoundError(term_id)

    def add_term(
        self,
        name: str | None,
        start_date: dt.date | None,
        end_date: dt.date | None,
    ) -> Term:
        term = self.term_model.create(name, start_date, end_date)
        self.terms.append(term)
        return term

    def remove_term(self, term_id: UUID) -> Term:
        """Remove a term together with all its lessons and evaluations."""
        term = self.find_term(term_id)
        self.terms.remove(term)
        return term

    def update_header(self, changes: dict[str, Any]) -> None:
        """Merge provided header fields (academic year, references, skill)."""
        for key, value in changes.items():
            if key not in self.header_fields():
                continue
            if value is None and key != "skill":
                raise GradebookValidationError(f"Field cannot be null: {key}", {"field": key})
            setattr(self, key, value)

    @classmethod
    def header_fields(cls) -> frozenset[str]:
        return frozenset({"academic_year", "school_id", "classroom_id", "teacher_id", "skill"})


class RegularGradebook(GradebookBase):
    """Regular-track gradebook for one classroom and subject."""

    term_model: ClassVar[type[Term]] = RegularTerm

    track: Literal["regular"] = "regular"
    subject_id: UUID
    terms: list[RegularTerm] = Field(default_factory=list)

    @classmethod
    def header_fields(cls) -> frozenset[str]:
        return super().header_fields() | {"subject_id"}


class KindergartenGradebook(GradebookBase):
    """Early-childhood gradebook evaluated by experience fields."""

    term_model: ClassVar[type[Term]] = KindergartenTerm

    track: Literal["kindergarten"] = "kindergarten"
    terms: list[KindergartenTerm] = Field(default_factory=list)


Gradebook = Annotated[
    Union[RegularGradebook, KindergartenGradebook],
    Field(discriminator="track"),
]

gradebook_adapter: TypeAdapter[RegularGradebook | KindergartenGradebook] = TypeAdapter(Gradebook)
