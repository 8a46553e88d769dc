# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gradebook service orchestrating aggregate operations.

Every operation loads the aggregate, resolves the classroom roster when
it needs one, applies the mutation or read in memory and, for mutations,
writes the whole aggregate back. Callers may pass the version they last
saw; a mismatch is rejected before anything is changed.
"""

import logging
from uuid import UUID

from src.core.config.settings import GradebookSettings
from src.domains.gradebook.aggregation import build_general_record, build_learning_record
from src.domains.gradebook.evaluations import (
    numeric_evaluation_views,
    qualitative_evaluation_views,
    upsert_numeric_evaluations,
    upsert_qualitative_evaluations,
)
from src.domains.gradebook.exceptions import GradebookValidationError, StaleGradebookError
from src.domains.gradebook.models import (
    ApprovalAction,
    AttendanceEntry,
    Gradebook,
    GradebookTrack,
    KindergartenGradebook,
    Lesson,
    RegularGradebook,
    StudentSnapshot,
    Term,
)
from src.domains.gradebook.repository import GradebookRepository
from src.domains.gradebook.roster import ExperienceFieldCatalog, RosterProvider
from src.models.gradebook import (
    AttendanceEntryView,
    AttendanceRequest,
    GeneralRecordResponse,
    GradebookCreateRequest,
    GradebookUpdateRequest,
    LearningRecordResponse,
    LessonAttendanceResponse,
    LessonCreateRequest,
    LessonUpdateRequest,
    NumericEvaluationsRequest,
    NumericEvaluationsResponse,
    QualitativeEvaluationsRequest,
    QualitativeEvaluationsResponse,
    TermCreateRequest,
    TermUpdateRequest,
)
from src.utils.logging import bind_gradebook

logger = logging.getLogger(__name__)


class GradebookService:
    """Service for gradebook terms, lessons, attendance and evaluations.

    Attributes:
        repository: Aggregate persistence.
        roster_provider: Resolves classroom rosters.
        field_catalog: Lists a school's experience fields.
        settings: Gradebook behaviour switches.
    """

    def __init__(
        self,
        repository: GradebookRepository,
        roster_provider: RosterProvider,
        field_catalog: ExperienceFieldCatalog,
        settings: GradebookSettings,
    ) -> None:
        """Initialize gradebook service.

        Args:
            repository: Aggregate persistence.
            roster_provider: Resolves classroom rosters.
            field_catalog: Lists a school's experience fields.
            settings: Gradebook behaviour switches.
        """
        self.repository = repository
        self.roster_provider = roster_provider
        self.field_catalog = field_catalog
        self.settings = settings

    # ========================================================================
    # Gradebook header
    # ========================================================================

    async def create_gradebook(
        self,
        track: GradebookTrack,
        request: GradebookCreateRequest,
        actor_id: str,
    ) -> Gradebook:
        """Create an empty gradebook.

        Args:
            track: Gradebook track.
            request: Header fields.
            actor_id: Authenticated caller.

        Returns:
            The stored gradebook.

        Raises:
            GradebookValidationError: If a regular gradebook has no subject.
        """
        fields = request.model_dump(exclude={"subject_id"})
        if track == GradebookTrack.REGULAR:
            if request.subject_id is None:
                raise GradebookValidationError(
                    "Missing required fields: subject_id",
                    {"missing": ["subject_id"]},
                )
            gradebook: Gradebook = RegularGradebook(subject_id=request.subject_id, **fields)
        else:
            gradebook = KindergartenGradebook(**fields)

        gradebook = await self.repository.add(gradebook)
        logger.info(
            "Created %s gradebook: %s (classroom=%s, by=%s)",
            track.value,
            gradebook.id,
            gradebook.classroom_id,
            actor_id,
        )
        return gradebook

    async def get_gradebook(self, track: GradebookTrack, gradebook_id: UUID) -> Gradebook:
        """Get a gradebook by ID.

        Raises:
            GradebookNotFoundError: If it does not exist on this track.
        """
        return await self.repository.get(gradebook_id, track)

    async def update_gradebook(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        request: GradebookUpdateRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Merge the provided header fields into a gradebook."""
        gradebook = await self._load(track, gradebook_id, expected_version)
        gradebook.update_header(request.model_dump(exclude_unset=True))
        gradebook = await self.repository.save(gradebook)
        logger.info("Updated gradebook header: %s (by=%s)", gradebook_id, actor_id)
        return gradebook

    async def list_by_teacher(self, track: GradebookTrack, teacher_id: UUID) -> list[Gradebook]:
        return await self.repository.list_gradebooks(track, teacher_id=teacher_id)

    async def list_by_school(self, track: GradebookTrack, school_id: UUID) -> list[Gradebook]:
        return await self.repository.list_gradebooks(track, school_id=school_id)

    # ========================================================================
    # Terms
    # ========================================================================

    async def add_term(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        request: TermCreateRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Append an empty term.

        Raises:
            GradebookNotFoundError: If the gradebook does not exist.
            GradebookValidationError: If a date is missing or end < start.
        """
        gradebook = await self._load(track, gradebook_id, expected_version)
        term = gradebook.add_term(request.name, request.start_date, request.end_date)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Term added: gradebook=%s term=%s (%s..%s) by=%s",
            gradebook_id,
            term.id,
            term.start_date,
            term.end_date,
            actor_id,
        )
        return gradebook

    async def get_term(self, track: GradebookTrack, gradebook_id: UUID, term_id: UUID) -> Term:
        """Get a term by ID.

        Raises:
            GradebookNotFoundError: If the gradebook does not exist.
            TermNotFoundError: If the term does not exist.
        """
        gradebook = await self.repository.get(gradebook_id, track)
        return gradebook.find_term(term_id)

    async def update_term(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        request: TermUpdateRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Merge the provided term fields. Omitted fields are kept."""
        gradebook = await self._load(track, gradebook_id, expected_version)
        gradebook.find_term(term_id).update(request.model_dump(exclude_unset=True))
        gradebook = await self.repository.save(gradebook)
        logger.info("Term updated: gradebook=%s term=%s by=%s", gradebook_id, term_id, actor_id)
        return gradebook

    async def delete_term(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Remove a term with all its lessons and evaluations."""
        gradebook = await self._load(track, gradebook_id, expected_version)
        term = gradebook.remove_term(term_id)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Term deleted: gradebook=%s term=%s lessons=%d evaluations=%d by=%s",
            gradebook_id,
            term_id,
            len(term.lessons),
            len(term.evaluations),
            actor_id,
        )
        return gradebook

    # ========================================================================
    # Coordinator approval (regular track)
    # ========================================================================

    async def toggle_approval(
        self,
        gradebook_id: UUID,
        term_id: UUID,
        actor_id: str,
        comments: str | None = None,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Flip a term between approved and draft."""
        gradebook = await self._load(GradebookTrack.REGULAR, gradebook_id, expected_version)
        approval = gradebook.find_term(term_id).approval
        approval.toggle(actor_id, comments)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Term approval toggled: gradebook=%s term=%s status=%s by=%s",
            gradebook_id,
            term_id,
            approval.status.value,
            actor_id,
        )
        return gradebook

    async def transition_approval(
        self,
        gradebook_id: UUID,
        term_id: UUID,
        action: ApprovalAction,
        actor_id: str,
        comments: str | None = None,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Apply a directional approval transition.

        Raises:
            ApprovalTransitionError: If the current status does not allow it.
            GradebookValidationError: If a rejection carries no comment.
        """
        gradebook = await self._load(GradebookTrack.REGULAR, gradebook_id, expected_version)
        approval = gradebook.find_term(term_id).approval
        approval.transition(action, actor_id, comments)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Term approval %s: gradebook=%s term=%s status=%s by=%s",
            action.value,
            gradebook_id,
            term_id,
            approval.status.value,
            actor_id,
        )
        return gradebook

    # ========================================================================
    # Lessons
    # ========================================================================

    async def add_lesson(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        request: LessonCreateRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Append a lesson with attendance pre-filled from the roster.

        Raises:
            GradebookValidationError: If topic, date or workload is missing.
        """
        gradebook = await self._load(track, gradebook_id, expected_version)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)
        lesson = term.add_lesson(request.topic, request.date, request.workload, roster)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Lesson added: gradebook=%s term=%s lesson=%s attendance=%d by=%s",
            gradebook_id,
            term_id,
            lesson.id,
            len(lesson.attendance),
            actor_id,
        )
        return gradebook

    async def update_lesson(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        request: LessonUpdateRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        """Merge lesson fields and re-sort the term's lessons by date."""
        gradebook = await self._load(track, gradebook_id, expected_version)
        gradebook.find_term(term_id).update_lesson(lesson_id, request.model_dump(exclude_unset=True))
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Lesson updated: gradebook=%s term=%s lesson=%s by=%s",
            gradebook_id,
            term_id,
            lesson_id,
            actor_id,
        )
        return gradebook

    async def delete_lesson(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        actor_id: str,
        expected_version: int | None = None,
    ) -> Gradebook:
        gradebook = await self._load(track, gradebook_id, expected_version)
        gradebook.find_term(term_id).remove_lesson(lesson_id)
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Lesson deleted: gradebook=%s term=%s lesson=%s by=%s",
            gradebook_id,
            term_id,
            lesson_id,
            actor_id,
        )
        return gradebook

    # ========================================================================
    # Attendance
    # ========================================================================

    async def get_attendance(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
    ) -> LessonAttendanceResponse:
        """Read a lesson's ledger with current roster names."""
        gradebook = await self.repository.get(gradebook_id, track)
        lesson = gradebook.find_term(term_id).find_lesson(lesson_id)
        return self._attendance_view(lesson, await self._roster(gradebook), gradebook.version)

    async def create_attendance(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        request: AttendanceRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> LessonAttendanceResponse:
        """Record attendance for a lesson whose ledger is still empty.

        Raises:
            AttendanceAlreadyExistsError: If the lesson already has a ledger.
            GradebookValidationError: On entries without a student, duplicate
                students, or students outside the roster.
        """
        entries = self._attendance_entries(request)
        gradebook = await self._load(track, gradebook_id, expected_version)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)
        lesson = term.create_attendance(lesson_id, entries, self._allowed_ids(roster))
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Attendance created: gradebook=%s term=%s lesson=%s absent=%d by=%s",
            gradebook_id,
            term_id,
            lesson_id,
            sum(1 for entry in lesson.attendance if not entry.present),
            actor_id,
        )
        return self._attendance_view(lesson, roster, gradebook.version)

    async def update_attendance(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        request: AttendanceRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> LessonAttendanceResponse:
        """Overwrite a lesson's ledger."""
        entries = self._attendance_entries(request)
        gradebook = await self._load(track, gradebook_id, expected_version)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)
        lesson = term.update_attendance(lesson_id, entries, self._allowed_ids(roster))
        gradebook = await self.repository.save(gradebook)
        logger.info(
            "Attendance updated: gradebook=%s term=%s lesson=%s absent=%d by=%s",
            gradebook_id,
            term_id,
            lesson_id,
            sum(1 for entry in lesson.attendance if not entry.present),
            actor_id,
        )
        return self._attendance_view(lesson, roster, gradebook.version)

    # ========================================================================
    # Evaluations
    # ========================================================================

    async def get_numeric_evaluations(
        self,
        gradebook_id: UUID,
        term_id: UUID,
    ) -> NumericEvaluationsResponse:
        """Evaluations of every roster student, placeholders included."""
        gradebook = await self.repository.get(gradebook_id, GradebookTrack.REGULAR)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)
        return NumericEvaluationsResponse(
            term_id=term.id,
            version=gradebook.version,
            evaluations=numeric_evaluation_views(term, roster, self.settings.student_sort_locale),
        )

    async def put_numeric_evaluations(
        self,
        gradebook_id: UUID,
        term_id: UUID,
        request: NumericEvaluationsRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> NumericEvaluationsResponse:
        """Upsert a batch of numeric evaluations.

        The gradebook is saved only when at least one record changed.
        """
        gradebook = await self._load(GradebookTrack.REGULAR, gradebook_id, expected_version)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)

        changed = upsert_numeric_evaluations(term, request.evaluations, roster)
        if changed:
            gradebook = await self.repository.save(gradebook)
            term = gradebook.find_term(term_id)
            logger.info(
                "Evaluations saved: gradebook=%s term=%s students=%d by=%s",
                gradebook_id,
                term_id,
                len(request.evaluations),
                actor_id,
            )
        else:
            logger.debug("Evaluations unchanged: gradebook=%s term=%s", gradebook_id, term_id)

        return NumericEvaluationsResponse(
            term_id=term.id,
            version=gradebook.version,
            changed=changed,
            evaluations=numeric_evaluation_views(term, roster, self.settings.student_sort_locale),
        )

    async def get_qualitative_evaluations(
        self,
        gradebook_id: UUID,
        term_id: UUID,
    ) -> QualitativeEvaluationsResponse:
        """Evaluations of every roster student covering every catalog field."""
        gradebook = await self.repository.get(gradebook_id, GradebookTrack.KINDERGARTEN)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)
        field_names = await self._field_names(gradebook)
        return QualitativeEvaluationsResponse(
            term_id=term.id,
            version=gradebook.version,
            evaluations=qualitative_evaluation_views(
                term, roster, field_names, self.settings.student_sort_locale
            ),
        )

    async def put_qualitative_evaluations(
        self,
        gradebook_id: UUID,
        term_id: UUID,
        request: QualitativeEvaluationsRequest,
        actor_id: str,
        expected_version: int | None = None,
    ) -> QualitativeEvaluationsResponse:
        """Upsert per-field statuses. Saved only when something changed."""
        gradebook = await self._load(GradebookTrack.KINDERGARTEN, gradebook_id, expected_version)
        term = gradebook.find_term(term_id)
        roster = await self._roster(gradebook)

        changed = upsert_qualitative_evaluations(term, request.evaluations, roster)
        if changed:
            gradebook = await self.repository.save(gradebook)
            term = gradebook.find_term(term_id)
            logger.info(
                "Evaluations saved: gradebook=%s term=%s students=%d by=%s",
                gradebook_id,
                term_id,
                len(request.evaluations),
                actor_id,
            )
        else:
            logger.debug("Evaluations unchanged: gradebook=%s term=%s", gradebook_id, term_id)

        field_names = await self._field_names(gradebook)
        return QualitativeEvaluationsResponse(
            term_id=term.id,
            version=gradebook.version,
            changed=changed,
            evaluations=qualitative_evaluation_views(
                term, roster, field_names, self.settings.student_sort_locale
            ),
        )

    # ========================================================================
    # Annual roll-ups
    # ========================================================================

    async def get_learning_record(self, gradebook_id: UUID) -> LearningRecordResponse:
        """Annual averages and absences of every roster student."""
        gradebook = await self.repository.get(gradebook_id, GradebookTrack.REGULAR)
        roster = await self._roster(gradebook)
        return build_learning_record(
            gradebook,
            roster,
            ignore_missing_terms=self.settings.annual_average_ignore_missing_terms,
            locale_name=self.settings.student_sort_locale,
        )

    async def get_general_record(self, gradebook_id: UUID) -> GeneralRecordResponse:
        """Best status per experience field and absences of every roster student."""
        gradebook = await self.repository.get(gradebook_id, GradebookTrack.KINDERGARTEN)
        roster = await self._roster(gradebook)
        field_names = await self._field_names(gradebook)
        return build_general_record(
            gradebook,
            roster,
            field_names=field_names,
            locale_name=self.settings.student_sort_locale,
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load(
        self,
        track: GradebookTrack,
        gradebook_id: UUID,
        expected_version: int | None,
    ) -> Gradebook:
        bind_gradebook(gradebook_id)
        gradebook = await self.repository.get(gradebook_id, track)
        if expected_version is not None and gradebook.version != expected_version:
            raise StaleGradebookError(gradebook_id, expected_version, gradebook.version)
        return gradebook

    async def _roster(self, gradebook: Gradebook) -> list[StudentSnapshot]:
        return await self.roster_provider.get_roster(gradebook.classroom_id)

    async def _field_names(self, gradebook: Gradebook) -> list[str]:
        fields = await self.field_catalog.list_fields(gradebook.school_id)
        return [field.name for field in fields]

    def _allowed_ids(self, roster: list[StudentSnapshot]) -> set[UUID] | None:
        if not self.settings.validate_attendance_roster:
            return None
        return {student.id for student in roster}

    @staticmethod
    def _attendance_entries(request: AttendanceRequest) -> list[AttendanceEntry]:
        missing = [index for index, entry in enumerate(request.attendance) if entry.student_id is None]
        if missing:
            raise GradebookValidationError(
                "Every attendance entry needs a student_id",
                {"entries": missing},
            )
        return [
            AttendanceEntry(student_id=entry.student_id, present=entry.present)
            for entry in request.attendance
        ]

    @staticmethod
    def _attendance_view(
        lesson: Lesson, roster: list[StudentSnapshot], version: int
    ) -> LessonAttendanceResponse:
        names = {student.id: student.name for student in roster}
        return LessonAttendanceResponse(
            lesson_id=lesson.id,
            version=version,
            topic=lesson.topic,
            date=lesson.date,
            attendance=[
                AttendanceEntryView(
                    student_id=entry.student_id,
                    name=names.get(entry.student_id),
                    present=entry.present,
                )
                for entry in lesson.attendance
            ],
        )
