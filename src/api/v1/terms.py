# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Term, lesson and attendance endpoints shared by both gradebook tracks.

Mounted under ``/{gradebook_id}/terms`` by the gradebook and kindergarten
routers:
- POST / - Add a term
- GET /{term_id} - Get a term
- PATCH /{term_id} - Partially update a term
- DELETE /{term_id} - Delete a term with its lessons and evaluations
- POST /{term_id}/lessons - Add a lesson (attendance pre-filled from roster)
- PATCH /{term_id}/lessons/{lesson_id} - Partially update a lesson
- DELETE /{term_id}/lessons/{lesson_id} - Delete a lesson
- GET /{term_id}/lessons/{lesson_id}/attendance - Read attendance
- POST /{term_id}/lessons/{lesson_id}/attendance - Create attendance
- PUT /{term_id}/lessons/{lesson_id}/attendance - Overwrite attendance

Mutations accept an ``If-Match: <version>`` header and answer with the
new version in the ``ETag`` header.
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from src.api.dependencies import AuthenticatedUser, ExpectedVersion, GradebookServiceDep
from src.domains.gradebook.models import Gradebook, GradebookTrack, Term
from src.models.gradebook import (
    AttendanceRequest,
    LessonAttendanceResponse,
    LessonCreateRequest,
    LessonUpdateRequest,
    TermCreateRequest,
    TermUpdateRequest,
)


def set_etag(response: Response, gradebook: Gradebook) -> Gradebook:
    """Expose the gradebook version as a strong ETag."""
    response.headers["ETag"] = f'"{gradebook.version}"'
    return gradebook


def build_term_router(
    track: GradebookTrack,
    gradebook_model: type,
    term_model: type[Term],
) -> APIRouter:
    """Build the term/lesson/attendance router of one track.

    Args:
        track: Track the routes resolve gradebooks on.
        gradebook_model: Response model for whole-gradebook answers.
        term_model: Response model for single-term answers.

    Returns:
        Router to include under ``/{gradebook_id}/terms``.
    """
    router = APIRouter()

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    @router.post(
        "",
        response_model=gradebook_model,
        status_code=status.HTTP_201_CREATED,
        summary="Add term",
        description="Append an empty term. end_date must not be before start_date.",
    )
    async def add_term(
        gradebook_id: UUID,
        data: TermCreateRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.add_term(
            track, gradebook_id, data, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    @router.get(
        "/{term_id}",
        response_model=term_model,
        summary="Get term",
    )
    async def get_term(
        gradebook_id: UUID,
        term_id: UUID,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
    ) -> Term:
        return await service.get_term(track, gradebook_id, term_id)

    @router.patch(
        "/{term_id}",
        response_model=gradebook_model,
        summary="Update term",
        description="Merge the provided fields; omitted fields are left unchanged.",
    )
    async def update_term(
        gradebook_id: UUID,
        term_id: UUID,
        data: TermUpdateRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.update_term(
            track, gradebook_id, term_id, data, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    @router.delete(
        "/{term_id}",
        response_model=gradebook_model,
        summary="Delete term",
        description="Remove the term with all its lessons and evaluations.",
    )
    async def delete_term(
        gradebook_id: UUID,
        term_id: UUID,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.delete_term(
            track, gradebook_id, term_id, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    @router.post(
        "/{term_id}/lessons",
        response_model=gradebook_model,
        status_code=status.HTTP_201_CREATED,
        summary="Add lesson",
        description=(
            "Add a lesson. topic, date and workload are required. Every "
            "current roster member is marked present."
        ),
    )
    async def add_lesson(
        gradebook_id: UUID,
        term_id: UUID,
        data: LessonCreateRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.add_lesson(
            track, gradebook_id, term_id, data, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    @router.patch(
        "/{term_id}/lessons/{lesson_id}",
        response_model=gradebook_model,
        summary="Update lesson",
        description="Merge the provided fields, then re-sort the term's lessons by date.",
    )
    async def update_lesson(
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        data: LessonUpdateRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.update_lesson(
            track, gradebook_id, term_id, lesson_id, data, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    @router.delete(
        "/{term_id}/lessons/{lesson_id}",
        response_model=gradebook_model,
        summary="Delete lesson",
    )
    async def delete_lesson(
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> Gradebook:
        gradebook = await service.delete_lesson(
            track, gradebook_id, term_id, lesson_id, current_user.id, expected_version
        )
        return set_etag(response, gradebook)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    @router.get(
        "/{term_id}/lessons/{lesson_id}/attendance",
        response_model=LessonAttendanceResponse,
        summary="Get attendance",
        description="Attendance entries with each student's current roster name.",
    )
    async def get_attendance(
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
    ) -> LessonAttendanceResponse:
        result = await service.get_attendance(track, gradebook_id, term_id, lesson_id)
        response.headers["ETag"] = f'"{result.version}"'
        return result

    @router.post(
        "/{term_id}/lessons/{lesson_id}/attendance",
        response_model=LessonAttendanceResponse,
        status_code=status.HTTP_201_CREATED,
        summary="Create attendance",
        description="Record attendance for a lesson whose ledger is empty; 409 otherwise.",
    )
    async def create_attendance(
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        data: AttendanceRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> LessonAttendanceResponse:
        result = await service.create_attendance(
            track, gradebook_id, term_id, lesson_id, data, current_user.id, expected_version
        )
        response.headers["ETag"] = f'"{result.version}"'
        return result

    @router.put(
        "/{term_id}/lessons/{lesson_id}/attendance",
        response_model=LessonAttendanceResponse,
        summary="Overwrite attendance",
    )
    async def update_attendance(
        gradebook_id: UUID,
        term_id: UUID,
        lesson_id: UUID,
        data: AttendanceRequest,
        response: Response,
        current_user: AuthenticatedUser,
        service: GradebookServiceDep,
        expected_version: ExpectedVersion,
    ) -> LessonAttendanceResponse:
        result = await service.update_attendance(
            track, gradebook_id, term_id, lesson_id, data, current_user.id, expected_version
        )
        response.headers["ETag"] = f'"{result.version}"'
        return result

    return router
