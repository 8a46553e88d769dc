# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Kindergarten gradebook API endpoints.

Kindergarten gradebooks have no subject and no coordinator approval; their
evaluations are per experience field development statuses.

- POST / - Create a gradebook
- GET /teacher/{teacher_id} - List a teacher's gradebooks
- GET /school/{school_id} - List a school's gradebooks
- GET /{gradebook_id} - Get a gradebook
- PATCH /{gradebook_id} - Update the header
- GET /{gradebook_id}/terms/{term_id}/evaluations - Read qualitative evaluations
- PUT /{gradebook_id}/terms/{term_id}/evaluations - Upsert qualitative evaluations
- GET /{gradebook_id}/general-record - Best status per field across terms
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from src.api.dependencies import AuthenticatedUser, ExpectedVersion, GradebookServiceDep
from src.api.v1.terms import build_term_router, set_etag
from src.domains.gradebook.models import (
    Gradebook,
    GradebookTrack,
    KindergartenGradebook,
    KindergartenTerm,
)
from src.models.gradebook import (
    GeneralRecordResponse,
    GradebookCreateRequest,
    GradebookUpdateRequest,
    KindergartenGradebookListResponse,
    QualitativeEvaluationsRequest,
    QualitativeEvaluationsResponse,
)

TRACK = GradebookTrack.KINDERGARTEN

router = APIRouter()


@router.post(
    "",
    response_model=KindergartenGradebook,
    status_code=status.HTTP_201_CREATED,
    summary="Create kindergarten gradebook",
)
async def create_gradebook(
    data: GradebookCreateRequest,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> Gradebook:
    gradebook = await service.create_gradebook(TRACK, data, current_user.id)
    return set_etag(response, gradebook)


@router.get(
    "/teacher/{teacher_id}",
    response_model=KindergartenGradebookListResponse,
    summary="List kindergarten gradebooks by teacher",
)
async def list_by_teacher(
    teacher_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> KindergartenGradebookListResponse:
    items = await service.list_by_teacher(TRACK, teacher_id)
    return KindergartenGradebookListResponse(items=items, total=len(items))


@router.get(
    "/school/{school_id}",
    response_model=KindergartenGradebookListResponse,
    summary="List kindergarten gradebooks by school",
)
async def list_by_school(
    school_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> KindergartenGradebookListResponse:
    items = await service.list_by_school(TRACK, school_id)
    return KindergartenGradebookListResponse(items=items, total=len(items))


@router.get(
    "/{gradebook_id}",
    response_model=KindergartenGradebook,
    summary="Get kindergarten gradebook",
)
async def get_gradebook(
    gradebook_id: UUID,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> Gradebook:
    gradebook = await service.get_gradebook(TRACK, gradebook_id)
    return set_etag(response, gradebook)


@router.patch(
    "/{gradebook_id}",
    response_model=KindergartenGradebook,
    summary="Update kindergarten gradebook",
)
async def update_gradebook(
    gradebook_id: UUID,
    data: GradebookUpdateRequest,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
    expected_version: ExpectedVersion,
) -> Gradebook:
    gradebook = await service.update_gradebook(
        TRACK, gradebook_id, data, current_user.id, expected_version
    )
    return set_etag(response, gradebook)


@router.get(
    "/{gradebook_id}/terms/{term_id}/evaluations",
    response_model=QualitativeEvaluationsResponse,
    summary="Get term evaluations",
    description=(
        "One entry per roster student covering every experience field of the "
        "school; unassessed fields read as not-yet."
    ),
)
async def get_evaluations(
    gradebook_id: UUID,
    term_id: UUID,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> QualitativeEvaluationsResponse:
    result = await service.get_qualitative_evaluations(gradebook_id, term_id)
    response.headers["ETag"] = f'"{result.version}"'
    return result


@router.put(
    "/{gradebook_id}/terms/{term_id}/evaluations",
    response_model=QualitativeEvaluationsResponse,
    summary="Upsert term evaluations",
    description="Upsert field assessments per student. Nothing is written when no status changes.",
)
async def put_evaluations(
    gradebook_id: UUID,
    term_id: UUID,
    data: QualitativeEvaluationsRequest,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
    expected_version: ExpectedVersion,
) -> QualitativeEvaluationsResponse:
    result = await service.put_qualitative_evaluations(
        gradebook_id, term_id, data, current_user.id, expected_version
    )
    response.headers["ETag"] = f'"{result.version}"'
    return result


@router.get(
    "/{gradebook_id}/general-record",
    response_model=GeneralRecordResponse,
    summary="Get general record",
    description="Best development status per experience field across all terms, plus absences.",
)
async def get_general_record(
    gradebook_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> GeneralRecordResponse:
    return await service.get_general_record(gradebook_id)


router.include_router(
    build_term_router(TRACK, KindergartenGradebook, KindergartenTerm),
    prefix="/{gradebook_id}/terms",
)
