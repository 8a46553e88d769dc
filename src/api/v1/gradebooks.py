# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Regular (subject) gradebook API endpoints.

This module provides endpoints for regular gradebooks:
- POST / - Create a gradebook
- GET /teacher/{teacher_id} - List a teacher's gradebooks
- GET /school/{school_id} - List a school's gradebooks
- GET /{gradebook_id} - Get a gradebook
- PATCH /{gradebook_id} - Update the header
- POST /{gradebook_id}/terms/{term_id}/approval/toggle - Toggle approval
- POST /{gradebook_id}/terms/{term_id}/approval/{action} - Approval transition
- GET /{gradebook_id}/terms/{term_id}/evaluations - Read numeric evaluations
- PUT /{gradebook_id}/terms/{term_id}/evaluations - Upsert numeric evaluations
- GET /{gradebook_id}/learning-record - Annual learning record

Term, lesson and attendance routes are mounted from src.api.v1.terms.
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from src.api.dependencies import AuthenticatedUser, ExpectedVersion, GradebookServiceDep
from src.api.v1.terms import build_term_router, set_etag
from src.domains.gradebook.models import (
    ApprovalAction,
    Gradebook,
    GradebookTrack,
    RegularGradebook,
    RegularTerm,
)
from src.models.gradebook import (
    ApprovalRequest,
    GradebookCreateRequest,
    GradebookUpdateRequest,
    LearningRecordResponse,
    NumericEvaluationsRequest,
    NumericEvaluationsResponse,
    RegularGradebookListResponse,
)

TRACK = GradebookTrack.REGULAR

router = APIRouter()


# =============================================================================
# Gradebooks
# =============================================================================


@router.post(
    "",
    response_model=RegularGradebook,
    status_code=status.HTTP_201_CREATED,
    summary="Create gradebook",
    description="Create an empty subject gradebook. subject_id is required.",
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
    response_model=RegularGradebookListResponse,
    summary="List gradebooks by teacher",
)
async def list_by_teacher(
    teacher_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> RegularGradebookListResponse:
    items = await service.list_by_teacher(TRACK, teacher_id)
    return RegularGradebookListResponse(items=items, total=len(items))


@router.get(
    "/school/{school_id}",
    response_model=RegularGradebookListResponse,
    summary="List gradebooks by school",
)
async def list_by_school(
    school_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> RegularGradebookListResponse:
    items = await service.list_by_school(TRACK, school_id)
    return RegularGradebookListResponse(items=items, total=len(items))


@router.get(
    "/{gradebook_id}",
    response_model=RegularGradebook,
    summary="Get gradebook",
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
    response_model=RegularGradebook,
    summary="Update gradebook",
    description="Merge the provided header fields; omitted fields are left unchanged.",
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


# =============================================================================
# Coordinator approval
# =============================================================================


@router.post(
    "/{gradebook_id}/terms/{term_id}/approval/toggle",
    response_model=RegularGradebook,
    summary="Toggle term approval",
    description="Approved terms go back to draft; any other state becomes approved.",
)
async def toggle_approval(
    gradebook_id: UUID,
    term_id: UUID,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
    expected_version: ExpectedVersion,
    data: ApprovalRequest | None = None,
) -> Gradebook:
    gradebook = await service.toggle_approval(
        gradebook_id,
        term_id,
        current_user.id,
        comments=data.comments if data else None,
        expected_version=expected_version,
    )
    return set_etag(response, gradebook)


@router.post(
    "/{gradebook_id}/terms/{term_id}/approval/{action}",
    response_model=RegularGradebook,
    summary="Transition term approval",
    description=(
        "Move the term through draft, submitted, approved and rejected. "
        "Rejecting requires comments; illegal transitions answer 409."
    ),
)
async def transition_approval(
    gradebook_id: UUID,
    term_id: UUID,
    action: ApprovalAction,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
    expected_version: ExpectedVersion,
    data: ApprovalRequest | None = None,
) -> Gradebook:
    gradebook = await service.transition_approval(
        gradebook_id,
        term_id,
        action,
        current_user.id,
        comments=data.comments if data else None,
        expected_version=expected_version,
    )
    return set_etag(response, gradebook)


# =============================================================================
# Evaluations
# =============================================================================


@router.get(
    "/{gradebook_id}/terms/{term_id}/evaluations",
    response_model=NumericEvaluationsResponse,
    summary="Get term evaluations",
    description="One entry per roster student; students without a record get zero placeholders.",
)
async def get_evaluations(
    gradebook_id: UUID,
    term_id: UUID,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> NumericEvaluationsResponse:
    result = await service.get_numeric_evaluations(gradebook_id, term_id)
    response.headers["ETag"] = f'"{result.version}"'
    return result


@router.put(
    "/{gradebook_id}/terms/{term_id}/evaluations",
    response_model=NumericEvaluationsResponse,
    summary="Upsert term evaluations",
    description="Replace the scores of the listed students. Nothing is written when no score changes.",
)
async def put_evaluations(
    gradebook_id: UUID,
    term_id: UUID,
    data: NumericEvaluationsRequest,
    response: Response,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
    expected_version: ExpectedVersion,
) -> NumericEvaluationsResponse:
    result = await service.put_numeric_evaluations(
        gradebook_id, term_id, data, current_user.id, expected_version
    )
    response.headers["ETag"] = f'"{result.version}"'
    return result


# =============================================================================
# Annual roll-up
# =============================================================================


@router.get(
    "/{gradebook_id}/learning-record",
    response_model=LearningRecordResponse,
    summary="Get learning record",
    description="Per-term averages, annual average and total absences of every roster student.",
)
async def get_learning_record(
    gradebook_id: UUID,
    current_user: AuthenticatedUser,
    service: GradebookServiceDep,
) -> LearningRecordResponse:
    return await service.get_learning_record(gradebook_id)


router.include_router(
    build_term_router(TRACK, RegularGradebook, RegularTerm),
    prefix="/{gradebook_id}/terms",
)
